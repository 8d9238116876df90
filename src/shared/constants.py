from pathlib import Path

# --- Дисковый кэш тайлов
# Каталог кэша по умолчанию (используется, если корень не передан явно)
TILE_PATH_BASE = Path.home() / '.tilestash' / 'tiles'

# Суффикс, добавляемый к относительному пути каждого тайла
TILE_PATH_EXTENSION = '.tile'

# Суффикс временного файла, в который идёт запись до атомарной замены
TILE_PARTIAL_SUFFIX = '.part'

# Порог размера кэша, после которого запускается обрезка (байт)
TILE_MAX_CACHE_SIZE_BYTES = 600 * 1024 * 1024

# Размер, до которого кэш обрезается (байт); строго меньше порога
TILE_TRIM_CACHE_SIZE_BYTES = 500 * 1024 * 1024

# Срок, после которого тайл считается устаревшим (часы), по умолчанию неделя
DEFAULT_MAXIMUM_CACHED_FILE_AGE_HOURS = 24 * 7

# Размер буфера для копирования потоков (байт)
IO_BUFFER_SIZE = 8 * 1024

# Пауза перед повторной проверкой каталога, созданного другим потоком (с)
DIRECTORY_RETRY_DELAY_S = 0.5

# Число полос блокировок для сериализации записей одного ключа
WRITE_LOCK_STRIPES = 64

# --- Провайдер тайлов из файлового кэша
NUMBER_OF_TILE_FILESYSTEM_THREADS = 8
MINIMUM_ZOOMLEVEL = 0
MAXIMUM_ZOOMLEVEL = 22

# --- Логирование
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
