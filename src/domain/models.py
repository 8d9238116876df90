from datetime import timedelta

from pydantic import BaseModel, field_validator, model_validator

from shared.constants import (
    DEFAULT_MAXIMUM_CACHED_FILE_AGE_HOURS,
    DIRECTORY_RETRY_DELAY_S,
    IO_BUFFER_SIZE,
    TILE_MAX_CACHE_SIZE_BYTES,
    TILE_PATH_EXTENSION,
    TILE_TRIM_CACHE_SIZE_BYTES,
)


class TileCacheSettings(BaseModel):
    """
    Настройки дискового кэша тайлов.

    Фиксируются при создании хранилища и не меняются во время работы.
    """

    model_config = {
        'extra': 'ignore',  # игнорировать лишние поля из конфигов
        'frozen': True,
    }

    # Порог размера кэша, после которого запускается обрезка (байт)
    max_size_bytes: int = TILE_MAX_CACHE_SIZE_BYTES
    # Размер, до которого кэш обрезается (байт)
    trim_to_bytes: int = TILE_TRIM_CACHE_SIZE_BYTES
    # Срок свежести тайла (часы); 0 или меньше: тайлы никогда не устаревают
    max_cached_file_age_hours: float = DEFAULT_MAXIMUM_CACHED_FILE_AGE_HOURS
    # Размер буфера копирования (байт)
    io_buffer_size: int = IO_BUFFER_SIZE
    # Пауза перед повторной проверкой каталога (с)
    directory_retry_delay_s: float = DIRECTORY_RETRY_DELAY_S
    # Суффикс файлов кэша
    file_extension: str = TILE_PATH_EXTENSION

    @field_validator('max_size_bytes', 'trim_to_bytes', 'io_buffer_size')
    @classmethod
    def validate_positive(cls, v: int | str) -> int:
        v = int(v)
        if v <= 0:
            msg = 'Значение должно быть положительным'
            raise ValueError(msg)
        return v

    @field_validator('directory_retry_delay_s')
    @classmethod
    def validate_delay(cls, v: float | str) -> float:
        v = float(v)
        if v < 0:
            msg = 'directory_retry_delay_s не может быть отрицательным'
            raise ValueError(msg)
        return v

    @field_validator('file_extension')
    @classmethod
    def validate_extension(cls, v: str) -> str:
        if '/' in v or '\\' in v:
            msg = 'file_extension не должен содержать разделители пути'
            raise ValueError(msg)
        return v

    @model_validator(mode='after')
    def validate_watermarks(self) -> 'TileCacheSettings':
        if self.trim_to_bytes >= self.max_size_bytes:
            msg = 'trim_to_bytes должен быть меньше max_size_bytes'
            raise ValueError(msg)
        return self

    @property
    def max_cached_file_age(self) -> timedelta:
        return timedelta(hours=self.max_cached_file_age_hours)
