"""Runtime defaults for streamcrypt.

Entry points fall back to these values whenever an argument is omitted.
Values can be overridden in code with :func:`configure` or picked up from
``STREAMCRYPT_*`` environment variables through :meth:`Settings.from_env`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Mapping, Optional


BUFFER_SIZE = 4096  # bytes per read in the stream driver
ENV_PREFIX = "STREAMCRYPT_"


@dataclass(frozen=True)
class Settings:
    """Default algorithms and sizes used when a caller does not pick one."""

    buffer_size: int = BUFFER_SIZE
    hash_algorithm: str = "sha256"
    cipher_algorithm: str = "aes-128-cbc"
    checksum_algorithm: str = "crc32"
    pbkdf2_rounds: int = 4096
    rsa_key_size: int = 4096

    def __post_init__(self) -> None:
        if self.buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        if self.pbkdf2_rounds <= 0:
            raise ValueError("pbkdf2_rounds must be positive")
        if self.rsa_key_size < 1024:
            raise ValueError("rsa_key_size must be at least 1024 bits")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``STREAMCRYPT_<FIELD>`` variables.

        Unset variables keep their defaults. Integer fields that do not parse
        raise ``ValueError``.
        """
        if environ is None:
            environ = os.environ

        values = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            if f.type in (int, "int"):
                try:
                    values[f.name] = int(raw)
                except ValueError:
                    raise ValueError(f"{ENV_PREFIX}{f.name.upper()} must be an integer, got {raw!r}")
            else:
                values[f.name] = raw.strip().lower()
        return cls(**values)


# module-level default settings
_settings = Settings()


def get_settings() -> Settings:
    return _settings


def configure(**changes) -> Settings:
    """Replace selected fields of the default settings and return the result."""
    global _settings
    _settings = replace(_settings, **changes)
    return _settings


def reset_settings() -> Settings:
    global _settings
    _settings = Settings()
    return _settings
