"""Runtime settings resolved from arguments, environment, then defaults."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from .constants import (
    DECRYPTED_DB_NAME,
    DEFAULT_CACHE_TTL,
    DEFAULT_DATA_DIR,
    DEFAULT_EXPORT_DIR,
    FILES_DIR_NAME,
    LOG_DIR_NAME,
    LOG_FILE_NAME,
)

ENV_DATA_DIR = "CHATVIEW_HOME"
ENV_EXPORT_DIR = "CHATVIEW_EXPORT_DIR"
ENV_CACHE_TTL = "CHATVIEW_CACHE_TTL"
ENV_LOG_LEVEL = "CHATVIEW_LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    data_dir: str = DEFAULT_DATA_DIR
    export_dir: str = DEFAULT_EXPORT_DIR
    cache_ttl: float = DEFAULT_CACHE_TTL
    log_level: str = "WARNING"

    @classmethod
    def from_env(
        cls,
        data_dir: str | None = None,
        export_dir: str | None = None,
        cache_ttl: float | None = None,
        log_level: str | None = None,
    ) -> Settings:
        """Build settings, letting explicit arguments win over the environment."""
        env = os.environ
        if cache_ttl is None:
            raw_ttl = env.get(ENV_CACHE_TTL)
            try:
                cache_ttl = float(raw_ttl) if raw_ttl else DEFAULT_CACHE_TTL
            except ValueError:
                logging.getLogger(__name__).warning(
                    "Ignoring invalid %s=%r", ENV_CACHE_TTL, raw_ttl
                )
                cache_ttl = DEFAULT_CACHE_TTL
        return cls(
            data_dir=os.path.expanduser(data_dir or env.get(ENV_DATA_DIR) or DEFAULT_DATA_DIR),
            export_dir=os.path.expanduser(
                export_dir or env.get(ENV_EXPORT_DIR) or DEFAULT_EXPORT_DIR
            ),
            cache_ttl=cache_ttl,
            log_level=(log_level or env.get(ENV_LOG_LEVEL) or "WARNING").upper(),
        )

    @property
    def decrypted_db_path(self) -> str:
        """Fixed location of the plaintext archive."""
        return os.path.join(self.data_dir, DECRYPTED_DB_NAME)

    @property
    def log_path(self) -> str:
        return os.path.join(self.data_dir, LOG_DIR_NAME, LOG_FILE_NAME)

    @property
    def files_dir(self) -> str:
        return os.path.join(self.data_dir, FILES_DIR_NAME)
