from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from filesys_db.storage.db import JOURNAL_MODES


class FsSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    fsdb_db_path: Path = Field(default=Path("./data/filesys.db"), alias="FSDB_DB_PATH")
    fsdb_journal_mode: str = Field(default="WAL", alias="FSDB_JOURNAL_MODE")
    fsdb_busy_timeout_seconds: float = Field(default=5.0, alias="FSDB_BUSY_TIMEOUT_SECONDS")
    fsdb_log_level: str = Field(default="INFO", alias="FSDB_LOG_LEVEL")

    @field_validator("fsdb_journal_mode")
    @classmethod
    def check_journal_mode(cls, value: str) -> str:
        mode = value.strip().upper()
        if mode not in JOURNAL_MODES:
            raise ValueError(f"journal mode must be one of: {', '.join(sorted(JOURNAL_MODES))}")
        return mode

    @field_validator("fsdb_log_level")
    @classmethod
    def upper_log_level(cls, value: str) -> str:
        return value.strip().upper()

    @model_validator(mode="after")
    def normalize_paths(self) -> "FsSettings":
        self.fsdb_db_path = self.fsdb_db_path.expanduser()
        return self
