# infrapad/src/infrapad/core/config.py

from pathlib import Path
from typing import List, Optional
import tempfile

import keyring
from keyring.errors import KeyringError
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_database_url() -> str:
    data_dir = Path.home() / ".local" / "share" / "infrapad"
    return f"sqlite:///{data_dir / 'infrapad.db'}"


class Settings(BaseSettings):
    database_url: str = Field(default_factory=_default_database_url)
    sql_echo: bool = Field(default=False)

    # Executable names searched on PATH, in order, for the 7zip archiver
    archiver_commands: List[str] = Field(default_factory=lambda: ["7z", "7za"])
    temp_root: str = Field(default_factory=tempfile.gettempdir)
    document_name: str = Field(default="contents.yaml")

    archive_password: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="INFRAPAD_",
        extra="ignore",
    )

    def get_secure_value(self, key: str, default=None):
        attr_name = key.lower()
        try:
            secure = keyring.get_password("infrapad", attr_name)
            return secure or getattr(self, attr_name, default)
        except KeyringError:
            return getattr(self, attr_name, default)

    def get_archive_password(self) -> str:
        """Password for archives when none is given explicitly; empty means unencrypted."""
        return self.get_secure_value("ARCHIVE_PASSWORD") or ""


# Instantiate settings
settings = Settings()

DATABASE_URL = settings.database_url
