"""Store configuration read from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .local import DATA_FILE_NAME
from .remote import DEFAULT_TABLE, DEFAULT_TIMEOUT

DEFAULT_DATA_DIR = Path.cwd() / "data"


@dataclass
class StoreConfig:
    """Everything the store needs to pick and reach its backends."""
    data_dir: Path = DEFAULT_DATA_DIR
    remote_url: Optional[str] = None
    remote_api_key: Optional[str] = None
    remote_table: str = DEFAULT_TABLE
    remote_timeout: float = DEFAULT_TIMEOUT

    @property
    def data_file(self) -> Path:
        return Path(self.data_dir) / DATA_FILE_NAME

    @property
    def remote_enabled(self) -> bool:
        return bool(self.remote_url) and bool(self.remote_api_key)

    @classmethod
    def from_env(cls) -> "StoreConfig":
        return cls(
            data_dir=Path(os.getenv("WEATHER_DATA_DIR", str(DEFAULT_DATA_DIR))),
            remote_url=os.getenv("SUPABASE_URL") or None,
            remote_api_key=os.getenv("SUPABASE_API_KEY") or None,
            remote_table=os.getenv("SUPABASE_WEATHER_TABLE") or DEFAULT_TABLE,
            remote_timeout=float(os.getenv("REMOTE_TIMEOUT", str(DEFAULT_TIMEOUT))),
        )
