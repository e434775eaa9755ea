import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_env_file() -> str | None:
    """Find .env file, preferring .env.local for local development."""
    for env_file in [".env.local", ".env"]:
        for base in [".", os.environ.get("REPO_ROOT", "")]:
            if base:
                path = Path(base) / env_file
                if path.exists():
                    return str(path)
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # DATABASE_URL from environment (production/CI)
    # Falls back to SQLite for local development if not set
    database_url: str = "sqlite:///./local.db"

    # Keyed RPC endpoints are built as rpc_url + rpc_api_key
    rpc_url: str = ""
    rpc_api_key: str = ""
    chain_id: str = "base"

    # Blocks per indexing window
    index_block_range: int = 50
    index_interval_minutes: int = 10
    reward_interval_minutes: int = 60

    def get_rpc_endpoint(self) -> str:
        return f"{self.rpc_url}{self.rpc_api_key}"


settings = Settings()
