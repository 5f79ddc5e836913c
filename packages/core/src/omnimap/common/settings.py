from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env into os.environ
load_dotenv()


class Settings(BaseSettings):
    """Library configuration settings backed by environment variables."""

    config_path: Optional[str] = Field(
        default=None,
        validation_alias="OMNIMAP_CONFIG",
        description="Connection config file (JSON / YAML) or directory of per-connection files.",
    )
    migrations_path: str = Field(
        default="omnimap.migrations.json",
        validation_alias="OMNIMAP_MIGRATIONS_FILE",
        description="JSON file holding migration records, logs and settings.",
    )
    log_level: str = Field(default="INFO", validation_alias="OMNIMAP_LOG_LEVEL")
    log_json: bool = Field(
        default=False,
        validation_alias="OMNIMAP_LOG_JSON",
        description="Emit JSON log lines instead of plain text.",
    )
    api_timeout_ms: int = Field(
        default=30000,
        validation_alias="OMNIMAP_API_TIMEOUT_MS",
        description="Default per-request timeout for API connections.",
    )
    auto_attach_adapters: bool = Field(
        default=True,
        validation_alias="OMNIMAP_AUTO_ATTACH",
        description="Build and attach adapters for configured connections during init.",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def configure_env(self, env: str) -> None:
        """Loads environment-specific variables and reloads settings."""
        if not env:
            return

        load_dotenv(f".env.{env}", override=True)
        new_settings = Settings()
        self.__dict__.update(new_settings.__dict__)


settings = Settings()
