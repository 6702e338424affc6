"""Application configuration using pydantic settings with structured sections."""

import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[2]


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    reload: bool = False


class StorageSettings(BaseModel):
    data_dir: Path = Field(default=Path("data/scripts"))


class ExecutionSettings(BaseModel):
    default_timeout_ms: int = Field(default=30000, gt=0)
    signal_token: str = Field(default="message:", min_length=1)
    max_concurrent_per_script: Optional[int] = Field(default=None, gt=0)
    node_binary: str = "node"
    python_binary: str = sys.executable


class SecuritySettings(BaseModel):
    ui_login: str = "admin"
    ui_secret: str = Field(default="cogui", min_length=1)


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class Settings(BaseSettings):
    """Top-level application settings with nested sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    project_name: str = "Cog Serverless"
    api_prefix: str = "/api/v1"

    server: ServerSettings = ServerSettings()
    storage: StorageSettings = StorageSettings()
    execution: ExecutionSettings = ExecutionSettings()
    security: SecuritySettings = SecuritySettings()
    logging: LoggingSettings = LoggingSettings()

    template_dir: Path = Path("cog/web/templates")

    @property
    def host(self) -> str:
        return self.server.host

    @property
    def port(self) -> int:
        return self.server.port

    @property
    def data_dir(self) -> Path:
        # resolved against the working directory
        return self.storage.data_dir.expanduser().resolve()

    @property
    def templates_path(self) -> Path:
        return resolve_path(self.template_dir)

    @property
    def default_timeout_ms(self) -> int:
        return self.execution.default_timeout_ms


def resolve_path(path: Path) -> Path:
    if path.is_absolute():
        return path
    return (PROJECT_ROOT / path).resolve()


@lru_cache()
def get_settings() -> Settings:
    return Settings()
