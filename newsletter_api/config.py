# newsletter_api/config.py
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, EmailStr, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parent.parent / "configuration"


class Environment(str, Enum):
    LOCAL = "local"
    PRODUCTION = "production"


class EmailProvider(str, Enum):
    POSTMARK = "postmark"
    SES = "ses"


class ApplicationSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000
    base_url: str = "http://127.0.0.1:8000"


class DatabaseSettings(BaseModel):
    host: str = "localhost"
    port: int = 5432
    username: str = "postgres"
    password: SecretStr = SecretStr("password")
    database_name: str = "newsletter"
    require_ssl: bool = False

    def without_db(self) -> Dict[str, Any]:
        """Connection parameters for the server itself (e.g. to CREATE DATABASE)"""
        return {
            "host": self.host,
            "port": self.port,
            "user": self.username,
            "password": self.password.get_secret_value(),
            "database": "postgres",
            "ssl": "require" if self.require_ssl else "prefer",
        }

    def with_db(self) -> Dict[str, Any]:
        """Connection parameters for the application database"""
        params = self.without_db()
        params["database"] = self.database_name
        return params


class EmailClientSettings(BaseModel):
    provider: EmailProvider = EmailProvider.POSTMARK
    base_url: str = "http://localhost:8025"
    sender_email: EmailStr = "newsletter@example.com"
    authorization_token: SecretStr = SecretStr("")
    timeout_milliseconds: int = 10000
    aws_region: Optional[str] = None

    @property
    def timeout(self) -> float:
        return self.timeout_milliseconds / 1000


class Settings(BaseSettings):
    environment: Environment = Environment.LOCAL
    log_level: str = "INFO"

    application: ApplicationSettings = ApplicationSettings()
    database: DatabaseSettings = DatabaseSettings()
    email_client: EmailClientSettings = EmailClientSettings()

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        extra="ignore",  # the env files and process env carry unrelated vars
    )


def get_environment() -> Environment:
    """Read the deployment environment from APP_ENVIRONMENT"""
    raw = os.getenv("APP_ENVIRONMENT", Environment.LOCAL.value)
    try:
        return Environment(raw.strip().lower())
    except ValueError:
        supported = ", ".join(e.value for e in Environment)
        raise ValueError(
            f"{raw} is not a supported environment. Use either {supported}."
        )


def get_settings(config_dir: Optional[Path] = None) -> Settings:
    """Build settings from base.env, then {environment}.env, then the process env.

    Later sources win: a value in local.env overrides base.env and an
    exported DATABASE__HOST overrides both.
    """
    environment = get_environment()
    if config_dir is None:
        config_dir = Path(os.getenv("APP_CONFIG_DIR", DEFAULT_CONFIG_DIR))

    env_files = (
        config_dir / "base.env",
        config_dir / f"{environment.value}.env",
    )
    return Settings(_env_file=env_files, environment=environment)


settings = get_settings()
