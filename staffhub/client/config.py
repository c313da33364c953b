from __future__ import annotations

import logging

from pydantic_settings import BaseSettings, SettingsConfigDict

from staffhub.errors import ConfigurationError

logger = logging.getLogger("staffhub.client.config")


class ClientConfig(BaseSettings):
    url: str = ""
    api_key: str = ""
    timeout_seconds: float = 10.0

    model_config = SettingsConfigDict(
        env_prefix="STAFFHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def missing(self) -> list[str]:
        missing: list[str] = []
        if not self.url.strip():
            missing.append("STAFFHUB_URL")
        if not self.api_key.strip():
            missing.append("STAFFHUB_API_KEY")
        return missing

    @classmethod
    def from_env(cls) -> "ClientConfig":
        config = cls()
        missing = config.missing()
        if missing:
            logger.error("client_config_missing", extra={"missing": missing})
            raise ConfigurationError(missing)
        return config
