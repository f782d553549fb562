"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ALLOWED_ORIGINS: str = "*"

    # LLM Providers
    ANTHROPIC_API_KEY: str = ""
    OPENAI_API_KEY: str = ""
    LLM_TIMEOUT: int = 30
    LLM_MAX_RETRIES: int = 3

    # Google Workspace (Gmail delivery)
    GOOGLE_SERVICE_ACCOUNT_FILE: str = ""  # Path to service account JSON key file
    GOOGLE_DELEGATED_USER_EMAIL: str = ""  # Mailbox the service account sends as
    # Base64-encoded Google service account JSON (for containerized deployments)
    GOOGLE_SERVICE_ACCOUNT_JSON_B64: str = ""
    FROM_EMAIL: str = ""  # Defaults to GOOGLE_DELEGATED_USER_EMAIL when empty

    # Escalation
    TEAM_LEAD_EMAIL: str = "teamlead@company.com"

    # Azure DevOps (task sync)
    AZURE_DEVOPS_ORG_URL: str = ""  # e.g. https://dev.azure.com/my-org
    AZURE_DEVOPS_TOKEN: str = ""  # Personal access token
    AZURE_DEVOPS_PROJECT: str = ""
    AZURE_DEVOPS_API_VERSION: str = "7.0"

    # Meeting defaults
    DEFAULT_MEETING_TITLE: str = "Daily Standup"
    DEFAULT_MEETING_DURATION_MINUTES: int = 30
    DEFAULT_TIMEZONE: str = "UTC"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def sender_email(self) -> str:
        return self.FROM_EMAIL or self.GOOGLE_DELEGATED_USER_EMAIL

    @property
    def azure_devops_configured(self) -> bool:
        return bool(
            self.AZURE_DEVOPS_ORG_URL and self.AZURE_DEVOPS_TOKEN and self.AZURE_DEVOPS_PROJECT
        )

    def get_service_account_path(self) -> str | None:
        """Return path to Google service account JSON file.

        Prefers GOOGLE_SERVICE_ACCOUNT_FILE. Otherwise decodes
        GOOGLE_SERVICE_ACCOUNT_JSON_B64 into a temp file. None if neither is set.
        """
        if self.GOOGLE_SERVICE_ACCOUNT_FILE:
            return self.GOOGLE_SERVICE_ACCOUNT_FILE
        if self.GOOGLE_SERVICE_ACCOUNT_JSON_B64:
            import base64
            import os
            import tempfile

            decoded = base64.b64decode(self.GOOGLE_SERVICE_ACCOUNT_JSON_B64)
            tmp_path = os.path.join(tempfile.gettempdir(), "standup-service-account.json")
            with open(tmp_path, "wb") as f:
                f.write(decoded)
            return tmp_path
        return None


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
