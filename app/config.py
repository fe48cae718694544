from pydantic_settings import BaseSettings

REQUIRED_ENV_NAMES = {
    "database_url": "DATABASE_URL",
    "line_channel_access_token": "LINE_CHANNEL_ACCESS_TOKEN",
    "line_channel_secret": "LINE_CHANNEL_SECRET",
    "openai_api_key": "OPENAI_API_KEY",
}


class ConfigurationError(RuntimeError):
    """Raised when a required setting is missing."""


class Settings(BaseSettings):
    database_url: str = ""
    auto_create_tables: bool = True

    line_channel_access_token: str = ""
    line_channel_secret: str = ""
    line_api_base_url: str = "https://api.line.me/v2/bot"

    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = "https://api.openai.com/v1/chat/completions"
    llm_timeout_seconds: float = 60.0

    admin_token: str = ""
    cors_allow_origins: str = "*"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

    def missing(self, *fields: str) -> list[str]:
        """Return env names of the given fields that are empty."""
        return [REQUIRED_ENV_NAMES.get(field, field.upper()) for field in fields if not getattr(self, field)]

    def require(self, *fields: str) -> None:
        """Raise ConfigurationError for the first missing field."""
        for env_name in self.missing(*fields):
            raise ConfigurationError(f"{env_name} environment variable is not set")


settings = Settings()
