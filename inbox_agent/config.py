"""
Centralized configuration using Pydantic Settings.

All environment variables are loaded and validated here.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Agent database (credentials, email logs, activities)
    agent_db_host: str = "localhost"
    agent_db_port: int = 5432
    agent_db_name: str = "inbox_agent"
    agent_db_user: str = "inbox_agent"
    agent_db_password: str = ""

    # Gmail OAuth client (tokens are stored per user)
    gmail_client_id: str = ""
    gmail_client_secret: str = ""
    gmail_token_uri: str = "https://oauth2.googleapis.com/token"
    gmail_timeout_seconds: float = 30.0

    # Classifier (OpenAI-compatible chat completions, key is stored per user)
    classifier_base_url: str = "https://api.openai.com/v1"
    classifier_model: str = "gpt-4o"
    classifier_timeout_seconds: float = 60.0

    # Monitoring
    scheduler_enabled: bool = True
    monitor_interval_minutes: int = 5
    max_emails_per_run: int = 10
    mail_query: str = "is:unread newer_than:1d"
    # Unset keeps "any log row means processed"; see InboxProcessor
    pending_retry_after_minutes: int | None = None

    # Reply drafting
    default_personal_description: str = "a job seeker"
    fallback_reply_text: str = "Thank you for your interest. Please find my resume attached."

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    @property
    def database_url(self) -> str:
        """PostgreSQL connection URL for the agent database."""
        return (
            f"postgresql://{self.agent_db_user}:{self.agent_db_password}"
            f"@{self.agent_db_host}:{self.agent_db_port}/{self.agent_db_name}"
        )


# Global settings instance
settings = Settings()
