from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    bot_token: str = Field(default="", alias="BOT_TOKEN")
    admin_user_id: int = Field(default=0, alias="ADMIN_USER_ID")

    nvidia_api_key: str = Field(default="", alias="NVIDIA_API_KEY")
    nvidia_model: str = Field(default="meta/llama-3.1-70b-instruct", alias="NVIDIA_MODEL")
    nvidia_base_url: str = Field(default="https://integrate.api.nvidia.com/v1", alias="NVIDIA_BASE_URL")
    gemini_api_key: str = Field(default="", alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.0-flash", alias="GEMINI_MODEL")

    google_sheets_id: str = Field(default="", alias="GOOGLE_SHEETS_ID")
    google_creds_path: str = Field(default="./credentials.json", alias="GOOGLE_CREDS_PATH")
    google_sheets_worksheet: str = Field(default="", alias="GOOGLE_SHEETS_WORKSHEET")

    hackathon_name: str = Field(default="TechHack 2026", alias="HACKATHON_NAME")
    hackathon_theme: str = Field(default="AI for Social Good", alias="HACKATHON_THEME")
    organizer_name: str = Field(default="Tech Club", alias="ORGANIZER_NAME")

    email_user: str = Field(default="", alias="EMAIL_USER")
    email_app_password: str = Field(default="", alias="EMAIL_APP_PASSWORD")
    smtp_host: str = Field(default="smtp.gmail.com", alias="SMTP_HOST")
    smtp_port: int = Field(default=465, alias="SMTP_PORT")
    smtp_use_ssl: bool = Field(default=True, alias="SMTP_USE_SSL")

    # pause between scoring calls in batch mode (backend rate limits)
    batch_delay_seconds: float = Field(default=1.0, ge=0, alias="BATCH_DELAY_SECONDS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def sheets_configured(self) -> bool:
        return bool(self.google_sheets_id)

    @property
    def email_configured(self) -> bool:
        return bool(self.email_user and self.email_app_password)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
