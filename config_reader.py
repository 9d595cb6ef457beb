from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    bot_token: str
    supabase_url: str
    supabase_key: str

    # Only the provisioning server needs the service-role key
    supabase_service_role_key: Optional[str] = None

    admin_chat_id: Optional[int] = None

    provisioning_url: str = "http://127.0.0.1:8080/create-user-account"
    provisioning_host: str = "0.0.0.0"
    provisioning_port: int = 8080

    timezone: str = "Asia/Manila"
    currency_symbol: str = "₱"
    session_refresh_margin_seconds: int = 300

    model_config = SettingsConfigDict(env_file=".env")


config = Settings()
