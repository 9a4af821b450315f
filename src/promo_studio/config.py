from __future__ import annotations

import logging

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Loads keys from process env, and also from a local .env file for convenience.
    model_config = SettingsConfigDict(env_prefix="", extra="ignore", env_file=".env", env_file_encoding="utf-8")

    log_level: str = "INFO"

    # Managed backend
    supabase_url: str | None = None
    supabase_service_role_key: str | None = None

    # Media library (local stand-in for the image CDN)
    media_dir: str = "data/media"
    public_base_url: str = "http://localhost:8000"

    # Generative image provider
    fal_api_key: str | None = None
    fal_model_id: str = "fal-ai/nano-banana/edit"
    studio_provider: str = "fal"  # fal|gemini
    studio_num_images: int = 4

    gemini_api_key: str | None = None
    gemini_image_model: str = "gemini-2.5-flash-image-preview"

    # Banner template provider
    abyssale_base_url: str = "https://api.abyssale.com"
    abyssale_settings_key: str = "abyssale_api_key"
    http_timeout_seconds: float = 120.0

    # Local dev studio server
    ai_server_port: int = 4000
    dev_model_id: str = "fal-ai/nano-banana-2"


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
