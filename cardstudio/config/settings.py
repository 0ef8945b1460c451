# cardstudio/config/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal, Optional


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # API
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Card Studio"

    # CORS
    ALLOWED_HOSTS: List[str] = ["*"]

    # Auth
    BASIC_AUTH_USERNAME: str = "admin"
    BASIC_AUTH_PASSWORD: str = "secret"

    # Templates & fonts
    TEMPLATES_DIR: str = "templates"
    TEMPLATE_CATALOG_FILE: str = "templates.json"
    FONTS_DIR: str = "fonts"
    REQUEST_TIMEOUT: int = 30
    MAX_UPLOAD_SIDE: int = 4096

    # Preview box
    PREVIEW_MAX_WIDTH: int = 400
    PREVIEW_MAX_HEIGHT: int = 570

    # Sessions (idle ones are evicted when a new session is created)
    SESSION_IDLE_TTL: int = 1800
    MAX_SESSIONS: int = 64

    # Export
    EXPORT_BASENAME: str = "birthday-card"
    JPEG_QUALITY: int = 95
    SAVE_BACKEND: Literal["download", "local", "cloudinary"] = "download"
    EXPORT_DIR: str = "exports"

    # Cloudinary (either use CLOUDINARY_URL or the 3 fields below)
    CLOUDINARY_URL: Optional[str] = None
    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[str] = None
    CLOUDINARY_FOLDER: str = "birthday-cards"

    # Env
    ENVIRONMENT: str = "development"
    DEBUG: bool = True


settings = Settings()
