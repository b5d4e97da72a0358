from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_OPTIMIZATION_API = "http://api.resmush.it/ws.php"


class Settings(BaseSettings):
    app_name: str = "Image Optimization"
    database_url: str = "sqlite:///./backend/image_optimization.db"
    blobs_dir: str = "blobs"
    # Url prefix used for the images (needs to be public)
    site_url: str = "http://localhost:8000"
    image_optimization_api: Optional[str] = None
    bypass_previously_optimized: bool = False
    include_content_assets: bool = False
    request_timeout_s: int = 60
    user_agent: str = "ImageOptimizationJob/1.0"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore", frozen=True)

    @property
    def optimization_endpoint(self) -> str:
        return self.image_optimization_api or DEFAULT_OPTIMIZATION_API


settings = Settings()


def get_settings() -> Settings:
    return settings


def ensure_directories() -> None:
    Path(settings.blobs_dir).mkdir(parents=True, exist_ok=True)
