from pathlib import Path
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    APP_NAME: str = "Site Design Extractor"
    TIMEOUT_SECS: float = 30.0
    USER_AGENT: str = ("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                       "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36")
    LOG_LEVEL: str = "INFO"

    # rendering session used for computed styles
    RENDER_ENABLED: bool = True
    RENDER_TIMEOUT_SECS: float = 30.0
    RENDER_SETTLE_TIMEOUT_SECS: float = 10.0
    VIEWPORT_WIDTH: int = 1440
    VIEWPORT_HEIGHT: int = 900

    # asset storage, served statically as {ASSETS_PUBLIC_PREFIX}/{project_id}/{filename}
    ASSETS_DIR: Path = Path("cloned-assets")
    ASSETS_PUBLIC_PREFIX: str = "/cloned-assets"
    ASSET_TIMEOUT_SECS: float = 30.0
    ASSET_MAX_BYTES: int = 10 * 1024 * 1024
    ASSET_BATCH_SIZE: int = 5
    MAX_HERO_IMAGES: int = 3
    MAX_GALLERY_IMAGES: int = 12
    MAX_CLIENT_LOGOS: int = 10
    MAX_BACKGROUND_IMAGES: int = 5

    class Config:
        env_file = ".env"

settings = Settings()
