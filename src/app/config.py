"""Configuration management using Pydantic settings."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "PATHING"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Marker packs (.taco / .zip). Created on first load if missing.
    markers_dir: Path = Path("~/.config/pathing/markers")
    markers_autoload: bool = True  # load packs during startup
    xml_chunk_size: int = 64 * 1024  # bytes fed to the XML pull parser per step


settings = Settings()
