# chatrelay/core/config.py
import os
from typing import List
from dotenv import load_dotenv

class Settings:
    """
    Setup environment variables.
        - HOST / PORT where uvicorn binds
        - CORS_ORIGINS comma separated list of allowed origins ("*" for any)
        - UPLOAD_DIR directory uploaded media is written to and served from
        - MAX_UPLOAD_MB upload size cap in megabytes
        - LOG_LEVEL root logger level
    """

    # Load environment variables from the .env file
    load_dotenv()

    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "4000"))

    CORS_ORIGINS: List[str] = [
        origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
    ]

    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
    UPLOAD_URL_PREFIX: str = "/uploads/"
    MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_MB", "5")) * 1024 * 1024
    ALLOWED_MIME_TYPES: frozenset = frozenset({
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "video/mp4",
        "video/webm",
        "audio/mpeg",
        "audio/ogg",
        "application/pdf",
    })

    MAX_NAME_LENGTH: int = 30
    MAX_MESSAGE_LENGTH: int = 2000

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
