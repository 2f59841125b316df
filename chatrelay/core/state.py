# chatrelay/core/state.py
from __future__ import annotations

from datetime import datetime, timezone

from chatrelay.core.config import settings
from chatrelay.services.connection_registry import ConnectionRegistry
from chatrelay.services.room_directory import RoomDirectory
from chatrelay.services.connection_manager import ConnectionManager
from chatrelay.services.session_handler import SessionProtocolHandler
from chatrelay.services.upload_gateway import UploadGateway

# Global singletons for app state
registry = ConnectionRegistry()
room_directory = RoomDirectory(registry)
connection_manager = ConnectionManager(directory=room_directory)
session_handler = SessionProtocolHandler(
    registry=registry,
    directory=room_directory,
    manager=connection_manager,
)
upload_gateway = UploadGateway(
    upload_dir=settings.UPLOAD_DIR,
    url_prefix=settings.UPLOAD_URL_PREFIX,
    max_bytes=settings.MAX_UPLOAD_BYTES,
    allowed_types=settings.ALLOWED_MIME_TYPES,
)

# Metrics
app_start_time: datetime = datetime.now(timezone.utc)
