"""Request-scoped accessors for objects created in the application lifespan."""
from fastapi import Request

from ..services.ingestion_service import IngestionService
from ..shared.config.settings import Settings
from ..shared.storage import StorageClient


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> StorageClient:
    return request.app.state.storage


def get_ingestion_service(request: Request) -> IngestionService:
    """Ingestion service bound to the application's database and storage."""
    state = request.app.state
    return IngestionService(
        session_factory=state.db.session_factory,
        storage=state.storage,
        file_timeout=state.settings.ingest_file_timeout_seconds,
    )
