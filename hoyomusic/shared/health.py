"""Health check endpoint."""
from fastapi import APIRouter, Request
from sqlalchemy import text

from .logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict:
    """Report liveness and database reachability."""
    database_ok = True
    db = getattr(request.app.state, "db", None)
    if db is not None:
        try:
            async with db.session() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            logger.warning("health_check_database_failed", error=str(e))
            database_ok = False

    return {
        "success": database_ok,
        "message": "HoYoMusic API is running" if database_ok else "Database unavailable",
        "database": "ok" if database_ok else "error",
    }
