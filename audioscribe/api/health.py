# audioscribe/api/health.py
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/db")
async def database_health_check(request: Request):
    """Test database connectivity with a trivial query."""
    engine = request.app.state.engine
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return JSONResponse(
            {"status": "unhealthy", "dialect": engine.dialect.name, "error": str(e)},
            status_code=500,
        )
    return {"status": "healthy", "dialect": engine.dialect.name}


@router.get("/")
async def app_health_check():
    """Basic application health check."""
    return {"status": "healthy", "service": "audioscribe-backend"}
