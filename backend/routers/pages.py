from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import FileResponse

from schemas.inventory import HealthResponse

STATIC_DIR = Path(__file__).resolve().parent.parent / "static"

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health():
    """Liveness check; never touches the model provider."""
    return HealthResponse()


@router.get("/", include_in_schema=False)
async def index():
    return FileResponse(STATIC_DIR / "index.html", media_type="text/html")
