import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse

from core.config import Settings
from core.exporter import export_inventory
from core.normalizer import normalize
from core.openai_client import UpstreamError, VisionInventoryClient
from core.uploads import stored_upload
from schemas.inventory import AnalyzeResponse, UnparsableResult

logger = logging.getLogger(__name__)

router = APIRouter()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_vision_client(request: Request) -> VisionInventoryClient:
    return request.app.state.vision_client


@router.post("/analyze")
async def analyze_image(
    file: Optional[UploadFile] = File(None),
    settings: Settings = Depends(get_settings),
    vision_client: VisionInventoryClient = Depends(get_vision_client),
):
    """
    Extract a shelf inventory from an uploaded photo.

    Unreadable model output is still a 200: the body then carries the
    error tag and the raw text instead of items.
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No image received.")

    content_type = (file.content_type or "").strip().lower()
    if content_type and content_type != "application/octet-stream" and not content_type.startswith("image/"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be an image")

    async with stored_upload(file, settings.upload_dir) as image:
        logger.info("Analyzing %s (%s, %d bytes)", image.filename, image.content_type, len(image.data))
        try:
            envelope = await vision_client.extract(image)
        except UpstreamError:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Internal API error",
            )
        result = normalize(envelope, image)

    if isinstance(result, UnparsableResult):
        return JSONResponse(content=result.model_dump())

    response = AnalyzeResponse(inventory=result.inventory)
    if settings.csv_export_enabled:
        try:
            response.csv_path = export_inventory(result, settings.export_dir)
            logger.info("Inventory exported to %s", response.csv_path)
        except OSError as e:
            logger.error("CSV export failed: %s", e)

    body = response.model_dump()
    if body["csv_path"] is None:
        del body["csv_path"]
    return JSONResponse(content=body)
