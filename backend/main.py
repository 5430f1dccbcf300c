"""
Shelf inventory API.

The app is built by the `create_app` factory; there is no module-level `app`.
Run it with `uvicorn main:create_app --factory --port 8080` or `python main.py`.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from core.config import Settings
from core.log_config import configure_logging
from core.openai_client import VisionInventoryClient
from routers.analyze import router as analyze_router
from routers.pages import router as pages_router

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, vision_client: Optional[VisionInventoryClient] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings.warn_if_incomplete()
        logger.info(
            "Shelf inventory API ready on port %s (model=%s, call style=%s, csv export=%s)",
            settings.port, settings.openai_model, settings.call_style, settings.csv_export_enabled,
        )
        yield
        await app.state.vision_client.aclose()

    app = FastAPI(
        title="Shelf Inventory API",
        description="Extracts a product inventory from a photo of a store shelf",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.vision_client = vision_client or VisionInventoryClient(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid upload: expected an image in field 'file'."})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": "Internal API error"})

    app.include_router(pages_router, tags=["pages"])
    app.include_router(analyze_router, tags=["analyze"])

    return app


if __name__ == "__main__":
    uvicorn.run("main:create_app", factory=True, host="0.0.0.0", port=Settings.from_env().port)
