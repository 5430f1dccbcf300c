import logging
import os
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from fastapi import UploadFile

logger = logging.getLogger(__name__)

EXT_TO_CONTENT_TYPE = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "heic": "image/heic",
    "heif": "image/heif",
}


@dataclass
class UploadedImage:
    path: str
    filename: str
    content_type: str
    data: bytes


def _content_type_for(upload: UploadFile) -> str:
    content_type = (upload.content_type or "").strip().lower()
    if content_type and content_type != "application/octet-stream":
        return content_type
    ext = os.path.splitext(upload.filename or "")[1].lower().lstrip(".")
    return EXT_TO_CONTENT_TYPE.get(ext, "image/jpeg")


def _remove(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Failed to delete temporary upload %s: %s", path, e)


@asynccontextmanager
async def stored_upload(upload: UploadFile, directory: str) -> AsyncIterator[UploadedImage]:
    """
    Store an uploaded image in a temporary file for the duration of a request.

    The file is removed when the block exits, whether it returns or raises.
    A failed removal is logged and never propagated.
    """
    os.makedirs(directory, exist_ok=True)
    data = await upload.read()
    filename = upload.filename or "upload"
    ext = os.path.splitext(filename)[1] or ".jpg"

    with tempfile.NamedTemporaryFile(dir=directory, suffix=ext, delete=False, mode="wb") as temp_file:
        temp_path = temp_file.name
        try:
            temp_file.write(data)
        except OSError:
            temp_file.close()
            _remove(temp_path)
            raise

    try:
        yield UploadedImage(
            path=temp_path,
            filename=filename,
            content_type=_content_type_for(upload),
            data=data,
        )
    finally:
        _remove(temp_path)
