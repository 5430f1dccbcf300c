import os

from core.normalizer import ChatMessageEnvelope

COLA_JSON = (
    '{"inventory":[{"label":"Cola","brand":"","estimated_quantity":12,'
    '"position":"haut gauche","confidence":0.9}]}'
)

# Big enough to look like an image; content is never decoded.
FAKE_JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 256


class FakeVisionClient:
    """Stands in for VisionInventoryClient; remembers what it was given."""

    def __init__(self, envelope=None, error=None):
        self.envelope = envelope if envelope is not None else ChatMessageEnvelope(content=COLA_JSON)
        self.error = error
        self.calls = []
        self.closed = False

    async def extract(self, image):
        self.calls.append({
            "path": image.path,
            "existed": os.path.exists(image.path),
            "content_type": image.content_type,
            "size": len(image.data),
        })
        if self.error is not None:
            raise self.error
        return self.envelope

    async def aclose(self):
        self.closed = True
