import base64
import logging
from typing import Any, Dict, List, Optional

import openai

from core.config import Settings
from core.normalizer import UpstreamEnvelope, envelope_from_payload
from core.prompts import INVENTORY_JSON_SCHEMA, INVENTORY_PROMPT, SCHEMA_NAME, SYSTEM_PROMPT
from core.uploads import UploadedImage

logger = logging.getLogger(__name__)


class UpstreamError(RuntimeError):
    """The model provider call itself failed (network, auth, quota...)."""


def image_data_url(image: UploadedImage) -> str:
    b64 = base64.b64encode(image.data).decode("utf-8")
    return f"data:{image.content_type};base64,{b64}"


class VisionInventoryClient:
    """Sends a shelf photo to OpenAI using the configured call style."""

    def __init__(self, settings: Settings, client: Optional[Any] = None) -> None:
        self.settings = settings
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=self.settings.openai_api_key or None)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    def _chat_messages(self, image: UploadedImage) -> List[Dict[str, Any]]:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": INVENTORY_PROMPT},
                    {"type": "image_url", "image_url": {"url": image_data_url(image)}},
                ],
            },
        ]

    async def _chat_schema(self, client: Any, image: UploadedImage) -> Any:
        return await client.chat.completions.create(
            model=self.settings.openai_model,
            messages=self._chat_messages(image),
            response_format={
                "type": "json_schema",
                "json_schema": {"name": SCHEMA_NAME, "schema": INVENTORY_JSON_SCHEMA, "strict": True},
            },
        )

    async def _chat_json_object(self, client: Any, image: UploadedImage) -> Any:
        return await client.chat.completions.create(
            model=self.settings.openai_model,
            messages=self._chat_messages(image),
            response_format={"type": "json_object"},
        )

    async def _responses(self, client: Any, image: UploadedImage) -> Any:
        return await client.responses.create(
            model=self.settings.openai_model,
            instructions=SYSTEM_PROMPT,
            input=[
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": INVENTORY_PROMPT},
                        {"type": "input_image", "image_url": image_data_url(image)},
                    ],
                }
            ],
            text={
                "format": {
                    "type": "json_schema",
                    "name": SCHEMA_NAME,
                    "schema": INVENTORY_JSON_SCHEMA,
                    "strict": True,
                }
            },
        )

    async def extract(self, image: UploadedImage) -> UpstreamEnvelope:
        """
        Call the provider exactly once and wrap its answer in an envelope.

        Raises:
            UpstreamError: the provider could not be reached or refused the call.
        """
        style = self.settings.call_style
        calls = {
            "chat_schema": self._chat_schema,
            "chat_json_object": self._chat_json_object,
            "responses": self._responses,
        }
        call = calls.get(style, self._chat_schema)

        logger.info("Calling %s (%s) for %s", self.settings.openai_model, style, image.filename)
        try:
            payload = await call(self._get_client(), image)
        except openai.OpenAIError as e:
            logger.error("OpenAI call failed (%s): %s", type(e).__name__, e)
            raise UpstreamError(str(e)) from e

        return envelope_from_payload(style, payload)
