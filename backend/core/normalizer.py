"""
Normalization of upstream model responses into inventory results.

Every upstream call style is first wrapped in one of the envelope types
below (see ``envelope_from_payload``); ``normalize`` then has exactly one
decode path per envelope. Malformed content never raises: it comes back as
an ``UnparsableResult`` carrying the raw text and an error tag.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

from pydantic import ValidationError

from core.uploads import UploadedImage
from schemas.inventory import InventoryItem, InventoryResult, UnparsableResult

logger = logging.getLogger(__name__)

NormalizedResult = Union[InventoryResult, UnparsableResult]

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)


@dataclass
class ChatMessageEnvelope:
    """Chat completion whose message content is a JSON string."""

    content: Optional[str]
    refusal: Optional[str] = None
    schema_enforced: bool = True


@dataclass
class ResponsesOutputEnvelope:
    """Responses API output: a list of tagged content blocks."""

    blocks: List[Any] = field(default_factory=list)


@dataclass
class JsonObjectEnvelope:
    """Chat completion in json_object mode: freeform text expected to hold JSON."""

    content: Optional[str]


@dataclass
class UnknownEnvelope:
    raw: Any = None


UpstreamEnvelope = Union[ChatMessageEnvelope, ResponsesOutputEnvelope, JsonObjectEnvelope, UnknownEnvelope]


def _get(obj: Any, name: str, default: Any = None) -> Any:
    # SDK responses are attribute objects; tests and replays use plain dicts.
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _raw_text(obj: Any) -> str:
    if obj is None:
        return ""
    if isinstance(obj, str):
        return obj
    dump = getattr(obj, "model_dump_json", None)
    if callable(dump):
        text = dump()
        if isinstance(text, str):
            return text
    try:
        return json.dumps(obj, ensure_ascii=False, default=str)
    except (TypeError, ValueError, RecursionError):
        return repr(obj)


def envelope_from_payload(call_style: str, payload: Any) -> UpstreamEnvelope:
    """Wrap a raw provider response in the envelope matching its call style."""
    if payload is None:
        return UnknownEnvelope(raw=None)

    if call_style in ("chat_schema", "chat_json_object"):
        choices = _get(payload, "choices")
        if not choices:
            return UnknownEnvelope(raw=payload)
        message = _get(choices[0], "message")
        if message is None:
            return UnknownEnvelope(raw=payload)
        content = _get(message, "content")
        if call_style == "chat_json_object":
            return JsonObjectEnvelope(content=content)
        return ChatMessageEnvelope(content=content, refusal=_get(message, "refusal"))

    if call_style == "responses":
        output = _get(payload, "output")
        if output is None:
            return UnknownEnvelope(raw=payload)
        output = list(output)
        # Reasoning models put reasoning items before the message.
        for item in output:
            if _get(item, "type") == "message":
                return ResponsesOutputEnvelope(blocks=list(_get(item, "content") or []))
        return ResponsesOutputEnvelope(blocks=output)

    return UnknownEnvelope(raw=payload)


def _strip_fences(text: str) -> str:
    m = _FENCE_RE.match(text)
    return m.group(1) if m else text


def _decode_strict(text: str) -> Any:
    return json.loads(text)


def _decode_lenient(text: str) -> Any:
    candidate = _strip_fences(text)
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        start, end = candidate.find("{"), candidate.rfind("}")
        if start == -1 or end <= start:
            raise
        return json.loads(candidate[start:end + 1])


def _items_from(raw_items: List[Any]) -> List[InventoryItem]:
    items: List[InventoryItem] = []
    for idx, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            logger.warning("Dropping inventory entry %d: not an object (%r)", idx, raw)
            continue
        try:
            items.append(InventoryItem.model_validate(raw))
        except ValidationError as e:
            logger.warning("Dropping inventory entry %d: %s", idx, e.errors()[0].get("msg"))
    return items


def _from_document(doc: Any, raw_text: str, trusted: bool) -> NormalizedResult:
    if isinstance(doc, dict) and isinstance(doc.get("inventory"), list):
        return InventoryResult(inventory=_items_from(doc["inventory"]))

    if not trusted:
        # Freeform answers sometimes use a bare list or an "items" key.
        if isinstance(doc, list):
            return InventoryResult(inventory=_items_from(doc))
        if isinstance(doc, dict) and isinstance(doc.get("items"), list):
            return InventoryResult(inventory=_items_from(doc["items"]))

    return UnparsableResult(error="unexpected_document", raw=raw_text or _raw_text(doc))


def _from_text(text: str, *, trusted: bool) -> NormalizedResult:
    try:
        doc = _decode_strict(text) if trusted else _decode_lenient(text)
    except (ValueError, RecursionError) as e:
        # JSONDecodeError is a ValueError; huge int literals and deep nesting are not.
        logger.warning("Upstream content is not valid JSON: %s", str(e)[:200])
        return UnparsableResult(error="invalid_json", raw=text)
    return _from_document(doc, text, trusted)


def _normalize_chat(envelope: ChatMessageEnvelope) -> NormalizedResult:
    if envelope.refusal:
        return UnparsableResult(error="refusal", raw=envelope.refusal)
    if not envelope.content:
        return UnparsableResult(error="missing_content", raw="")
    return _from_text(envelope.content, trusted=envelope.schema_enforced)


def _normalize_responses(envelope: ResponsesOutputEnvelope) -> NormalizedResult:
    if not envelope.blocks:
        return UnparsableResult(error="missing_content", raw="")

    block = envelope.blocks[0]
    tag = _get(block, "type")
    parsed = _get(block, "parsed")
    if parsed is None:
        parsed = _get(block, "json")

    if tag == "output_text":
        text = _get(block, "text")
        if text:
            return _from_text(text, trusted=True)
        if parsed is not None:
            return _from_document(parsed, "", trusted=True)
        return UnparsableResult(error="missing_content", raw=_raw_text(block))

    if tag == "output_json" or parsed is not None:
        if parsed is None:
            return UnparsableResult(error="missing_content", raw=_raw_text(block))
        return _from_document(parsed, "", trusted=True)

    if tag == "refusal":
        return UnparsableResult(error="refusal", raw=_get(block, "refusal") or "")

    return UnparsableResult(error="missing_content", raw=_raw_text(block))


def _normalize_json_object(envelope: JsonObjectEnvelope) -> NormalizedResult:
    if envelope.content is None:
        logger.error("json_object completion carried no message content")
        return UnparsableResult(error="missing_content", raw="")
    return _from_text(envelope.content, trusted=False)


def normalize(envelope: UpstreamEnvelope, image: Optional[UploadedImage] = None) -> NormalizedResult:
    """Turn an upstream envelope into an ``InventoryResult`` or ``UnparsableResult``."""
    if isinstance(envelope, ChatMessageEnvelope):
        result = _normalize_chat(envelope)
    elif isinstance(envelope, ResponsesOutputEnvelope):
        result = _normalize_responses(envelope)
    elif isinstance(envelope, JsonObjectEnvelope):
        result = _normalize_json_object(envelope)
    elif isinstance(envelope, UnknownEnvelope):
        logger.error("Unknown upstream response shape")
        result = UnparsableResult(error="unknown_shape", raw=_raw_text(envelope.raw))
    else:
        logger.error("Unsupported envelope type %s", type(envelope).__name__)
        result = UnparsableResult(error="unknown_shape", raw=_raw_text(envelope))

    source = f"{image.filename} ({len(image.data)} bytes)" if image is not None else "<no image>"
    if isinstance(result, UnparsableResult):
        logger.warning("Unparsable upstream result for %s: %s", source, result.error)
    else:
        logger.info("Extracted %d inventory items from %s", len(result.inventory), source)
    return result
