import sys
from types import SimpleNamespace

import pytest

from core.normalizer import (
    ChatMessageEnvelope,
    JsonObjectEnvelope,
    ResponsesOutputEnvelope,
    UnknownEnvelope,
    envelope_from_payload,
    normalize,
)
from helpers import COLA_JSON
from schemas.inventory import InventoryResult, UnparsableResult

COLA = {
    "label": "Cola",
    "brand": "",
    "estimated_quantity": 12,
    "position": "haut gauche",
    "confidence": 0.9,
}


def _chat_payload(content, refusal=None):
    return {"choices": [{"message": {"role": "assistant", "content": content, "refusal": refusal}}]}


class TestChatMessage:
    def test_cola_example_verbatim(self):
        result = normalize(ChatMessageEnvelope(content=COLA_JSON))
        assert isinstance(result, InventoryResult)
        assert len(result.inventory) == 1
        assert result.inventory[0].model_dump() == COLA

    def test_not_json(self):
        result = normalize(ChatMessageEnvelope(content="Sorry, I cannot process this."))
        assert isinstance(result, UnparsableResult)
        assert result.error == "invalid_json"
        assert result.raw == "Sorry, I cannot process this."
        assert result.inventory == []

    def test_refusal(self):
        result = normalize(ChatMessageEnvelope(content=None, refusal="I can't help with that."))
        assert isinstance(result, UnparsableResult)
        assert result.error == "refusal"
        assert result.raw == "I can't help with that."

    def test_empty_content(self):
        result = normalize(ChatMessageEnvelope(content=""))
        assert isinstance(result, UnparsableResult)
        assert result.error == "missing_content"

    def test_schema_enforced_requires_inventory_key(self):
        result = normalize(ChatMessageEnvelope(content='[{"label": "Cola"}]'))
        assert isinstance(result, UnparsableResult)
        assert result.error == "unexpected_document"
        assert result.raw == '[{"label": "Cola"}]'

    def test_empty_inventory_is_valid(self):
        result = normalize(ChatMessageEnvelope(content='{"inventory": []}'))
        assert isinstance(result, InventoryResult)
        assert result.inventory == []


class TestItemCoercion:
    def test_items_without_label_are_dropped(self):
        content = '{"inventory": [{"label": "  "}, {"brand": "X"}, "junk", {"label": "Eau"}]}'
        result = normalize(ChatMessageEnvelope(content=content))
        assert [i.label for i in result.inventory] == ["Eau"]

    def test_numeric_fields_fall_back_to_sentinels(self):
        content = (
            '{"inventory": [{"label": "Chips", "brand": null, "estimated_quantity": "beaucoup",'
            ' "position": "", "confidence": "?"}]}'
        )
        item = normalize(ChatMessageEnvelope(content=content)).inventory[0]
        assert item.brand == ""
        assert item.estimated_quantity == 0
        assert item.position is None
        assert item.confidence == 0.0

    def test_values_are_clamped(self):
        content = '{"inventory": [{"label": "Lait", "estimated_quantity": -4, "confidence": 1.7}]}'
        item = normalize(ChatMessageEnvelope(content=content)).inventory[0]
        assert item.estimated_quantity == 0
        assert item.confidence == 1.0

    def test_fractional_quantity_is_rounded(self):
        content = '{"inventory": [{"label": "Lait", "estimated_quantity": "11.6"}]}'
        item = normalize(ChatMessageEnvelope(content=content)).inventory[0]
        assert item.estimated_quantity == 12

    def test_scan_order_is_kept(self):
        content = '{"inventory": [{"label": "B"}, {"label": "A"}, {"label": "C"}]}'
        result = normalize(ChatMessageEnvelope(content=content))
        assert [i.label for i in result.inventory] == ["B", "A", "C"]


class TestResponsesOutput:
    def test_output_text_block(self):
        envelope = ResponsesOutputEnvelope(blocks=[{"type": "output_text", "text": COLA_JSON}])
        result = normalize(envelope)
        assert isinstance(result, InventoryResult)
        assert result.inventory[0].model_dump() == COLA

    def test_already_decoded_block(self):
        envelope = ResponsesOutputEnvelope(blocks=[{"type": "output_json", "json": {"inventory": [COLA]}}])
        result = normalize(envelope)
        assert isinstance(result, InventoryResult)
        assert result.inventory[0].label == "Cola"

    def test_output_text_without_text_uses_parsed(self):
        block = SimpleNamespace(type="output_text", text=None, parsed={"inventory": [COLA]})
        result = normalize(ResponsesOutputEnvelope(blocks=[block]))
        assert isinstance(result, InventoryResult)
        assert result.inventory[0].model_dump() == COLA

    def test_output_text_without_text_or_parsed(self):
        block = SimpleNamespace(type="output_text", text="", parsed=None)
        result = normalize(ResponsesOutputEnvelope(blocks=[block]))
        assert isinstance(result, UnparsableResult)
        assert result.error == "missing_content"

    def test_parsed_attribute_block(self):
        block = SimpleNamespace(type="parsed", parsed={"inventory": [COLA]})
        result = normalize(ResponsesOutputEnvelope(blocks=[block]))
        assert isinstance(result, InventoryResult)

    def test_output_text_not_json(self):
        envelope = ResponsesOutputEnvelope(blocks=[{"type": "output_text", "text": "nope"}])
        result = normalize(envelope)
        assert isinstance(result, UnparsableResult)
        assert result.error == "invalid_json"
        assert result.raw == "nope"

    def test_refusal_block(self):
        envelope = ResponsesOutputEnvelope(blocks=[{"type": "refusal", "refusal": "no"}])
        result = normalize(envelope)
        assert result.error == "refusal"
        assert result.raw == "no"

    def test_empty_output(self):
        result = normalize(ResponsesOutputEnvelope(blocks=[]))
        assert isinstance(result, UnparsableResult)
        assert result.error == "missing_content"

    def test_unexpected_tag(self):
        result = normalize(ResponsesOutputEnvelope(blocks=[{"type": "audio", "data": "..."}]))
        assert isinstance(result, UnparsableResult)
        assert result.error == "missing_content"
        assert "audio" in result.raw


class TestJsonObject:
    def test_missing_content_is_distinguishable(self):
        result = normalize(JsonObjectEnvelope(content=None))
        assert isinstance(result, UnparsableResult)
        assert result.error == "missing_content"

    def test_plain_json(self):
        result = normalize(JsonObjectEnvelope(content=COLA_JSON))
        assert result.inventory[0].model_dump() == COLA

    def test_fenced_json(self):
        result = normalize(JsonObjectEnvelope(content="```json\n" + COLA_JSON + "\n```"))
        assert isinstance(result, InventoryResult)
        assert result.inventory[0].label == "Cola"

    def test_json_embedded_in_prose(self):
        result = normalize(JsonObjectEnvelope(content="Voici l'inventaire : " + COLA_JSON + " Merci."))
        assert isinstance(result, InventoryResult)
        assert result.inventory[0].label == "Cola"

    def test_bare_list_and_items_key(self):
        assert normalize(JsonObjectEnvelope(content='[{"label": "Cola"}]')).inventory[0].label == "Cola"
        assert normalize(JsonObjectEnvelope(content='{"items": [{"label": "Cola"}]}')).inventory[0].label == "Cola"

    def test_unexpected_document(self):
        result = normalize(JsonObjectEnvelope(content='{"products": 3}'))
        assert isinstance(result, UnparsableResult)
        assert result.error == "unexpected_document"
        assert result.raw == '{"products": 3}'

    def test_not_json(self):
        result = normalize(JsonObjectEnvelope(content="Sorry, I cannot process this."))
        assert result.error == "invalid_json"
        assert result.raw == "Sorry, I cannot process this."


class TestDecodeFailures:
    def test_oversized_integer_literal(self):
        content = '{"inventory":[{"label":"Cola","estimated_quantity":' + "9" * 5000 + "}]}"
        result = normalize(ChatMessageEnvelope(content=content))
        if hasattr(sys, "get_int_max_str_digits"):
            assert isinstance(result, UnparsableResult)
            assert result.error == "invalid_json"
            assert result.raw == content
        else:
            # Interpreters without the digit limit parse it; the quantity becomes a sentinel.
            assert result.inventory[0].estimated_quantity == 0

    @pytest.mark.parametrize("envelope_type", [ChatMessageEnvelope, JsonObjectEnvelope])
    def test_pathological_nesting(self, envelope_type):
        content = "[" * 100000 + "]" * 100000
        result = normalize(envelope_type(content=content))
        assert isinstance(result, UnparsableResult)
        assert result.error == "invalid_json"
        assert result.raw == content


def test_unknown_envelope():
    result = normalize(UnknownEnvelope(raw={"foo": "bar"}))
    assert isinstance(result, UnparsableResult)
    assert result.error == "unknown_shape"
    assert result.raw == '{"foo": "bar"}'


def test_unsupported_envelope_object():
    result = normalize(object())
    assert isinstance(result, UnparsableResult)
    assert result.error == "unknown_shape"


class TestEnvelopeFromPayload:
    def test_chat_schema(self):
        envelope = envelope_from_payload("chat_schema", _chat_payload(COLA_JSON))
        assert envelope == ChatMessageEnvelope(content=COLA_JSON, refusal=None)

    def test_chat_schema_refusal(self):
        envelope = envelope_from_payload("chat_schema", _chat_payload(None, refusal="no"))
        assert envelope.refusal == "no"

    def test_chat_json_object(self):
        envelope = envelope_from_payload("chat_json_object", _chat_payload("{}"))
        assert envelope == JsonObjectEnvelope(content="{}")

    def test_chat_attribute_objects(self):
        message = SimpleNamespace(content=COLA_JSON, refusal=None)
        payload = SimpleNamespace(choices=[SimpleNamespace(message=message)])
        envelope = envelope_from_payload("chat_json_object", payload)
        assert envelope == JsonObjectEnvelope(content=COLA_JSON)

    @pytest.mark.parametrize("payload", [{"choices": []}, {"choices": [{}]}, {"id": "x"}, None])
    def test_chat_without_message(self, payload):
        assert isinstance(envelope_from_payload("chat_schema", payload), UnknownEnvelope)

    def test_responses_message_item(self):
        payload = {
            "output": [
                {"type": "reasoning", "summary": []},
                {"type": "message", "content": [{"type": "output_text", "text": COLA_JSON}]},
            ]
        }
        envelope = envelope_from_payload("responses", payload)
        assert envelope == ResponsesOutputEnvelope(blocks=[{"type": "output_text", "text": COLA_JSON}])

    def test_responses_flat_output(self):
        payload = {"output": [{"type": "output_text", "text": COLA_JSON}]}
        envelope = envelope_from_payload("responses", payload)
        assert normalize(envelope).inventory[0].label == "Cola"

    def test_responses_without_output(self):
        assert isinstance(envelope_from_payload("responses", {"choices": []}), UnknownEnvelope)

    def test_unknown_call_style(self):
        assert isinstance(envelope_from_payload("completions", _chat_payload("{}")), UnknownEnvelope)
