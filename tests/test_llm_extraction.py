import json

import pytest
from pydantic import ValidationError

from llm_extraction.adapter import BaseLLMAdapter, MockLLMAdapter, create_llm_adapter
from llm_extraction.prompt_builder import AttributePromptBuilder
from llm_extraction.retry import LLMRetryExhaustedError, extract_with_retry
from llm_extraction.schema import ProductAttributes
from llm_extraction.validator import LLMOutputValidationError, validate_llm_output


class ScriptedAdapter(BaseLLMAdapter):
    def __init__(self, *replies: str) -> None:
        self.replies = list(replies)
        self.prompts: list[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.replies.pop(0)


def _reply(**overrides) -> str:
    payload = {
        "brand": "Brother",
        "product_type": "toner_cartridge",
        "model": "TN760",
        "color": "black",
        "size": "high",
        "search_query": "Brother TN760 Black Toner",
    }
    payload.update(overrides)
    return json.dumps(payload)


def test_schema_normalizes_size_aliases() -> None:
    attributes = ProductAttributes(search_query="HP 64XL", size="XL", brand="  ")

    assert attributes.size == "high"
    assert attributes.brand is None


def test_schema_rejects_extra_fields() -> None:
    with pytest.raises(ValidationError):
        ProductAttributes(search_query="HP 64", confidence=0.9)


def test_validator_reads_fenced_reply_and_drops_unknown_keys() -> None:
    raw = "```json\n" + _reply(notes="looks like toner") + "\n```"

    attributes = validate_llm_output(raw)

    assert attributes.model == "TN760"
    assert attributes.size == "high"


def test_validator_treats_placeholders_as_missing() -> None:
    attributes = validate_llm_output(_reply(color="unknown", model="N/A"))

    assert attributes.color is None
    assert attributes.model is None


def test_validator_reports_stage() -> None:
    with pytest.raises(LLMOutputValidationError) as parse_error:
        validate_llm_output("I could not find this product.")
    assert parse_error.value.stage == "json_parse"

    with pytest.raises(LLMOutputValidationError) as schema_error:
        validate_llm_output(json.dumps({"brand": "HP"}))
    assert schema_error.value.stage == "schema"
    assert schema_error.value.errors == ["search_query: Field required"]


def test_retry_repairs_with_feedback() -> None:
    adapter = ScriptedAdapter(json.dumps({"brand": "HP"}), _reply())
    prompt = AttributePromptBuilder().build_prompt("Brother TN760 toner", "TN760")

    attributes = extract_with_retry(adapter, prompt, max_retries=2)

    assert attributes.brand == "Brother"
    assert adapter.prompts[0] == prompt
    assert adapter.prompts[1].startswith(prompt)
    assert "search_query: Field required" in adapter.prompts[1]


def test_retry_exhaustion_keeps_history() -> None:
    adapter = ScriptedAdapter("nope", "still nope")

    with pytest.raises(LLMRetryExhaustedError) as exc_info:
        extract_with_retry(adapter, "prompt", max_retries=1)

    assert exc_info.value.attempts == 2
    assert exc_info.value.last_error.stage == "json_parse"


def test_prompt_includes_description_and_sku() -> None:
    prompt = AttributePromptBuilder().build_prompt(" HP 64 Black Ink ", "N9J90AN")

    assert 'Customer Product: "HP 64 Black Ink"' in prompt
    assert 'Customer SKU: "N9J90AN"' in prompt
    assert '"search_query"' in prompt


def test_adapter_factory() -> None:
    assert isinstance(create_llm_adapter(" Mock ", model="ignored"), MockLLMAdapter)

    with pytest.raises(ValueError, match="Unknown LLM adapter"):
        create_llm_adapter("anthropic-local")
