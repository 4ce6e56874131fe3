"""Prompt builder for product attribute extraction."""

import json
from typing import Optional

from llm_extraction.schema import ProductAttributes

_SCHEMA_JSON = json.dumps(ProductAttributes.model_json_schema(), indent=2)

_EXAMPLE_OUTPUT = json.dumps(
    {
        "brand": "Brother",
        "product_type": "toner_cartridge",
        "model": "TN760",
        "color": "black",
        "size": "high",
        "search_query": "Brother TN760 High Yield Black Toner",
    },
    indent=2,
)

_SYSTEM_INSTRUCTIONS = """\
You are an expert product matching agent for office supplies.
Given a customer's product description, identify its key attributes.

STRICT RULES:
- Use ONLY the description and SKU given below.
- Use null for any attribute you cannot identify.
- size must be one of standard, high, extra_high, super_high or null.
- Return strictly valid JSON matching the schema defined below.
- Do NOT include any text outside the JSON object.
"""


class AttributePromptBuilder:
    """Builds the deterministic extraction prompt for one line item."""

    def build_prompt(self, description: str, sku: Optional[str] = None) -> str:
        """Build the extraction prompt.

        Args:
            description: Raw product description from the customer's file.
            sku: Optional customer SKU shown to the model as extra context.

        Returns:
            A fully formatted prompt string ready for LLM consumption.
        """
        lines = [
            _SYSTEM_INSTRUCTIONS,
            f'Customer Product: "{description.strip()}"',
        ]
        if sku:
            lines.append(f'Customer SKU: "{sku.strip()}"')
        lines.extend(
            [
                "",
                "## Output schema",
                _SCHEMA_JSON,
                "",
                "## Example output",
                _EXAMPLE_OUTPUT,
            ]
        )
        return "\n".join(lines)


def build_repair_prompt(original_prompt: str, error: Exception) -> str:
    """Original prompt plus the reason the previous reply was rejected."""
    details = getattr(error, "errors", None) or [str(error)]
    lines = [
        original_prompt,
        "",
        "## Your previous reply was rejected",
        *(f"- {detail}" for detail in details),
        "Reply again with ONLY the corrected JSON object.",
    ]
    return "\n".join(lines)
