"""Structured attribute schema returned by the product-extraction LLM."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProductAttributes(BaseModel):
    """Attributes the model may extract from a free-text line description."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        str_strip_whitespace=True,
    )

    brand: Optional[str] = None
    product_type: Optional[str] = None
    model: Optional[str] = None
    color: Optional[str] = None
    size: Optional[Literal["standard", "high", "extra_high", "super_high"]] = None
    search_query: str = Field(min_length=1)

    @field_validator("brand", "product_type", "model", "color", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("size", mode="before")
    @classmethod
    def _normalize_size(cls, value: object) -> object:
        if value is None:
            return None
        if isinstance(value, str):
            cleaned = value.strip().lower().replace("-", "_").replace(" ", "_")
            aliases = {"xl": "high", "hy": "high", "high_yield": "high", "xxl": "extra_high"}
            cleaned = aliases.get(cleaned, cleaned)
            return cleaned or None
        return value
