"""Bounded repair loop for attribute-extraction responses.

A rejected response is sent back to the model together with the validation
errors so the next attempt can correct it. Adapter transport errors are not
handled here; they reach the matching tier, which records them as a miss.
"""

import logging
from typing import List

from llm_extraction.adapter import BaseLLMAdapter
from llm_extraction.prompt_builder import build_repair_prompt
from llm_extraction.schema import ProductAttributes
from llm_extraction.validator import LLMOutputValidationError, validate_llm_output

logger = logging.getLogger(__name__)


class LLMRetryExhaustedError(Exception):
    """Every attempt produced output that failed validation."""

    def __init__(self, history: List[LLMOutputValidationError]) -> None:
        self.history = history
        self.attempts = len(history)
        super().__init__(
            f"Attribute extraction rejected {self.attempts} time(s); "
            f"last error: {history[-1]}"
        )

    @property
    def last_error(self) -> LLMOutputValidationError:
        return self.history[-1]


def extract_with_retry(
    adapter: BaseLLMAdapter,
    prompt: str,
    max_retries: int = 2,
) -> ProductAttributes:
    """Ask the model for attributes, repairing invalid replies.

    The first attempt uses ``prompt`` as-is; each retry appends the errors
    of the previous reply.

    Raises:
        LLMRetryExhaustedError: If ``1 + max_retries`` replies all fail
            validation.
    """
    history: List[LLMOutputValidationError] = []
    current_prompt = prompt

    for _ in range(1 + max(0, max_retries)):
        raw = adapter.generate(current_prompt)
        try:
            attributes = validate_llm_output(raw)
        except LLMOutputValidationError as exc:
            history.append(exc)
            logger.warning(
                "Attribute reply rejected attempt=%d stage=%s errors=%s",
                len(history),
                exc.stage,
                "; ".join(exc.errors),
            )
            current_prompt = build_repair_prompt(prompt, exc)
            continue

        if history:
            logger.info("Attribute reply accepted after %d repair(s)", len(history))
        return attributes

    raise LLMRetryExhaustedError(history)
