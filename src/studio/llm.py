import logging
from typing import Any

import anthropic

from .config import settings
from .db import log_api_usage
from .errors import GenerationError

logger = logging.getLogger(__name__)


def get_client(api_key: str | None = None) -> anthropic.Anthropic:
    api_key = api_key if api_key is not None else settings.anthropic_api_key
    if not api_key:
        raise GenerationError("Anthropic API key not configured")
    return anthropic.Anthropic(api_key=api_key)


def first_text_block(blocks: Any) -> str | None:
    """Return the text of the first text-typed content block, or None."""
    for block in blocks or []:
        if getattr(block, "type", None) == "text":
            return block.text
    return None


def complete(
    client: anthropic.Anthropic,
    *,
    system: str,
    user: str,
    max_tokens: int,
    temperature: float,
    step: str,
    db_path: str = "",
) -> tuple[str, int]:
    """Send one completion request. Returns (text, total tokens).

    Raises GenerationError if the call fails or no text block comes back.
    """
    model = settings.claude_model
    try:
        response = client.messages.create(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system,
            messages=[{"role": "user", "content": user}],
        )
    except anthropic.APIError as exc:
        logger.exception(f"Claude call failed ({step})")
        raise GenerationError(f"Completion request failed: {exc}") from exc

    input_tokens = response.usage.input_tokens
    output_tokens = response.usage.output_tokens
    if db_path:
        try:
            log_api_usage(
                db_path,
                model=model,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                step=step,
            )
        except Exception:
            logger.debug("Failed to log API usage", exc_info=True)

    logger.info(f"Tokens ({step}): {input_tokens} in / {output_tokens} out")

    text = first_text_block(response.content)
    if text is None:
        logger.error(f"No text content in Claude response ({step})")
        raise GenerationError("No content generated")
    return text, input_tokens + output_tokens
