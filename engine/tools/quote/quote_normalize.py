"""
Quote normalization: decoded document -> ParsedQuote.

All document understanding is delegated to the completion service behind a
single prompt. This module builds that prompt, makes one call, pulls the JSON
payload out of the reply and validates it.

Usage:
    from tools.quote.quote_normalize import normalize_quote

    quote = normalize_quote(TextContent(text=csv_text), "견적서_A.xlsx")
    quote = normalize_quote(ImageContent(data=png, mime_type="image/png"), "photo.png")
"""

from __future__ import annotations

from typing import Callable, Literal, Sequence

from pydantic import ValidationError

from utils.core.errors import PayloadInvalid
from utils.core.jsonval import parse_json_block
from utils.core.log import get_logger
from utils.document.doc import ImageContent, TextContent
from utils.llm.LLM import Part, call_llm_sync, image_part
from utils.vault import secrets
from tools.quote.prompts_quote import image_quote_prompt, text_quote_prompt
from tools.quote.quote_models import ParsedQuote

# (prompt parts) -> reply text
CompletionFn = Callable[[Sequence[Part | str | bytes]], str]
TotalPolicy = Literal["trust", "recompute"]

TOTAL_POLICIES = ("trust", "recompute")
TOTAL_MISMATCH_TOLERANCE = 0.5


def _default_completion(parts: Sequence[Part | str | bytes]) -> str:
    return call_llm_sync(parts, debug_caller="normalize_quote")


def build_prompt_parts(
    content: TextContent | ImageContent, file_name: str
) -> list[Part | str]:
    if isinstance(content, ImageContent):
        return [
            image_quote_prompt(file_name),
            image_part(content.data, content.mime_type),
        ]
    return [text_quote_prompt(file_name, content.text)]


def _describe_errors(exc: ValidationError) -> list[str]:
    problems = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "quote"
        problems.append(f"{loc}: {err.get('msg')}")
    return problems


def validate_payload(payload: dict) -> ParsedQuote:
    """
    Check the decoded payload field by field.

    Raises:
        PayloadInvalid: listing every offending field.
    """
    try:
        return ParsedQuote.model_validate(payload)
    except ValidationError as e:
        raise PayloadInvalid(_describe_errors(e)) from e


def reconcile_total(quote: ParsedQuote, policy: TotalPolicy = "trust") -> ParsedQuote:
    """
    Decide which total to keep when the stated total and the item sum differ.

    "trust" keeps the total the document states; "recompute" replaces it with
    the sum of item amounts.
    """
    logger = get_logger()
    if policy not in TOTAL_POLICIES:
        raise ValueError(f"Unknown total policy: {policy}. Allowed: {', '.join(TOTAL_POLICIES)}")

    items_sum = quote.items_sum
    if abs(quote.total_amount - items_sum) <= TOTAL_MISMATCH_TOLERANCE:
        return quote

    if policy == "recompute":
        logger.info(
            f"Replacing stated total {quote.total_amount:,.0f} with item sum {items_sum:,.0f}"
        )
        return quote.model_copy(update={"total_amount": items_sum})

    logger.warning(
        f"Stated total {quote.total_amount:,.0f} differs from item sum {items_sum:,.0f}; keeping stated total"
    )
    return quote


def normalize_quote(
    content: TextContent | ImageContent,
    file_name: str,
    *,
    llm: CompletionFn | None = None,
    total_policy: TotalPolicy | None = None,
) -> ParsedQuote:
    """
    Turn decoded quote content into a validated ParsedQuote.

    Args:
        content: Output of `extract_content`.
        file_name: Original file name, offered to the model as a vendor hint.
        llm: Completion function; defaults to Gemini via `call_llm_sync`.
        total_policy: "trust" or "recompute"; defaults to the
            `quote_total_policy` setting.

    Raises:
        NoStructuredPayload: the reply holds no "{...}" block.
        PayloadMalformed: the block is not valid JSON.
        PayloadInvalid: the JSON does not describe a quote.
    """
    logger = get_logger()
    llm = llm or _default_completion
    policy = total_policy or secrets.get("quote_total_policy", default="trust")

    kind = "image" if isinstance(content, ImageContent) else "text"
    logger.info(f"Normalizing {kind} quote {file_name}")

    reply = llm(build_prompt_parts(content, file_name))
    payload = parse_json_block(reply)
    quote = validate_payload(payload)

    logger.info(
        f"Parsed quote from {quote.company}: {len(quote.items)} items, total {quote.total_amount:,.0f}"
    )
    return reconcile_total(quote, policy)
