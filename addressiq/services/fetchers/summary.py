"""Gemini location summary, generated from the merged record once the fan-out is done."""

from __future__ import annotations

from typing import Any

from addressiq.core.config import Settings
from addressiq.core.errors import UpstreamError
from addressiq.core.logging import get_logger
from addressiq.schemas.property import PropertyRecord
from addressiq.schemas.sources import AISummary
from addressiq.services.fetchers.client import FetchContext, post_json

logger = get_logger(__name__)

SOURCE = "Gemini AI"
MAX_PROMPT_DATA_CHARS = 30000
MAX_OUTPUT_TOKENS = 200
TEMPERATURE = 0.7

PROMPT = """You are an expert Dutch property analyst. Summarise the JSON data below about a Dutch property location in at most 800 characters.

Cover:
1. **Investment potential** (value trends, area development)
2. **Business opportunities** (which businesses suit the demographics, footfall and nearby amenities)
3. **Liveability** (families, professionals, retirees)
4. **Key risks** (flooding, noise, pollution, crime)

Be direct and cite figures from the data. Do not comment on missing data. British English.

JSON Data:
{data}"""


def build_prompt(record: PropertyRecord) -> str:
    data = record.model_dump_json(by_alias=True, exclude_none=True)
    if len(data) > MAX_PROMPT_DATA_CHARS:
        logger.debug("[%s] truncating record JSON to %d characters", SOURCE, MAX_PROMPT_DATA_CHARS)
        data = data[:MAX_PROMPT_DATA_CHARS]
    return PROMPT.format(data=data)


def summarize_location(ctx: FetchContext, settings: Settings, record: PropertyRecord) -> AISummary:
    if not settings.gemini_api_key:
        raise UpstreamError(SOURCE, "Gemini API key not configured")
    body = {
        "contents": [{"parts": [{"text": build_prompt(record)}]}],
        "generationConfig": {"maxOutputTokens": MAX_OUTPUT_TOKENS, "temperature": TEMPERATURE},
    }
    payload = post_json(
        ctx, SOURCE, settings.gemini_api_url, body, headers={"x-goog-api-key": settings.gemini_api_key}
    )
    return AISummary(summary=_first_text(payload), generated=True)


def _first_text(payload: Any) -> str:
    if not isinstance(payload, dict):
        raise UpstreamError(SOURCE, "AI returned an unreadable response")
    error = payload.get("error")
    if isinstance(error, dict):
        raise UpstreamError(SOURCE, str(error.get("message") or "AI service error"))
    for candidate in payload.get("candidates") or []:
        parts = (candidate.get("content") or {}).get("parts") or []
        if parts and parts[0].get("text"):
            return parts[0]["text"]
    raise UpstreamError(SOURCE, "AI returned empty response")
