"""
Trend detection through a search-augmented LLM (Perplexity sonar).

Picks ONE trending topic among the candidate domains and returns it with an
editorial context and the web sources the model cited.
"""
from __future__ import annotations

import logging

import httpx

from autopilot.schemas import TrendResult
from autopilot.services.errors import ConfigurationError, TrendDetectionError
from autopilot.services.json_extract import extract_json_object
from autopilot.services.llm_provider import LLMHTTPError, post_chat_completion
from autopilot.settings import get_settings

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = "Formation professionnelle: tendances actuelles"

SYSTEM_PROMPT = (
    "Tu es un analyste de tendances spécialisé EdTech, formation professionnelle "
    "et SaaS éducation. Réponds TOUJOURS en JSON valide."
)


def _user_prompt(topics: list[str], brand_name: str) -> str:
    return f"""Identifie LE sujet tendance le plus pertinent aujourd'hui pour un blog SaaS de gestion de formation ({brand_name}).
Domaines à explorer: {', '.join(topics)}.
Cherche les actualités, réglementations, tendances du moment.

Réponds en JSON:
{{
  "topic": "Le sujet tendance choisi (titre d'article potentiel)",
  "context": "Contexte détaillé (200 mots) expliquant pourquoi ce sujet est tendance et pertinent",
  "keywords": ["mot-clé1", "mot-clé2", "mot-clé3"],
  "angle": "L'angle éditorial recommandé"
}}"""


def parse_trend_answer(content: str, citations: list[str]) -> TrendResult:
    """Turn the raw model answer into a TrendResult.

    Malformed JSON is not an error: the raw text becomes topic and context.
    """
    try:
        parsed = extract_json_object(content)
        if not isinstance(parsed, dict):
            raise ValueError("trend answer is not an object")
    except ValueError:
        parsed = {"topic": content[:100], "context": content, "keywords": []}

    return TrendResult(
        topic=str(parsed.get("topic") or DEFAULT_TOPIC),
        context=str(parsed.get("context") or content),
        sources=[str(s) for s in citations],
    )


async def detect_trends(topics: list[str]) -> TrendResult:
    """Ask the search LLM for today's most relevant topic among `topics`.

    Raises:
        ConfigurationError: PERPLEXITY_API_KEY missing
        TrendDetectionError: upstream unreachable, non-2xx status or unreadable body
    """
    settings = get_settings()
    if not settings.perplexity_api_key:
        raise ConfigurationError("PERPLEXITY_API_KEY not configured")

    payload = {
        "model": settings.perplexity_model,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": _user_prompt(topics, settings.brand_name)},
        ],
        "search_recency_filter": "week",
    }
    try:
        completion = await post_chat_completion(
            settings.perplexity_url,
            settings.perplexity_api_key,
            payload,
            timeout=settings.llm_timeout_sec,
        )
    except LLMHTTPError as exc:
        logger.error("[trends] Perplexity error: %s %s", exc.status_code, exc.body[:300])
        raise TrendDetectionError(f"Perplexity API error: {exc.status_code}") from exc
    except httpx.HTTPError as exc:
        logger.error("[trends] Perplexity request failed: %r", exc)
        raise TrendDetectionError(f"Perplexity request failed: {type(exc).__name__}") from exc
    except (ValueError, AttributeError, TypeError, IndexError) as exc:
        logger.error("[trends] Unreadable Perplexity response: %r", exc)
        raise TrendDetectionError("Perplexity returned an unreadable response") from exc

    citations = completion.citations if isinstance(completion.citations, list) else []
    result = parse_trend_answer(completion.content, citations)
    logger.info("[trends] Topic detected: %s (%d sources)", result.topic, len(result.sources))
    return result
