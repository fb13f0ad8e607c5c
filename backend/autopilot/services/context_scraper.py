"""
Context enrichment through Firecrawl web search (last week only).

Never fatal: any failure degrades to an empty context.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx

from autopilot.settings import get_settings

logger = logging.getLogger(__name__)

MAX_RESULTS = 3
EXCERPT_CHARS = 500
SEPARATOR = "\n\n---\n\n"


def _client(timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout)


def format_results(results: list[Any]) -> str:
    items = [r for r in results if isinstance(r, dict)][:MAX_RESULTS]
    return SEPARATOR.join(
        f"Source: {r.get('url')}\n{str(r.get('markdown') or r.get('description') or '')[:EXCERPT_CHARS]}"
        for r in items
    )


async def scrape_context(topic: str) -> str:
    settings = get_settings()
    if not settings.firecrawl_api_key:
        logger.info("[scrape] Firecrawl not configured, skipping scraping")
        return ""

    payload = {
        "query": f"{topic} formation professionnelle EdTech France",
        "limit": MAX_RESULTS,
        "lang": "fr",
        "tbs": "qdr:w",
        "scrapeOptions": {"formats": ["markdown"]},
    }
    try:
        async with _client(settings.http_timeout_sec) as client:
            resp = await client.post(
                settings.firecrawl_url,
                headers={
                    "Authorization": f"Bearer {settings.firecrawl_api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
        if resp.status_code >= 400:
            logger.error("[scrape] Firecrawl search error: %s", resp.status_code)
            return ""
        body = resp.json()
        results = body.get("data") if isinstance(body, dict) else None
        if not isinstance(results, list):
            logger.warning("[scrape] Unexpected Firecrawl response shape, skipping")
            return ""
        context = format_results(results)
    except Exception as e:
        logger.error(f"[scrape] Firecrawl error: {e}")
        return ""

    logger.info("[scrape] %d sources scraped for '%s'", min(sum(isinstance(r, dict) for r in results), MAX_RESULTS), topic)
    return context
