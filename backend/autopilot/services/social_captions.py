"""
Social media helpers backed by the LLM gateway: per-platform captions,
best posting times, cover images. Plus manual post scheduling.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from autopilot.models import SocialPost, SocialPostStatus, SocialPublicationLog
from autopilot.schemas import (
    GenerateCaptionsPayload,
    GenerateImagePayload,
    SchedulePostPayload,
    SuggestBestTimePayload,
)
from autopilot.services.errors import AutopilotError, ConfigurationError
from autopilot.services.json_extract import strip_code_fences
from autopilot.services.llm_provider import LLMHTTPError, get_llm_provider
from autopilot.settings import get_settings

logger = logging.getLogger(__name__)

CONTENT_EXCERPT_CHARS = 3000
DEFAULT_CAPTION_LIMIT = 2000

PLATFORM_LIMITS: dict[str, dict[str, int]] = {
    "linkedin": {"caption": 3000, "hashtags": 30},
    "twitter": {"caption": 280, "hashtags": 5},
    "facebook": {"caption": 63206, "hashtags": 30},
    "instagram": {"caption": 2200, "hashtags": 30},
    "tiktok": {"caption": 2200, "hashtags": 10},
    "youtube": {"title": 100, "description": 5000, "tags": 500},
    "threads": {"caption": 500, "hashtags": 10},
    "pinterest": {"title": 100, "description": 500, "hashtags": 20},
}

PLATFORM_PROMPTS: dict[str, str] = {
    "linkedin": (
        "Tu es un expert LinkedIn. Génère un post professionnel et engageant:\n"
        "- Ton: Professionnel, éducatif, inspirant\n"
        "- Structure: Hook accrocheur → Valeur → CTA\n"
        "- Longueur: 200-500 mots idéalement\n"
        "- Utilise des emojis professionnels avec modération\n"
        "- Inclus 3-5 hashtags pertinents B2B\n"
        "- Termine par une question ou un CTA"
    ),
    "twitter": (
        "Tu es un expert X (Twitter). Génère un tweet viral:\n"
        "- Max 280 caractères\n"
        "- Hook fort dès le début\n"
        "- Utilise 1-3 hashtags max\n"
        "- Ton: Direct, percutant, engageant\n"
        "- Peut inclure un CTA court\n"
        "- Si thread demandé, fais 3-5 tweets connectés"
    ),
    "facebook": (
        "Tu es un expert Facebook. Génère un post engageant:\n"
        "- Ton: Conversationnel, accessible\n"
        "- Pose une question pour engager\n"
        "- Inclus un CTA clair\n"
        "- Utilise des emojis\n"
        "- 3-5 hashtags max"
    ),
    "instagram": (
        "Tu es un expert Instagram. Génère une légende captivante:\n"
        "- Hook fort sur la première ligne\n"
        "- Corps du texte engageant avec emojis\n"
        "- CTA à la fin\n"
        "- 20-30 hashtags pertinents (mélange populaires et niches)\n"
        "- Ton: Authentique, visuel, inspirant"
    ),
    "tiktok": (
        "Tu es un expert TikTok. Génère une description courte et accrocheuse:\n"
        "- Max 150 caractères pour le texte principal\n"
        "- Utilise des emojis tendance\n"
        "- 5-7 hashtags viraux\n"
        "- Ton: Décontracté, dynamique, jeune"
    ),
    "youtube": (
        "Tu es un expert YouTube. Génère:\n"
        "- Un titre accrocheur (max 100 chars)\n"
        "- Une description complète avec timestamps\n"
        "- 10-15 tags pertinents\n"
        "- Un CTA pour s'abonner\n"
        "- Inclus des mots-clés SEO"
    ),
    "threads": (
        "Tu es un expert Threads. Génère un post concis:\n"
        "- Max 500 caractères\n"
        "- Ton: Conversationnel, authentique\n"
        "- 3-5 hashtags\n"
        "- Peut être un thread multi-posts"
    ),
    "pinterest": (
        "Tu es un expert Pinterest. Génère:\n"
        "- Un titre accrocheur (max 100 chars)\n"
        "- Une description riche en mots-clés (max 500 chars)\n"
        "- 5-10 hashtags de niche\n"
        "- Focus SEO Pinterest"
    ),
}

ASPECT_RATIOS: dict[str, str] = {
    "linkedin": "1200x627 (1.91:1)",
    "twitter": "1200x675 (16:9)",
    "facebook": "1200x630 (1.91:1)",
    "instagram": "1080x1080 (1:1) ou 1080x1350 (4:5)",
    "tiktok": "1080x1920 (9:16)",
    "youtube": "1280x720 (16:9)",
    "threads": "1080x1080 (1:1)",
    "pinterest": "1000x1500 (2:3)",
}

BEST_TIME_SYSTEM_PROMPT = (
    "Tu es un expert en stratégie social media. "
    "Analyse les meilleures heures de publication pour maximiser l'engagement."
)


def _require_llm():
    llm = get_llm_provider()
    if not llm.configured:
        raise ConfigurationError("AI service not configured")
    return llm


def caption_user_message(platform: str, payload: GenerateCaptionsPayload, blog_url: str) -> str:
    limit = PLATFORM_LIMITS.get(platform, {}).get("caption", DEFAULT_CAPTION_LIMIT)
    body = (payload.content or "")[:CONTENT_EXCERPT_CHARS] or payload.excerpt
    extra_fields = ""
    if platform == "twitter":
        extra_fields += '  "thread": ["tweet1", "tweet2", "tweet3"],\n'
    if platform == "youtube":
        extra_fields += '  "title": "Titre YouTube", "description": "Description", "tags": ["tag1", "tag2"],\n'
    return (
        f"Génère du contenu pour {platform.upper()} à partir de cet article:\n\n"
        f"Titre: {payload.title}\n"
        f"Extrait: {payload.excerpt}\n"
        f"URL: {payload.url or blog_url}\n\n"
        f"Contenu de l'article:\n{body}\n\n"
        "IMPORTANT: \n"
        f"- Respecte la limite de {limit} caractères\n"
        f"- Adapte le ton à {platform}\n"
        "- Inclus un lien vers l'article si pertinent\n\n"
        "Réponds en JSON:\n"
        "{\n"
        '  "caption": "Texte du post",\n'
        '  "hashtags": ["#tag1", "#tag2"],\n'
        f"{extra_fields}"
        '  "best_time": "Moment recommandé pour poster"\n'
        "}"
    )


async def _caption_for(platform: str, payload: GenerateCaptionsPayload) -> tuple[str, dict | None]:
    settings = get_settings()
    try:
        completion = await get_llm_provider().complete(
            messages=[
                {"role": "system", "content": PLATFORM_PROMPTS[platform]},
                {"role": "user", "content": caption_user_message(platform, payload, settings.blog_url)},
            ],
            model=settings.caption_model,
            temperature=0.8,
            max_tokens=2000,
        )
        return platform, json.loads(strip_code_fences(completion.content))
    except Exception as e:
        logger.error(f"[captions] Error generating for {platform}: {e}")
        return platform, None


async def generate_captions(payload: GenerateCaptionsPayload) -> dict[str, dict]:
    """Captions for every requested platform, generated concurrently.

    Platforms whose generation fails are left out of the result.
    """
    _require_llm()
    platforms = [p.value for p in payload.platforms]
    results = await asyncio.gather(*(_caption_for(p, payload) for p in platforms))
    captions = {platform: data for platform, data in results if data is not None}
    logger.info("[captions] Generated %d/%d platforms", len(captions), len(platforms))
    return captions


async def suggest_best_time(payload: SuggestBestTimePayload) -> dict[str, Any]:
    llm = _require_llm()
    settings = get_settings()
    user_prompt = (
        f"Suggère les meilleurs moments pour publier sur {payload.platform.value}:\n"
        f"- Type de contenu: {payload.content_type or 'Article de blog'}\n"
        f"- Audience: {payload.audience or 'B2B - Formation professionnelle (France)'}\n"
        "- Timezone: Europe/Paris\n\n"
        "Réponds en JSON:\n"
        "{\n"
        '  "best_times": [\n'
        '    { "day": "mardi", "time": "10:00", "score": 95, "reason": "Pic d\'engagement B2B" }\n'
        "  ],\n"
        '  "avoid_times": [\n'
        '    { "day": "dimanche", "time": "00:00-08:00", "reason": "Faible activité" }\n'
        "  ],\n"
        '  "frequency": "2-3 posts par semaine",\n'
        '  "tips": ["Astuce 1", "Astuce 2"]\n'
        "}"
    )
    try:
        completion = await llm.complete(
            messages=[
                {"role": "system", "content": BEST_TIME_SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            model=settings.caption_model,
            temperature=0.7,
            max_tokens=1000,
        )
    except LLMHTTPError as exc:
        logger.error(f"[best-time] AI error: {exc}")
        raise AutopilotError("AI service error") from exc

    try:
        return json.loads(strip_code_fences(completion.content))
    except ValueError as exc:
        raise AutopilotError("AI service returned invalid JSON") from exc


def cover_image_prompt(payload: GenerateImagePayload, brand_name: str) -> str:
    platform = payload.platform.value
    return (
        f"Crée une image de couverture professionnelle pour {platform}:\n"
        f'- Titre de l\'article: "{payload.title}"\n'
        f"- Format: {ASPECT_RATIOS[platform]}\n"
        f"- Style: {payload.style or 'Moderne, professionnel, tech-friendly'}\n"
        "- Couleurs: Palette bleu/violet professionnelle\n"
        "- Inclure: Texte superposé avec le titre, design épuré\n"
        f"- Marque: {brand_name} (plateforme SaaS de formation)"
    )


async def generate_cover_image(payload: GenerateImagePayload) -> dict[str, Any]:
    llm = _require_llm()
    settings = get_settings()
    prompt = cover_image_prompt(payload, settings.brand_name)
    try:
        completion = await llm.complete(
            messages=[{"role": "user", "content": prompt}],
            model=settings.cover_image_model,
            timeout=settings.image_timeout_sec,
            modalities=["image", "text"],
        )
    except LLMHTTPError as exc:
        logger.error(f"[cover-image] Image generation failed: {exc}")
        raise AutopilotError("Image generation failed") from exc

    images = completion.message.get("images") or [{}]
    image_url = (images[0].get("image_url") or {}).get("url")
    return {"image_url": image_url, "platform": payload.platform.value, "prompt_used": prompt}


async def schedule_post(
    session: AsyncSession,
    tenant_id: str,
    payload: SchedulePostPayload,
    *,
    created_by: str | None = None,
) -> SocialPost:
    post = SocialPost(
        tenant_id=tenant_id,
        blog_post_id=payload.blog_post_id,
        platform=payload.platform.value,
        caption=payload.caption,
        hashtags=payload.hashtags,
        media_urls=payload.media_urls,
        scheduled_for=payload.scheduled_for,
        status=SocialPostStatus.scheduled.value,
        ai_generated=payload.ai_generated,
        created_by=created_by,
    )
    session.add(post)
    await session.flush()
    session.add(SocialPublicationLog(
        tenant_id=tenant_id,
        social_post_id=post.id,
        action="scheduled",
        status="success",
        platform=post.platform,
        details={"scheduled_for": payload.scheduled_for.isoformat()},
    ))
    await session.commit()
    await session.refresh(post)
    logger.info("[schedule] Post %s scheduled on %s for %s", post.id, post.platform, payload.scheduled_for)
    return post
