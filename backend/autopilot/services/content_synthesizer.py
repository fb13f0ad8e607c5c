"""
Multi-channel synthesis: ONE LLM call producing the blog article and the
LinkedIn / Instagram / TikTok / Twitter adaptations together, so every
channel shares topic and tone.

All-or-nothing on the response as a whole (unparsable JSON or a missing
article is fatal); a single malformed channel is dropped and logged.
"""
from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from autopilot.schemas import (
    ArticleContent,
    InstagramContent,
    LinkedInContent,
    MultiChannelContent,
    TikTokContent,
    TwitterContent,
)
from autopilot.services.errors import SynthesisError
from autopilot.services.json_extract import extract_json_object
from autopilot.services.llm_provider import LLMHTTPError, get_llm_provider
from autopilot.settings import get_settings

logger = logging.getLogger(__name__)

SCRAPED_CONTEXT_CHARS = 2000

CHANNEL_MODELS: dict[str, type] = {
    "linkedin": LinkedInContent,
    "instagram": InstagramContent,
    "tiktok": TikTokContent,
    "twitter": TwitterContent,
}

RESPONSE_TEMPLATE = """{
  "article": {
    "title": "Titre optimisé SEO (max 60 chars)",
    "seo_title": "Meta title (max 60 chars)",
    "seo_description": "Meta description (max 160 chars)",
    "slug": "url-slug-optimise",
    "excerpt": "Résumé accrocheur (max 200 chars)",
    "content": "<article HTML complet avec h2, h3, p, ul, li, strong, em - min 1000 mots>",
    "seo_keywords": ["keyword1", "keyword2", "keyword3", "keyword4", "keyword5"]
  },
  "linkedin": {
    "caption": "Post LinkedIn professionnel (max 1500 chars) avec emojis et hashtags",
    "hashtags": ["#EdTech", "#Formation", "#__BRAND__"],
    "carousel": {"slides": [
      {"slide_number": 1, "title": "Titre accrocheur", "subtitle": "Sous-titre", "content": "Texte court", "type": "cover"},
      {"slide_number": 2, "title": "Point clé 1", "content": "Explication", "bullet_points": ["Point A", "Point B"], "type": "content"},
      {"slide_number": 3, "title": "Point clé 2", "content": "Explication", "bullet_points": ["Point A", "Point B"], "type": "content"},
      {"slide_number": 4, "title": "Point clé 3", "content": "Explication", "bullet_points": ["Point A", "Point B"], "type": "content"},
      {"slide_number": 5, "title": "Statistique clé", "subtitle": "Chiffre marquant", "content": "Contexte du chiffre", "type": "stat"},
      {"slide_number": 6, "title": "Passez à l'action", "subtitle": "Découvrez __BRAND__", "content": "CTA engageant", "type": "cta"}
    ]}
  },
  "instagram": {
    "caption": "Caption Instagram engageante avec emojis (max 2200 chars)",
    "hashtags": ["#EdTech", "#Formation", "#DigitalLearning", "#__BRAND__"],
    "carousel": {"slides": [
      {"slide_number": 1, "title": "Titre visuel", "content": "Texte impactant", "type": "cover", "color_accent": "#8B5CF6"},
      {"slide_number": 2, "title": "Saviez-vous que...", "content": "Fait surprenant", "type": "fact"},
      {"slide_number": 3, "title": "La solution", "content": "Comment résoudre", "bullet_points": ["Étape 1", "Étape 2", "Étape 3"], "type": "solution"},
      {"slide_number": 4, "title": "Résultat", "content": "Ce que vous obtenez", "type": "result"},
      {"slide_number": 5, "title": "Suivez-nous !", "content": "Pour plus de conseils formation", "type": "cta"}
    ]}
  },
  "tiktok": {
    "caption": "Caption TikTok courte et punchy (max 300 chars)",
    "hashtags": ["#EdTech", "#Formation", "#ApprendreAutrement", "#fyp"],
    "video_script": {
      "hook": "Les 3 premières secondes qui captent l'attention",
      "scenes": [
        {"duration_seconds": 3, "text": "Hook visuel", "action": "Texte à l'écran avec zoom rapide"},
        {"duration_seconds": 5, "text": "Le problème", "action": "Description du problème courant"},
        {"duration_seconds": 5, "text": "La solution", "action": "Présentation de la solution"},
        {"duration_seconds": 4, "text": "Le résultat", "action": "Montrer le bénéfice"},
        {"duration_seconds": 3, "text": "CTA", "action": "Appel à l'action + lien en bio"}
      ],
      "music_suggestion": "Son tendance suggéré",
      "total_duration_seconds": 20
    },
    "carousel": {"slides": [
      {"slide_number": 1, "title": "Titre punchy", "content": "Accroche courte", "type": "cover"},
      {"slide_number": 2, "title": "Le saviez-vous ?", "content": "Fait viral", "type": "fact"},
      {"slide_number": 3, "title": "3 astuces", "content": "Tips pratiques", "bullet_points": ["Astuce 1", "Astuce 2", "Astuce 3"], "type": "tips"},
      {"slide_number": 4, "title": "Lien en bio", "content": "Découvrez __BRAND__", "type": "cta"}
    ]}
  },
  "twitter": {
    "thread": [
      "Tweet 1/5 - Accroche du thread avec emoji (max 280 chars)",
      "2/5 - Développement du point principal",
      "3/5 - Statistique ou fait marquant",
      "4/5 - Solution ou conseil actionnable",
      "5/5 - CTA + mention @__BRAND__ + hashtags"
    ],
    "hashtags": ["#EdTech", "#Formation"]
  }
}"""


def build_messages(
    topic: str,
    context: str,
    scraped_content: str,
    tone: str,
    *,
    brand_name: str,
    forbidden_words: list[str] | None = None,
) -> list[dict[str, str]]:
    system = (
        f"Tu es un expert en content marketing multi-canal pour {brand_name}, "
        "une plateforme SaaS de gestion de formation professionnelle.\n"
        f"Ton: {tone}.\n"
        "Tu dois générer SIMULTANÉMENT un article de blog ET du contenu adapté pour chaque réseau social.\n"
        "Tu dois TOUJOURS répondre en JSON valide."
    )
    if forbidden_words:
        system += f"\nN'utilise jamais les mots suivants: {', '.join(forbidden_words)}."

    sources = f"SOURCES WEB RÉCENTES:\n{scraped_content[:SCRAPED_CONTEXT_CHARS]}" if scraped_content else ""
    user = (
        "Génère un contenu COMPLET multi-canal sur ce sujet tendance:\n\n"
        f"SUJET: {topic}\n\n"
        f"CONTEXTE TENDANCE:\n{context}\n\n"
        f"{sources}\n\n"
        "Réponds en JSON avec cette structure EXACTE:\n"
        + RESPONSE_TEMPLATE.replace("__BRAND__", brand_name)
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def parse_multi_channel_response(content: str) -> MultiChannelContent:
    """Validate the raw model answer into typed per-channel content."""
    try:
        raw = extract_json_object(content)
        if not isinstance(raw, dict):
            raise ValueError("response is not a JSON object")
    except ValueError as exc:
        raise SynthesisError("Failed to parse AI response as JSON") from exc

    try:
        article = ArticleContent.model_validate(raw.get("article") or raw)
    except ValidationError as exc:
        raise SynthesisError("AI response does not contain a usable article") from exc

    channels: dict[str, Any] = {}
    for platform, model in CHANNEL_MODELS.items():
        data = raw.get(platform)
        if not data:
            logger.warning("[synthesis] Channel %s missing from AI response", platform)
            continue
        try:
            channels[platform] = model.model_validate({**data, "platform": platform} if isinstance(data, dict) else data)
        except ValidationError as exc:
            logger.warning("[synthesis] Dropping malformed %s content: %s", platform, exc.errors()[:3])

    return MultiChannelContent(article=article, **channels)


async def generate_multi_channel_content(
    topic: str,
    context: str,
    scraped_content: str,
    tone: str,
    *,
    forbidden_words: list[str] | None = None,
) -> MultiChannelContent:
    settings = get_settings()
    llm = get_llm_provider()
    messages = build_messages(
        topic,
        context,
        scraped_content,
        tone,
        brand_name=settings.brand_name,
        forbidden_words=forbidden_words,
    )
    try:
        completion = await llm.complete(messages=messages, model=settings.content_model)
    except LLMHTTPError as exc:
        if exc.status_code == 429:
            raise SynthesisError("Rate limit exceeded") from exc
        if exc.status_code == 402:
            raise SynthesisError("Payment required") from exc
        raise SynthesisError(f"AI generation error: {exc.status_code} - {exc.body[:500]}") from exc

    result = parse_multi_channel_response(completion.content)
    logger.info(
        "[synthesis] Generated article '%s' + channels %s",
        result.article.title,
        [c.platform for c in result.channels()],
    )
    return result
