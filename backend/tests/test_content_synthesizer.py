import json

import pytest

from autopilot.services.content_synthesizer import (
    build_messages,
    generate_multi_channel_content,
    parse_multi_channel_response,
)
from autopilot.services.errors import SynthesisError
from autopilot.services.llm_provider import LLMHTTPError


def test_parse_full_response(multi_channel_json):
    result = parse_multi_channel_response(multi_channel_json)

    assert result.article.title == "Réforme de la formation professionnelle 2026"
    assert [c.platform for c in result.channels()] == ["linkedin", "instagram", "tiktok", "twitter"]
    assert len(result.linkedin.carousel.slides) == 3
    assert len(result.tiktok.video_script.scenes) == 5
    assert result.twitter.thread[0].startswith("1/3")


def test_parse_accepts_prose_and_code_fences_around_json(multi_channel_json):
    wrapped = f"Voici le contenu demandé :\n```json\n{multi_channel_json}\n```\nBonne lecture !"
    result = parse_multi_channel_response(wrapped)
    assert result.article.title


def test_malformed_channel_is_dropped(multi_channel_payload):
    multi_channel_payload["linkedin"]["carousel"] = "trois slides"
    result = parse_multi_channel_response(json.dumps(multi_channel_payload))

    assert result.linkedin is None
    assert [c.platform for c in result.channels()] == ["instagram", "tiktok", "twitter"]


def test_null_lists_are_read_as_empty(multi_channel_payload):
    multi_channel_payload["article"]["seo_keywords"] = None
    multi_channel_payload["instagram"]["hashtags"] = None
    multi_channel_payload["twitter"]["thread"] = None
    multi_channel_payload["linkedin"]["carousel"]["slides"][1]["bullet_points"] = None
    multi_channel_payload["tiktok"]["video_script"]["scenes"][0]["duration_seconds"] = None

    result = parse_multi_channel_response(json.dumps(multi_channel_payload))

    assert result.article.seo_keywords == []
    assert result.instagram.hashtags == []
    assert result.twitter.thread == []
    assert result.linkedin.carousel.slides[1].bullet_points == []
    assert result.tiktok.video_script.scenes[0].duration_seconds == 0
    assert len(result.channels()) == 4


def test_unknown_slide_type_and_missing_number_are_kept(multi_channel_payload):
    slide = multi_channel_payload["linkedin"]["carousel"]["slides"][0]
    slide["type"] = "quote"
    del slide["slide_number"]

    result = parse_multi_channel_response(json.dumps(multi_channel_payload))

    kept = result.linkedin.carousel.slides[0]
    assert kept.type == "content"
    assert kept.slide_number is None
    assert len(result.linkedin.carousel.slides) == 3


def test_unparsable_response_is_fatal():
    with pytest.raises(SynthesisError, match="Failed to parse AI response as JSON"):
        parse_multi_channel_response("Désolé, je ne peux pas répondre.")


def test_missing_article_title_is_fatal(multi_channel_payload):
    del multi_channel_payload["article"]["title"]
    with pytest.raises(SynthesisError):
        parse_multi_channel_response(json.dumps(multi_channel_payload))


def test_build_messages_injects_brand_and_forbidden_words():
    messages = build_messages(
        "IA et formation",
        "Contexte",
        "Source: https://example.com\nTexte",
        "expert",
        brand_name="Acme Learning",
        forbidden_words=["gratuit", "révolutionnaire"],
    )
    system, user = messages[0]["content"], messages[1]["content"]

    assert "Acme Learning" in system
    assert "Ton: expert" in system
    assert "gratuit, révolutionnaire" in system
    assert "SOURCES WEB RÉCENTES" in user
    assert "__BRAND__" not in user
    assert "#Acme Learning" in user


def test_build_messages_without_scraped_sources():
    _, user = build_messages("Sujet", "Contexte", "", "professionnel", brand_name="Nectforma")
    assert "SOURCES WEB RÉCENTES" not in user["content"]


async def test_generate_uses_content_model(install_llm, multi_channel_json, clean_settings):
    fake = install_llm(lambda model, messages, options: multi_channel_json)

    result = await generate_multi_channel_content("Sujet", "Contexte", "", "professionnel")

    assert result.tiktok is not None
    assert fake.calls[0]["model"] == clean_settings.content_model


@pytest.mark.parametrize(
    ("status", "message"),
    [
        (429, "Rate limit exceeded"),
        (402, "Payment required"),
        (500, "AI generation error: 500 - upstream exploded"),
    ],
)
async def test_generate_maps_gateway_errors(install_llm, status, message):
    install_llm(lambda model, messages, options: LLMHTTPError(status, "upstream exploded"))

    with pytest.raises(SynthesisError) as exc_info:
        await generate_multi_channel_content("Sujet", "Contexte", "", "professionnel")
    assert str(exc_info.value) == message
