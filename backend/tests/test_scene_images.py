import re

from conftest import PNG_B64, image_completion

from autopilot.schemas import Scene, VideoScript
from autopilot.services.llm_provider import ChatCompletion, LLMHTTPError
from autopilot.services.scene_images import extract_image_base64, generate_scene_images, scene_prompt


def _script(n: int) -> VideoScript:
    return VideoScript(
        hook="Hook",
        scenes=[Scene(duration_seconds=3, text=f"Scène {i + 1}", action="Zoom") for i in range(n)],
    )


async def test_one_image_per_scene(install_llm, memory_storage, clean_settings):
    fake = install_llm(lambda model, messages, options: image_completion(model))

    urls = await generate_scene_images(_script(3), "IA et formation")

    assert len(urls) == 3
    assert all(re.fullmatch(r"https://cdn\.test/tiktok/tiktok-scene-\d+-[1-3]\.png", u) for u in urls)
    assert len(memory_storage.objects) == 3
    assert {c["model"] for c in fake.calls} == {clean_settings.image_model}
    assert fake.calls[0]["options"]["modalities"] == ["image", "text"]
    assert fake.calls[0]["timeout"] == clean_settings.image_timeout_sec


async def test_failed_scenes_are_skipped_and_loop_completes(install_llm, memory_storage):
    def handler(model, messages, options):
        prompt = messages[0]["content"]
        if "Scene 2:" in prompt:
            return LLMHTTPError(500, "upstream error")
        if "Scene 3:" in prompt:
            return ChatCompletion("Pas d'image cette fois", message={"content": "Pas d'image cette fois"})
        if "Scene 4:" in prompt:
            return ChatCompletion("", message={"images": [{"image_url": {"url": "data:image/png;base64,@@@"}}]})
        return image_completion(model)

    fake = install_llm(handler)

    urls = await generate_scene_images(_script(5), "IA")

    assert len(fake.calls) == 5
    assert len(urls) == 2
    assert urls[0].endswith("-1.png")
    assert urls[1].endswith("-5.png")


async def test_upload_failure_is_skipped(install_llm, memory_storage, monkeypatch):
    install_llm(lambda model, messages, options: image_completion(model))
    calls = {"n": 0}
    original = memory_storage.upload

    async def flaky_upload(path, data, content_type):
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("bucket unavailable")
        return await original(path, data, content_type)

    monkeypatch.setattr(memory_storage, "upload", flaky_upload)

    urls = await generate_scene_images(_script(2), "IA")

    assert len(urls) == 1


async def test_skipped_when_gateway_not_configured(install_llm, memory_storage):
    fake = install_llm(lambda model, messages, options: image_completion(model), configured=False)

    assert await generate_scene_images(_script(4), "IA") == []
    assert fake.calls == []


async def test_no_scenes_no_calls(install_llm, memory_storage):
    fake = install_llm(lambda model, messages, options: image_completion(model))

    assert await generate_scene_images(VideoScript(hook="h", scenes=[]), "IA") == []
    assert await generate_scene_images(None, "IA") == []
    assert fake.calls == []


def test_extract_image_from_inline_parts_first():
    message = {
        "parts": [{"text": "ok"}, {"inline_data": {"mime_type": "image/png", "data": "AAAA"}}],
        "images": [{"image_url": {"url": f"data:image/png;base64,{PNG_B64}"}}],
    }
    assert extract_image_base64(message) == "AAAA"


def test_extract_image_from_images_then_content():
    assert extract_image_base64({"images": [{"image_url": {"url": f"data:image/png;base64,{PNG_B64}"}}]}) == PNG_B64
    assert extract_image_base64({}, f"voici ![img](data:image/jpeg;base64,{PNG_B64})") == PNG_B64
    assert extract_image_base64({}, "pas d'image") is None


def test_scene_prompt_numbers_scenes_from_one():
    prompt = scene_prompt(0, Scene(text="Hook", action="Zoom"), "IA")
    assert 'Scene 1: "Hook"' in prompt
    assert "9:16" in prompt
