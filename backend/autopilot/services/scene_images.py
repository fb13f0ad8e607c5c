"""
TikTok scene images: one vertical image per video-script scene, generated
sequentially and uploaded to object storage.

A scene that fails (HTTP error, no image in the answer, upload error) is
logged and skipped, so the result may be shorter than the scene list.
"""
from __future__ import annotations

import base64
import binascii
import logging
import re
import time

from autopilot.schemas import Scene, VideoScript
from autopilot.services.llm_provider import get_llm_provider
from autopilot.services.storage import get_storage
from autopilot.settings import get_settings

logger = logging.getLogger(__name__)

_DATA_URI = re.compile(r"data:image/[^;]+;base64,([A-Za-z0-9+/=]+)")


def extract_image_base64(message: dict, content: str | None = None) -> str | None:
    """Find a base64 image payload in a chat-completion message.

    Looks at inline_data parts, then image_url data URIs, then the text content.
    """
    for part in message.get("parts") or []:
        data = (part.get("inline_data") or {}).get("data")
        if data:
            return data

    for image in message.get("images") or []:
        url = (image.get("image_url") or {}).get("url") or ""
        match = _DATA_URI.search(url)
        if match:
            return match.group(1)

    if isinstance(content, str):
        match = _DATA_URI.search(content)
        if match:
            return match.group(1)
    return None


def scene_prompt(index: int, scene: Scene, topic: str) -> str:
    return (
        "Create a vertical 9:16 TikTok-style scene image for a professional education/EdTech video.\n"
        f'Scene {index + 1}: "{scene.text}"\n'
        f'Action: "{scene.action or ""}"\n'
        f'Topic: "{topic}"\n'
        "Style: Modern, clean, vibrant colors, bold typography overlay area at bottom, "
        "professional but dynamic.\n"
        "The image should be visually striking and suitable for a short-form vertical video "
        "about professional training and education technology.\n"
        "Ultra high resolution."
    )


async def generate_scene_images(video_script: VideoScript | None, topic: str) -> list[str]:
    llm = get_llm_provider()
    if not llm.configured:
        logger.info("[images] LLM gateway not configured, skipping image generation")
        return []

    scenes = video_script.scenes if video_script else []
    if not scenes:
        return []

    settings = get_settings()
    image_urls: list[str] = []
    logger.info("[images] Generating %d TikTok scene images", len(scenes))

    for i, scene in enumerate(scenes):
        try:
            completion = await llm.complete(
                messages=[{"role": "user", "content": scene_prompt(i, scene, topic)}],
                model=settings.image_model,
                timeout=settings.image_timeout_sec,
                modalities=["image", "text"],
            )
            image_b64 = extract_image_base64(completion.message, completion.content)
            if not image_b64:
                logger.warning("[images] No image data in response for scene %d", i + 1)
                continue

            data = base64.b64decode(image_b64, validate=True)
            path = f"tiktok/tiktok-scene-{int(time.time() * 1000)}-{i + 1}.png"
            url = await get_storage().upload(path, data, "image/png")
            image_urls.append(url)
            logger.info("[images] Scene %d image generated and uploaded", i + 1)
        except binascii.Error as e:
            logger.error(f"[images] Scene {i + 1}: invalid base64 payload: {e}")
        except Exception as e:
            logger.error(f"[images] Error generating scene {i + 1} image: {e}")

    return image_urls
