"""Image edit module: applies a text instruction to a report photo with an image model."""
import logging
from typing import Optional

from openai import OpenAIError

import config
from errors import InvalidInput, NoOutputProduced, ServiceCallFailure
from llm_client import decode_data_url, extension_for, get_client, to_data_url

logger = logging.getLogger(__name__)

EDIT_FAILED_MESSAGE = "Gagal mengedit gambar dengan model AI. Coba prompt yang berbeda."
NO_IMAGE_MESSAGE = "Model tidak menghasilkan gambar. Coba prompt yang berbeda."


def _first_image(response) -> Optional[str]:
    for item in getattr(response, "data", None) or []:
        payload = getattr(item, "b64_json", None)
        if payload:
            return payload
    return None


def edit_image(source_data_url: Optional[str], instruction: str, client=None) -> str:
    if not source_data_url:
        raise InvalidInput("Tidak ada gambar untuk diedit.")
    if not instruction or not instruction.strip():
        raise InvalidInput("Instruksi edit tidak boleh kosong.")
    mime, image_bytes = decode_data_url(source_data_url)

    client = client or get_client()
    logger.info("Editing image (model=%s, %d bytes)", config.OPENAI_MODEL_IMAGE, len(image_bytes))
    try:
        response = client.images.edit(
            model=config.OPENAI_MODEL_IMAGE,
            image=("source" + extension_for(mime), image_bytes, mime),
            prompt=instruction.strip(),
        )
    except OpenAIError as exc:
        logger.error("Error editing image: %s", exc)
        raise ServiceCallFailure(EDIT_FAILED_MESSAGE) from exc

    payload = _first_image(response)
    if payload is None:
        logger.warning("Image model returned no image")
        raise NoOutputProduced(NO_IMAGE_MESSAGE)

    output_format = getattr(response, "output_format", None) or "png"
    logger.info("[OK] Edited image received (%s)", output_format)
    return to_data_url(f"image/{output_format}", payload)
