"""OpenAI client construction and data-URL helpers shared by the model adapters."""
import base64
import binascii
import logging
import mimetypes
import re
from pathlib import Path
from typing import Tuple

from openai import OpenAI

import config
from errors import InvalidInput, ServiceCallFailure

logger = logging.getLogger(__name__)

DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)


def get_client() -> OpenAI:
    if not config.OPENAI_API_KEY:
        logger.error("OPENAI_API_KEY is not configured")
        raise ServiceCallFailure(
            "Kunci API OpenAI belum dikonfigurasi. Setel variabel lingkungan OPENAI_API_KEY."
        )
    return OpenAI(
        api_key=config.OPENAI_API_KEY,
        base_url=config.OPENAI_BASE_URL,
        timeout=config.OPENAI_TIMEOUT,
        max_retries=0,
    )


def parse_data_url(data_url: str) -> Tuple[str, str]:
    """Split ``data:<mime>;base64,<payload>`` into (mime type, base64 payload).

    Only image payloads are accepted and the payload must decode.
    """
    if not data_url or not isinstance(data_url, str):
        raise InvalidInput("Data gambar kosong.")
    match = DATA_URL_RE.match(data_url.strip())
    if not match:
        raise InvalidInput("Format data URL gambar tidak valid.")
    mime, payload = match.group("mime").lower(), match.group("data")
    if not mime.startswith("image/"):
        raise InvalidInput(f"Tipe media {mime} bukan gambar.")
    try:
        base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidInput("Data gambar base64 tidak dapat didekode.")
    return mime, payload


def decode_data_url(data_url: str) -> Tuple[str, bytes]:
    mime, payload = parse_data_url(data_url)
    return mime, base64.b64decode(payload)


def to_data_url(mime: str, payload: str) -> str:
    return f"data:{mime};base64,{payload}"


def image_file_to_data_url(path: str) -> str:
    file_path = Path(path)
    if not file_path.is_file():
        raise InvalidInput(f"File gambar tidak ditemukan: {path}")
    mime, _ = mimetypes.guess_type(file_path.name)
    if not mime or not mime.startswith("image/"):
        raise InvalidInput(f"File {file_path.name} bukan gambar yang dikenali.")
    payload = base64.b64encode(file_path.read_bytes()).decode("ascii")
    return to_data_url(mime, payload)


def extension_for(mime: str) -> str:
    ext = mimetypes.guess_extension(mime) or ".png"
    return ".jpg" if ext == ".jpe" else ext
