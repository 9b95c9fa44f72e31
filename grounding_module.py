"""Grounded query module: answers follow-up questions with live web (and maps) retrieval."""
import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from openai import OpenAIError

import config
from errors import InvalidInput, ServiceCallFailure
from llm_client import get_client
from models import GroundingChunk, GroundingResult, GroundingSource, Location

logger = logging.getLogger(__name__)

SEARCH_FAILED_MESSAGE = "Gagal melakukan pencarian dengan model AI."

# Proximity terms always switch maps retrieval on; facility terms only when a location is known.
PROXIMITY_KEYWORDS = ["nearby", "terdekat", "lokasi", "di sekitar", "di dekat"]
FACILITY_KEYWORDS = ["rumah sakit", "hospital", "clinic", "klinik"]

_PROXIMITY_RE = re.compile("|".join(re.escape(k) for k in PROXIMITY_KEYWORDS), re.IGNORECASE)
_FACILITY_RE = re.compile("|".join(re.escape(k) for k in FACILITY_KEYWORDS), re.IGNORECASE)

MAPS_HOSTS = ["maps.google.com", "maps.app.goo.gl", "maps.apple.com", "openstreetmap.org"]
# Hosts that only count as maps sources under a /maps path.
MAPS_PATH_HOSTS = ["google.com", "google.co.id", "goo.gl"]

BASE_INSTRUCTIONS = (
    "You are a workplace safety (K3) assistant. Answer the question using current information "
    "from web search and cite your sources. Respond in the same language the user writes in."
)
MAPS_INSTRUCTIONS = (
    "The question is about places near the user. Prefer map and place listings "
    "(for example Google Maps or OpenStreetMap pages) for facilities, addresses and distances."
)


def needs_maps(prompt: str, location: Optional[Location] = None) -> bool:
    text = prompt or ""
    if _PROXIMITY_RE.search(text):
        return True
    return location is not None and bool(_FACILITY_RE.search(text))


def is_maps_url(url: str) -> bool:
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    if any(host == h or host.endswith("." + h) for h in MAPS_HOSTS):
        return True
    if any(host == h for h in MAPS_PATH_HOSTS):
        return parsed.path.startswith("/maps")
    return False


def build_request(prompt: str, location: Optional[Location] = None) -> Dict[str, Any]:
    use_maps = needs_maps(prompt, location)

    web_search: Dict[str, Any] = {"type": "web_search"}
    instructions = BASE_INSTRUCTIONS
    if use_maps:
        instructions += "\n" + MAPS_INSTRUCTIONS
        if location is not None:
            # Bias retrieval toward the user's position
            instructions += (
                f"\nUser location: latitude {location.latitude}, longitude {location.longitude}."
            )
            web_search["search_context_size"] = "high"

    return {
        "model": config.OPENAI_MODEL_SEARCH,
        "instructions": instructions,
        "input": prompt,
        "tools": [web_search],
    }


def _citations(response) -> List[Dict[str, str]]:
    found: List[Dict[str, str]] = []
    seen = set()
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) != "message":
            continue
        for part in getattr(item, "content", None) or []:
            for annotation in getattr(part, "annotations", None) or []:
                if getattr(annotation, "type", None) != "url_citation":
                    continue
                url = getattr(annotation, "url", None)
                if not url or url in seen:
                    continue
                seen.add(url)
                found.append({"uri": url, "title": getattr(annotation, "title", None) or url})
    return found


def parse_response(response, maps_enabled: bool) -> GroundingResult:
    text = getattr(response, "output_text", None)
    if not text or not text.strip():
        raise ServiceCallFailure(f"{SEARCH_FAILED_MESSAGE} (respons kosong)")

    chunks = []
    for citation in _citations(response):
        source = GroundingSource(**citation)
        if maps_enabled and is_maps_url(citation["uri"]):
            chunks.append(GroundingChunk(maps=source))
        else:
            chunks.append(GroundingChunk(web=source))
    return GroundingResult(text=text, chunks=chunks)


def grounded_query(prompt_text: str, location: Optional[Location] = None, client=None) -> GroundingResult:
    if not prompt_text or not prompt_text.strip():
        raise InvalidInput("Pertanyaan tidak boleh kosong.")

    request = build_request(prompt_text, location)
    maps_enabled = needs_maps(prompt_text, location)

    client = client or get_client()
    logger.info("Grounded query (model=%s, maps=%s)", request["model"], maps_enabled)
    try:
        response = client.responses.create(**request)
    except OpenAIError as exc:
        logger.error("Error with grounded search: %s", exc)
        raise ServiceCallFailure(SEARCH_FAILED_MESSAGE) from exc

    result = parse_response(response, maps_enabled)
    logger.info("[OK] Grounded answer with %d sources", len(result.chunks))
    return result
