"""Vision module (hazard analysis).

Sends a task description, and optionally a photo of the work area, to an
OpenAI vision-capable model and turns its structured answer into Hazard records.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from openai import OpenAIError
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

import config
from errors import InvalidInput, ServiceCallFailure
from llm_client import get_client, parse_data_url
from models import Hazard, HazardAnalysis
from risk_module import RISK_BANDS, RISK_LEVELS, RiskAssessment, classify

logger = logging.getLogger(__name__)

ANALYSIS_FAILED_MESSAGE = (
    "Gagal menganalisis data dengan model AI. Periksa kunci API dan koneksi jaringan Anda."
)

CONTROL_HIERARCHY = ("ELIMINASI", "SUBSTITUSI", "REKAYASA", "ADMINISTRASI", "APD")

RISK_ASSESSMENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "probability": {"type": "integer", "description": "Skor probabilitas dari 1-5"},
        "severity": {"type": "integer", "description": "Skor keparahan dari 1-5"},
        "riskScore": {"type": "integer", "description": "Skor risiko (probabilitas * keparahan)"},
        "riskLevel": {"type": "string", "enum": list(RISK_LEVELS)},
    },
    "required": ["probability", "severity", "riskScore", "riskLevel"],
    "additionalProperties": False,
}

HAZARD_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "activityDetail": {"type": "string"},
        "potentialHazard": {"type": "string"},
        "consequence": {"type": "string"},
        "initialRisk": RISK_ASSESSMENT_SCHEMA,
        "riskControl": {"type": "string"},
        "residualRisk": RISK_ASSESSMENT_SCHEMA,
    },
    "required": [
        "activityDetail",
        "potentialHazard",
        "consequence",
        "initialRisk",
        "riskControl",
        "residualRisk",
    ],
    "additionalProperties": False,
}

RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {"hazards": {"type": "array", "items": HAZARD_SCHEMA}},
    "required": ["hazards"],
    "additionalProperties": False,
}

RESPONSE_FORMAT: Dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {"name": "hazard_analysis", "strict": True, "schema": RESPONSE_SCHEMA},
}


class _RawRisk(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    probability: int
    severity: int
    risk_score: Optional[int] = None
    risk_level: Optional[str] = None


class _RawHazard(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    activity_detail: str
    potential_hazard: str
    consequence: str
    initial_risk: _RawRisk
    risk_control: str
    residual_risk: _RawRisk


class _RawAnalysis(BaseModel):
    hazards: List[_RawHazard]


def build_prompt(task_description: str) -> str:
    levels = "\n".join(f"    - {level} ({low}-{high})" for low, high, level in RISK_BANDS)
    hierarchy = ", ".join(CONTROL_HIERARCHY)
    return (
        "Analyze the provided task description for potential workplace safety hazards "
        "(K3 - Keselamatan dan Kesehatan Kerja) in Indonesia. An image of the work area may also be "
        "provided for additional context.\n"
        f'Task Description: "{task_description}"\n\n'
        "Identify all potential hazards and perform a risk assessment for each. Write every text field "
        "in Bahasa Indonesia. The root object has a single key \"hazards\", an array of hazard objects.\n\n"
        "For each hazard provide:\n"
        '1. "activityDetail": the specific activity or condition related to the hazard. '
        "Reference the image if one is provided.\n"
        '2. "potentialHazard": a concise description of the hazard itself '
        '(e.g. "Tersandung kabel listrik", "Terkena percikan api gerinda").\n'
        '3. "consequence": the consequence if the hazard is realized '
        '(e.g. "Cedera ringan hingga berat, memar, patah tulang").\n'
        '4. "initialRisk": the risk assessment before any controls are applied.\n'
        '5. "riskControl": recommended control measures following the hierarchy of controls '
        f"({hierarchy}). Only include the control levels that are relevant and applicable to the "
        "hazard; omit inapplicable levels entirely. Put each applicable level on its own line, "
        'like: "REKAYASA: [description]\\nADMINISTRASI: [description]".\n'
        '6. "residualRisk": the risk assessment after the recommended controls are applied.\n\n'
        'For both "initialRisk" and "residualRisk" provide:\n'
        '- "probability": integer from 1 (very unlikely) to 5 (very likely).\n'
        '- "severity": integer from 1 (insignificant injury) to 5 (fatality).\n'
        '- "riskScore": probability * severity.\n'
        '- "riskLevel": exactly one of the levels below, chosen by riskScore:\n'
        f"{levels}\n\n"
        'If no hazards are found, return an empty hazards array: {"hazards": []}.'
    )


def build_messages(image_data_url: Optional[str], task_description: str) -> List[Dict[str, Any]]:
    content: List[Dict[str, Any]] = [{"type": "text", "text": build_prompt(task_description)}]
    if image_data_url:
        parse_data_url(image_data_url)
        content.append({"type": "image_url", "image_url": {"url": image_data_url}})
    return [{"role": "user", "content": content}]


def _normalize_risk(raw: _RawRisk, label: str) -> RiskAssessment:
    try:
        risk = classify(raw.probability, raw.severity)
    except InvalidInput as exc:
        raise ServiceCallFailure(f"{ANALYSIS_FAILED_MESSAGE} ({label}: {exc})") from exc
    if raw.risk_score != risk.risk_score or raw.risk_level != risk.risk_level:
        logger.warning(
            "Model %s (%s, %s) disagrees with classifier (%s, %s); using classifier",
            label, raw.risk_score, raw.risk_level, risk.risk_score, risk.risk_level,
        )
    return risk


def parse_analysis(text: Optional[str]) -> HazardAnalysis:
    if not text or not text.strip():
        raise ServiceCallFailure(f"{ANALYSIS_FAILED_MESSAGE} (respons kosong)")
    try:
        raw = _RawAnalysis.model_validate(json.loads(text))
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.error("Malformed hazard analysis response: %s", exc)
        logger.debug("Raw response: %s", text[:500])
        raise ServiceCallFailure(f"{ANALYSIS_FAILED_MESSAGE} (format respons tidak valid)") from exc

    hazards = [
        Hazard(
            activity_detail=item.activity_detail,
            potential_hazard=item.potential_hazard,
            consequence=item.consequence,
            initial_risk=_normalize_risk(item.initial_risk, "initialRisk"),
            risk_control=item.risk_control,
            residual_risk=_normalize_risk(item.residual_risk, "residualRisk"),
        )
        for item in raw.hazards
    ]
    return HazardAnalysis(hazards=hazards)


def analyze_hazards(image_data_url: Optional[str], task_description: str, client=None) -> HazardAnalysis:
    if not task_description or not task_description.strip():
        raise InvalidInput("Deskripsi tugas tidak boleh kosong.")
    messages = build_messages(image_data_url, task_description.strip())

    client = client or get_client()
    logger.info(
        "Analyzing task for hazards (model=%s, image=%s)",
        config.OPENAI_MODEL_ANALYSIS, bool(image_data_url),
    )
    try:
        response = client.chat.completions.create(
            model=config.OPENAI_MODEL_ANALYSIS,
            messages=messages,
            response_format=RESPONSE_FORMAT,
            temperature=config.ANALYSIS_TEMPERATURE,
        )
    except OpenAIError as exc:
        logger.error("Error analyzing task for hazards: %s", exc)
        raise ServiceCallFailure(ANALYSIS_FAILED_MESSAGE) from exc

    if not response.choices:
        raise ServiceCallFailure(f"{ANALYSIS_FAILED_MESSAGE} (respons kosong)")
    message = response.choices[0].message
    if getattr(message, "refusal", None):
        logger.error("Model refused hazard analysis: %s", message.refusal)
        raise ServiceCallFailure(f"{ANALYSIS_FAILED_MESSAGE} (permintaan ditolak model)")

    analysis = parse_analysis(message.content)
    logger.info("[OK] Hazard analysis returned %d hazards", len(analysis.hazards))
    return analysis
