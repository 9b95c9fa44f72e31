"""Risk classifier for the K3 (HIRADC) 5x5 probability/severity matrix."""
from typing import Iterable, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from errors import InvalidInput


RiskLevel = Literal["Sangat Rendah", "Rendah", "Sedang", "Tinggi", "Sangat Tinggi/Kritis"]

# Ordered lowest to highest; contiguous and exhaustive over 1..25.
RISK_BANDS: Tuple[Tuple[int, int, str], ...] = (
    (1, 4, "Sangat Rendah"),
    (5, 9, "Rendah"),
    (10, 15, "Sedang"),
    (16, 20, "Tinggi"),
    (21, 25, "Sangat Tinggi/Kritis"),
)

RISK_LEVELS: Tuple[str, ...] = tuple(level for _, _, level in RISK_BANDS)
RISK_ORDER = {level: index + 1 for index, level in enumerate(RISK_LEVELS)}

SCALE_MIN = 1
SCALE_MAX = 5


def level_for_score(score: int) -> str:
    if isinstance(score, bool) or not isinstance(score, int):
        raise InvalidInput(f"Skor risiko harus bilangan bulat, bukan {score!r}")
    for low, high, level in RISK_BANDS:
        if low <= score <= high:
            return level
    raise InvalidInput(f"Skor risiko {score} di luar rentang 1-25")


def level_rank(level: str) -> int:
    try:
        return RISK_ORDER[level]
    except KeyError:
        raise InvalidInput(f"Tingkat risiko tidak dikenal: {level!r}")


def highest_level(levels: Iterable[str]) -> Optional[str]:
    highest = None
    for level in levels:
        if highest is None or level_rank(level) > level_rank(highest):
            highest = level
    return highest


class RiskAssessment(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    probability: int = Field(ge=SCALE_MIN, le=SCALE_MAX)
    severity: int = Field(ge=SCALE_MIN, le=SCALE_MAX)
    risk_score: int
    risk_level: RiskLevel

    @model_validator(mode="after")
    def check_derived(self) -> "RiskAssessment":
        expected = self.probability * self.severity
        if self.risk_score != expected:
            raise ValueError(f"riskScore must be probability*severity ({expected}), got {self.risk_score}")
        if self.risk_level != level_for_score(expected):
            raise ValueError(f"riskLevel for score {expected} must be {level_for_score(expected)!r}")
        return self


def _check_scale(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{name} harus bilangan bulat 1-5, bukan {value!r}")
    if not SCALE_MIN <= value <= SCALE_MAX:
        raise InvalidInput(f"{name} harus di antara 1 dan 5, bukan {value}")
    return value


def classify(probability: int, severity: int) -> RiskAssessment:
    probability = _check_scale("probability", probability)
    severity = _check_scale("severity", severity)
    score = probability * severity
    return RiskAssessment(
        probability=probability,
        severity=severity,
        risk_score=score,
        risk_level=level_for_score(score),
    )
