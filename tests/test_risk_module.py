from __future__ import annotations

import pytest
from pydantic import ValidationError

from errors import InvalidInput
from risk_module import RiskAssessment, classify, highest_level, level_for_score, level_rank


@pytest.mark.parametrize("probability", range(1, 6))
@pytest.mark.parametrize("severity", range(1, 6))
def test_score_is_product(probability, severity):
    risk = classify(probability, severity)
    assert risk.risk_score == probability * severity
    assert risk.risk_level == level_for_score(probability * severity)


@pytest.mark.parametrize(
    "score, level",
    [
        (1, "Sangat Rendah"),
        (4, "Sangat Rendah"),
        (5, "Rendah"),
        (9, "Rendah"),
        (10, "Sedang"),
        (15, "Sedang"),
        (16, "Tinggi"),
        (20, "Tinggi"),
        (21, "Sangat Tinggi/Kritis"),
        (25, "Sangat Tinggi/Kritis"),
    ],
)
def test_level_boundaries(score, level):
    assert level_for_score(score) == level


def test_classify_examples():
    assert classify(2, 2).risk_level == "Sangat Rendah"
    assert classify(1, 5).risk_level == "Rendah"
    assert classify(3, 3).risk_level == "Rendah"
    assert classify(2, 5).risk_level == "Sedang"
    assert classify(4, 4).risk_level == "Tinggi"
    assert classify(4, 5).risk_level == "Tinggi"
    assert classify(5, 5).risk_level == "Sangat Tinggi/Kritis"


@pytest.mark.parametrize(
    "probability, severity",
    [(0, 3), (6, 3), (3, 0), (3, 6), (2.5, 3), (3, 3.0), ("3", 3), (True, 3), (None, 2)],
)
def test_classify_rejects_invalid(probability, severity):
    with pytest.raises(InvalidInput):
        classify(probability, severity)


def test_level_for_score_out_of_range():
    with pytest.raises(InvalidInput):
        level_for_score(0)
    with pytest.raises(InvalidInput):
        level_for_score(26)


def test_assessment_rejects_inconsistent_score():
    with pytest.raises(ValidationError):
        RiskAssessment(probability=2, severity=3, risk_score=7, risk_level="Rendah")
    with pytest.raises(ValidationError):
        RiskAssessment(probability=2, severity=3, risk_score=6, risk_level="Sedang")


def test_assessment_dumps_camel_case():
    data = classify(4, 4).model_dump(by_alias=True)
    assert data == {"probability": 4, "severity": 4, "riskScore": 16, "riskLevel": "Tinggi"}


def test_highest_level_ordering():
    assert highest_level([]) is None
    assert highest_level(["Rendah", "Tinggi", "Sedang"]) == "Tinggi"
    assert level_rank("Sangat Rendah") < level_rank("Sangat Tinggi/Kritis")
