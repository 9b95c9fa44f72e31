from __future__ import annotations

import pytest

from fakes import JPEG_DATA_URL, PNG_DATA_URL, hazard_payload, make_report
from models import TaskItem
from report_views import (
    UNTITLED_REPORT,
    control_breakdown,
    highest_risk_level,
    parse_risk_controls,
    residual_risk_warnings,
    risk_level_counts,
    summarize,
    summarize_all,
)


def test_summary_of_mixed_report():
    report = make_report(
        "r1",
        hazards=[
            hazard_payload("Tergores", initial=(2, 3), residual=(1, 2)),
            hazard_payload("Tersengat listrik", initial=(5, 5), residual=(2, 4)),
        ],
        tasks=[
            TaskItem(id="t1", description="Pemasangan kabel"),
            TaskItem(id="t2", description="Pengecatan dinding", image_data_url=JPEG_DATA_URL),
            TaskItem(id="t3", description="Menggerinda", image_data_url=PNG_DATA_URL),
        ],
    )
    summary = summarize(report)

    assert summary.title == "Pemasangan kabel / Pengecatan dinding / Menggerinda"
    assert summary.thumbnail_data_url == JPEG_DATA_URL
    assert summary.highest_risk_level == "Sangat Tinggi/Kritis"
    assert summary.hazard_count == 2
    assert summary.task_count == 3


def test_report_without_hazards_has_no_level():
    report = make_report("r1")
    assert highest_risk_level(report) is None
    summary = summarize(report)
    assert summary.highest_risk_level is None
    assert summary.thumbnail_data_url is None
    assert summary.to_json_dict()["highestRiskLevel"] is None


def test_blank_descriptions_fall_back_to_untitled():
    report = make_report("r1", tasks=[TaskItem(id="t1", description="")])
    assert summarize(report).title == UNTITLED_REPORT


def test_summarize_all_keeps_order():
    reports = [make_report("C"), make_report("B"), make_report("A")]
    assert [s.id for s in summarize_all(reports)] == ["C", "B", "A"]


def test_risk_level_counts():
    hazards = make_report(
        "r1",
        hazards=[
            hazard_payload(initial=(4, 5), residual=(1, 3)),
            hazard_payload(initial=(4, 4), residual=(1, 2)),
            hazard_payload(initial=(2, 5), residual=(2, 3)),
        ],
    ).hazards

    initial = risk_level_counts(hazards)
    assert initial["Tinggi"] == 2
    assert initial["Sedang"] == 1
    assert sum(initial.values()) == 3

    residual = risk_level_counts(hazards, "residual")
    assert residual["Sangat Rendah"] == 2
    assert residual["Rendah"] == 1

    with pytest.raises(ValueError):
        risk_level_counts(hazards, "final")


def test_parse_risk_controls():
    measures = parse_risk_controls(
        "REKAYASA: Pasang pagar pengaman\n\nadministrasi: Izin kerja panas\nGunakan rambu\nAPD: Helm, sarung tangan"
    )
    assert [(m.level, m.description) for m in measures] == [
        ("REKAYASA", "Pasang pagar pengaman"),
        ("ADMINISTRASI", "Izin kerja panas"),
        (None, "Gunakan rambu"),
        ("APD", "Helm, sarung tangan"),
    ]


def test_parse_risk_controls_accepts_anything():
    assert parse_risk_controls("") == []
    assert [m.level for m in parse_risk_controls("Tidak ada kontrol khusus")] == [None]


def test_residual_above_initial_is_flagged_not_rejected():
    report = make_report(
        "r1",
        hazards=[
            hazard_payload("Terpeleset", initial=(2, 2), residual=(3, 2)),
            hazard_payload("Tersengat listrik"),
        ],
    )
    assert residual_risk_warnings(report) == [
        {"hazardIndex": 0, "potentialHazard": "Terpeleset", "initialRiskScore": 4, "residualRiskScore": 6},
    ]


def test_control_breakdown_shape():
    report = make_report("r1", hazards=[hazard_payload()])
    breakdown = control_breakdown(report)

    assert breakdown["reportId"] == "r1"
    assert breakdown["hazards"][0]["controls"] == [
        {"level": "REKAYASA", "description": "Pasang pemutus arus"},
        {"level": "APD", "description": "Sarung tangan isolasi"},
    ]
    assert breakdown["highestResidualLevel"] == "Rendah"
    assert breakdown["residualWarnings"] == []
