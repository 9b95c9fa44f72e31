from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

import main
from errors import NoOutputProduced, ServiceCallFailure
from fakes import PNG_DATA_URL, hazard_payload, make_report
from inspection_service import InspectionService
from models import GroundingChunk, GroundingResult, GroundingSource, HazardAnalysis, TaskItem


def fake_analyzer(image_data_url, description):
    return HazardAnalysis.model_validate({"hazards": [hazard_payload(description)]})


@pytest.fixture()
def service(store):
    return InspectionService(store, analyzer=fake_analyzer)


@pytest.fixture()
def client(service):
    main.app.dependency_overrides[main.get_service] = lambda: service
    try:
        yield TestClient(main.app)
    finally:
        main.app.dependency_overrides.clear()


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["disclaimer"]


def test_classify(client):
    response = client.post("/api/risk/classify", json={"probability": 4, "severity": 5})
    assert response.status_code == 200
    assert response.json() == {"probability": 4, "severity": 5, "riskScore": 20, "riskLevel": "Tinggi"}


def test_classify_out_of_scale(client):
    response = client.post("/api/risk/classify", json={"probability": 6, "severity": 1})
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_input"


def test_classify_rejects_non_integer(client):
    response = client.post("/api/risk/classify", json={"probability": 2.5, "severity": 1})
    assert response.status_code == 422


def test_analyze_single_task(client, monkeypatch):
    seen = []

    def analyzer(image_data_url, description):
        seen.append((image_data_url, description))
        return fake_analyzer(image_data_url, description)

    monkeypatch.setattr(main, "analyze_hazards", analyzer)
    response = client.post(
        "/api/hazards/analyze",
        data={"task": "Pengelasan pipa"},
        files={"image": ("foto.png", b"\x89PNG\r\n\x1a\n", "image/png")},
    )
    assert response.status_code == 200
    assert response.json()["hazards"][0]["potentialHazard"] == "Pengelasan pipa"
    assert seen == [(PNG_DATA_URL, "Pengelasan pipa")]


def test_compose_and_read_back(client):
    response = client.post(
        "/api/reports",
        json={
            "tasks": [
                {"description": "Pemasangan kabel", "imageDataUrl": PNG_DATA_URL},
                {"description": "  "},
                {"description": "Menggerinda"},
            ],
            "location": {"latitude": -6.2, "longitude": 106.8},
        },
    )
    assert response.status_code == 201
    report = response.json()
    assert [t["description"] for t in report["tasks"]] == ["Pemasangan kabel", "Menggerinda"]
    assert [h["potentialHazard"] for h in report["analysis"]["hazards"]] == ["Pemasangan kabel", "Menggerinda"]
    assert report["groundingResults"] == {}

    assert client.get(f"/api/reports/{report['id']}").json() == report
    assert [r["id"] for r in client.get("/api/reports").json()] == [report["id"]]

    summaries = client.get("/api/reports/summaries").json()
    assert summaries[0]["title"] == "Pemasangan kabel / Menggerinda"
    assert summaries[0]["thumbnailDataUrl"] == PNG_DATA_URL
    assert summaries[0]["highestRiskLevel"] == "Tinggi"


def test_compose_without_descriptions(client, store):
    response = client.post("/api/reports", json={"tasks": [{"description": ""}]})
    assert response.status_code == 400
    assert response.json()["message"] == "Harap masukkan setidaknya satu deskripsi tugas."
    assert store.count() == 0


def test_compose_analysis_failure_is_bad_gateway(store):
    def failing(image_data_url, description):
        raise ServiceCallFailure("Gagal menganalisis data dengan model AI.")

    main.app.dependency_overrides[main.get_service] = lambda: InspectionService(store, analyzer=failing)
    try:
        response = TestClient(main.app).post("/api/reports", json={"tasks": [{"description": "Tugas"}]})
    finally:
        main.app.dependency_overrides.clear()
    assert response.status_code == 502
    assert response.json()["error"] == "service_call_failure"
    assert store.count() == 0


def test_unknown_report(client):
    response = client.get("/api/reports/missing")
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_controls_endpoint(client, store):
    store.create(make_report("r1", hazards=[hazard_payload()]))
    body = client.get("/api/reports/r1/controls").json()
    assert body["reportId"] == "r1"
    assert body["hazards"][0]["controls"][0] == {"level": "REKAYASA", "description": "Pasang pemutus arus"}


def test_query_endpoint(client, service, store):
    store.create(make_report("r1"))
    answer = GroundingResult(
        text="RSCM",
        chunks=[GroundingChunk(maps=GroundingSource(uri="https://maps.google.com/?cid=1", title="RSCM"))],
    )
    service.searcher = lambda prompt, location: answer

    response = client.post("/api/reports/r1/queries", json={"prompt": "rumah sakit terdekat"})
    assert response.status_code == 200
    assert response.json() == {
        "text": "RSCM",
        "chunks": [{"maps": {"uri": "https://maps.google.com/?cid=1", "title": "RSCM"}}],
    }
    stored = client.get("/api/reports/r1").json()
    assert stored["groundingResults"]["rumah sakit terdekat"]["text"] == "RSCM"


def test_image_edit_endpoint(client, service, store):
    store.create(make_report("r1", tasks=[TaskItem(id="t1", description="Foto", image_data_url=PNG_DATA_URL)]))
    service.editor = lambda source, instruction: "data:image/png;base64,QUJD"

    response = client.post("/api/reports/r1/image-edits", json={"instruction": "tandai bahaya"})
    assert response.status_code == 200
    assert response.json()["editedImageDataUrl"] == "data:image/png;base64,QUJD"


def test_image_edit_without_output(client, service, store):
    store.create(make_report("r1", tasks=[TaskItem(id="t1", description="Foto", image_data_url=PNG_DATA_URL)]))

    def no_image(source, instruction):
        raise NoOutputProduced("Model tidak menghasilkan gambar. Coba prompt yang berbeda.")

    service.editor = no_image
    response = client.post("/api/reports/r1/image-edits", json={"instruction": "tandai bahaya"})
    assert response.status_code == 422
    assert response.json()["error"] == "no_output_produced"
    assert client.get("/api/reports/r1").json()["editedImageDataUrl"] is None
