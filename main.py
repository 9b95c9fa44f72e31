import base64
import logging
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, File, Form, Request, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, StrictInt

import config
from errors import (
    ActionInProgress,
    InspectionError,
    InvalidInput,
    NoOutputProduced,
    NotFound,
    ServiceCallFailure,
)
from inspection_service import InspectionService
from llm_client import to_data_url
from models import GroundingResult, HazardAnalysis, InspectionReport, Location, ReportSummary, TaskInput
from report_store import ReportStore
from report_views import control_breakdown, summarize_all
from risk_module import RiskAssessment, classify
from vision_module import analyze_hazards

logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
logger = logging.getLogger(__name__)

app = FastAPI(title="K3 Hazard Inspection Brain")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

_service: Optional[InspectionService] = None


def get_service() -> InspectionService:
    global _service
    if _service is None:
        _service = InspectionService(ReportStore())
    return _service


class ClassifyRequest(BaseModel):
    probability: StrictInt
    severity: StrictInt


class ComposeRequest(BaseModel):
    tasks: List[TaskInput]
    location: Optional[Location] = None


class QueryRequest(BaseModel):
    prompt: str


class ImageEditRequest(BaseModel):
    instruction: str


ERROR_STATUS = {
    InvalidInput: status.HTTP_400_BAD_REQUEST,
    NotFound: status.HTTP_404_NOT_FOUND,
    ActionInProgress: status.HTTP_409_CONFLICT,
    NoOutputProduced: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ServiceCallFailure: status.HTTP_502_BAD_GATEWAY,
}


@app.exception_handler(InspectionError)
async def inspection_error_handler(request: Request, exc: InspectionError) -> JSONResponse:
    # Most specific class first: NoOutputProduced is also a ServiceCallFailure
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=status_code, content={"error": exc.code, "message": exc.message})


@app.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok", "disclaimer": config.SAFETY_DISCLAIMER}


@app.post("/api/risk/classify", response_model=RiskAssessment)
def classify_endpoint(payload: ClassifyRequest = Body(...)) -> RiskAssessment:
    return classify(payload.probability, payload.severity)


@app.post("/api/hazards/analyze", response_model=HazardAnalysis)
async def hazards_analyze(
    task: str = Form(...),
    image: Optional[UploadFile] = File(None),
) -> HazardAnalysis:
    image_data_url = None
    if image is not None:
        data = await image.read()
        if data:
            mime = image.content_type or "application/octet-stream"
            image_data_url = to_data_url(mime, base64.b64encode(data).decode("ascii"))
    return await run_in_threadpool(analyze_hazards, image_data_url, task)


@app.post("/api/reports", response_model=InspectionReport, status_code=status.HTTP_201_CREATED)
def create_report(
    payload: ComposeRequest = Body(...),
    service: InspectionService = Depends(get_service),
) -> InspectionReport:
    return service.compose_report(payload.tasks, payload.location)


@app.get("/api/reports", response_model=List[InspectionReport])
def list_reports(service: InspectionService = Depends(get_service)) -> List[InspectionReport]:
    return service.store.list()


@app.get("/api/reports/summaries", response_model=List[ReportSummary])
def list_summaries(service: InspectionService = Depends(get_service)) -> List[ReportSummary]:
    return summarize_all(service.store.list())


@app.get("/api/reports/{report_id}", response_model=InspectionReport)
def get_report(report_id: str, service: InspectionService = Depends(get_service)) -> InspectionReport:
    return service.store.get(report_id)


@app.get("/api/reports/{report_id}/controls")
def get_report_controls(report_id: str, service: InspectionService = Depends(get_service)) -> Dict[str, Any]:
    return control_breakdown(service.store.get(report_id))


@app.post("/api/reports/{report_id}/queries", response_model=GroundingResult)
def query_report(
    report_id: str,
    payload: QueryRequest = Body(...),
    service: InspectionService = Depends(get_service),
) -> GroundingResult:
    return service.ask(report_id, payload.prompt)


@app.post("/api/reports/{report_id}/image-edits", response_model=InspectionReport)
def edit_report_image(
    report_id: str,
    payload: ImageEditRequest = Body(...),
    service: InspectionService = Depends(get_service),
) -> InspectionReport:
    return service.edit_report_image(report_id, payload.instruction)


if __name__ == "__main__":
    import os
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
