"""Domain models for inspection reports.

Attributes are snake_case; every model dumps by alias so the stored and wire
shape stays camelCase (``imageDataUrl``, ``initialRisk``, ``groundingResults``...).
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_serializer, model_validator
from pydantic.alias_generators import to_camel

from risk_module import RiskAssessment, RiskLevel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Location(CamelModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class TaskItem(CamelModel):
    id: str
    description: str
    image_data_url: Optional[str] = None


class Hazard(CamelModel):
    activity_detail: str
    potential_hazard: str
    consequence: str
    initial_risk: RiskAssessment
    risk_control: str
    residual_risk: RiskAssessment


class HazardAnalysis(CamelModel):
    hazards: List[Hazard] = Field(default_factory=list)


class GroundingSource(CamelModel):
    uri: str
    title: str = ""


class GroundingChunk(CamelModel):
    """One citation; exactly one of ``web`` / ``maps`` is set."""

    web: Optional[GroundingSource] = None
    maps: Optional[GroundingSource] = None

    @model_validator(mode="after")
    def exactly_one_variant(self) -> "GroundingChunk":
        if (self.web is None) == (self.maps is None):
            raise ValueError("GroundingChunk needs exactly one of 'web' or 'maps'")
        return self

    @property
    def kind(self) -> str:
        return "web" if self.web is not None else "maps"

    @property
    def source(self) -> GroundingSource:
        return self.web if self.web is not None else self.maps

    @model_serializer(mode="wrap")
    def drop_empty_variant(self, handler):
        data = handler(self)
        return {key: value for key, value in data.items() if value is not None}


class GroundingResult(CamelModel):
    text: str
    chunks: List[GroundingChunk] = Field(default_factory=list)


class InspectionReport(CamelModel):
    id: str
    date: datetime
    tasks: List[TaskItem] = Field(min_length=1)
    analysis: Optional[HazardAnalysis] = None
    location: Optional[Location] = None
    grounding_results: Dict[str, GroundingResult] = Field(default_factory=dict)
    edited_image_data_url: Optional[str] = None

    @property
    def hazards(self) -> List[Hazard]:
        return list(self.analysis.hazards) if self.analysis else []

    def source_image(self) -> Optional[str]:
        """Image an edit starts from: the last edit, else the first task photo."""
        if self.edited_image_data_url:
            return self.edited_image_data_url
        for task in self.tasks:
            if task.image_data_url:
                return task.image_data_url
        return None


class ReportPatch(CamelModel):
    edited_image_data_url: Optional[str] = None
    grounding_query: Optional[str] = None
    grounding_result: Optional[GroundingResult] = None

    @model_validator(mode="after")
    def check_fields(self) -> "ReportPatch":
        if (self.grounding_query is None) != (self.grounding_result is None):
            raise ValueError("groundingQuery and groundingResult must be given together")
        if self.edited_image_data_url is None and self.grounding_query is None:
            raise ValueError("ReportPatch must change at least one field")
        return self


class ReportSummary(CamelModel):
    id: str
    date: datetime
    title: str
    thumbnail_data_url: Optional[str] = None
    highest_risk_level: Optional[RiskLevel] = None
    hazard_count: int = 0
    task_count: int = 0


class ControlMeasure(CamelModel):
    level: Optional[str] = None
    description: str


class TaskInput(CamelModel):
    """A task as the user composes it, before it gets an id."""

    description: str = ""
    image_data_url: Optional[str] = None
