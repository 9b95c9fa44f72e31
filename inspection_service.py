"""Composition flow and follow-up actions for inspection reports."""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional, Sequence, Set, Tuple
from uuid import uuid4

import config
from errors import ActionInProgress, InvalidInput
from grounding_module import grounded_query
from image_edit_module import edit_image
from llm_client import parse_data_url
from models import (
    GroundingResult,
    HazardAnalysis,
    InspectionReport,
    Location,
    ReportPatch,
    TaskInput,
    TaskItem,
)
from report_store import ReportStore
from vision_module import analyze_hazards

logger = logging.getLogger(__name__)

Analyzer = Callable[[Optional[str], str], HazardAnalysis]
Searcher = Callable[[str, Optional[Location]], GroundingResult]
Editor = Callable[[str, str], str]


class InspectionService:
    def __init__(
        self,
        store: ReportStore,
        analyzer: Analyzer = analyze_hazards,
        searcher: Searcher = grounded_query,
        editor: Editor = edit_image,
        max_workers: Optional[int] = None,
    ) -> None:
        self.store = store
        self.analyzer = analyzer
        self.searcher = searcher
        self.editor = editor
        self.max_workers = max_workers or config.ANALYSIS_MAX_WORKERS
        self._in_flight: Set[Tuple[str, str]] = set()
        self._busy_lock = threading.Lock()

    @contextmanager
    def _busy(self, action: str, report_id: str) -> Iterator[None]:
        key = (action, report_id)
        with self._busy_lock:
            if key in self._in_flight:
                raise ActionInProgress("Permintaan yang sama masih diproses. Tunggu hingga selesai.")
            self._in_flight.add(key)
        try:
            yield
        finally:
            with self._busy_lock:
                self._in_flight.discard(key)

    def _prepare_tasks(self, tasks: Sequence[TaskInput]) -> List[TaskItem]:
        valid = [t for t in tasks if t.description and t.description.strip()]
        if not valid:
            raise InvalidInput("Harap masukkan setidaknya satu deskripsi tugas.")
        if len(valid) > config.MAX_TASKS:
            raise InvalidInput(f"Maksimal {config.MAX_TASKS} tugas per laporan.")
        items = []
        for task in valid:
            if task.image_data_url:
                parse_data_url(task.image_data_url)
            items.append(TaskItem(
                id=str(uuid4()),
                description=task.description.strip(),
                image_data_url=task.image_data_url or None,
            ))
        return items

    def analyze_tasks(self, tasks: Sequence[TaskItem]) -> HazardAnalysis:
        """Analyze every task concurrently; all must succeed.

        Hazards are concatenated in task order. The first failure (in task
        order) is re-raised once every call has finished.
        """
        workers = max(1, min(self.max_workers, len(tasks)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="hazard-analysis") as pool:
            futures = [pool.submit(self.analyzer, t.image_data_url, t.description) for t in tasks]
            results = [f.result() for f in futures]
        hazards = [hazard for result in results for hazard in result.hazards]
        return HazardAnalysis(hazards=hazards)

    def compose_report(self, tasks: Sequence[TaskInput], location: Optional[Location] = None) -> InspectionReport:
        items = self._prepare_tasks(tasks)
        logger.info("Composing report from %d tasks (location=%s)", len(items), location is not None)
        try:
            analysis = self.analyze_tasks(items)
        except Exception:
            logger.error("Report composition aborted; nothing stored")
            raise

        report = InspectionReport(
            id=str(uuid4()),
            date=datetime.now(timezone.utc),
            tasks=items,
            analysis=analysis,
            location=location,
        )
        return self.store.create(report)

    def ask(self, report_id: str, prompt: str) -> GroundingResult:
        if not prompt or not prompt.strip():
            raise InvalidInput("Pertanyaan tidak boleh kosong.")
        report = self.store.get(report_id)
        with self._busy("query", report_id):
            result = self.searcher(prompt, report.location)
            self.store.update(report_id, ReportPatch(grounding_query=prompt, grounding_result=result))
        return result

    def edit_report_image(self, report_id: str, instruction: str) -> InspectionReport:
        if not instruction or not instruction.strip():
            raise InvalidInput("Instruksi edit tidak boleh kosong.")
        report = self.store.get(report_id)
        source = report.source_image()
        if not source:
            raise InvalidInput("Tidak ada gambar untuk diedit dalam laporan ini.")
        with self._busy("image_edit", report_id):
            edited = self.editor(source, instruction)
            return self.store.update(report_id, ReportPatch(edited_image_data_url=edited))
