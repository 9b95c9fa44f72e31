"""Durable report store.

All reports live as one JSON array under a single namespaced key in a sqlite
key-value table; every mutation reads the whole collection, changes it and
writes it back inside one transaction.
"""
import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional

from pydantic import TypeAdapter

import config
from errors import InvalidInput, NotFound
from models import InspectionReport, ReportPatch

logger = logging.getLogger(__name__)

_reports_adapter = TypeAdapter(List[InspectionReport])


def apply_patch(report: InspectionReport, patch: ReportPatch) -> InspectionReport:
    updates = {}
    if patch.edited_image_data_url is not None:
        updates["edited_image_data_url"] = patch.edited_image_data_url
    if patch.grounding_query is not None:
        grounding = dict(report.grounding_results)
        grounding[patch.grounding_query] = patch.grounding_result
        updates["grounding_results"] = grounding
    return report.model_copy(update=updates)


class ReportStore:
    def __init__(self, path: Optional[str] = None, key: Optional[str] = None) -> None:
        self.path = path or config.SQLITE_PATH
        self.key = key or config.REPORTS_STORE_KEY
        self._lock = threading.Lock()
        self._initialized = False

    def _get_conn(self) -> sqlite3.Connection:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        conn = sqlite3.connect(self.path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )"""
            )
        finally:
            conn.close()
        self._initialized = True

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        if not self._initialized:
            self.init_db()
        with self._lock:
            conn = self._get_conn()
            try:
                conn.execute("BEGIN IMMEDIATE")
                yield conn
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            finally:
                conn.close()

    def _read_all(self, conn: sqlite3.Connection) -> List[InspectionReport]:
        row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (self.key,)).fetchone()
        if row is None:
            return []
        return _reports_adapter.validate_json(row["value"])

    def _write_all(self, conn: sqlite3.Connection, reports: List[InspectionReport]) -> None:
        value = _reports_adapter.dump_json(reports, by_alias=True).decode("utf-8")
        conn.execute(
            "INSERT INTO kv_store (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (self.key, value),
        )

    def create(self, report: InspectionReport) -> InspectionReport:
        with self._transaction() as conn:
            reports = self._read_all(conn)
            if any(r.id == report.id for r in reports):
                raise InvalidInput(f"Laporan dengan id {report.id} sudah ada.")
            # Most recent first
            self._write_all(conn, [report] + reports)
        logger.info("Report %s stored (%d tasks)", report.id, len(report.tasks))
        return report

    def update(self, report_id: str, patch: ReportPatch) -> InspectionReport:
        with self._transaction() as conn:
            reports = self._read_all(conn)
            for index, current in enumerate(reports):
                if current.id == report_id:
                    updated = apply_patch(current, patch)
                    reports[index] = updated
                    self._write_all(conn, reports)
                    break
            else:
                raise NotFound(f"Laporan {report_id} tidak ditemukan.")
        logger.info("Report %s updated", report_id)
        return updated

    def list(self) -> List[InspectionReport]:
        with self._transaction() as conn:
            return self._read_all(conn)

    def get(self, report_id: str) -> InspectionReport:
        for report in self.list():
            if report.id == report_id:
                return report
        raise NotFound(f"Laporan {report_id} tidak ditemukan.")

    def count(self) -> int:
        return len(self.list())
