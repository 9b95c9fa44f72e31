from __future__ import annotations

import pytest

from report_store import ReportStore


@pytest.fixture()
def store(tmp_path):
    return ReportStore(str(tmp_path / "reports.db"))
