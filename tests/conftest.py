import sys
from pathlib import Path
from typing import Any

import pytest

# (1) Add repository root and src/ to sys.path to enable absolute imports
#     The root directory contains scripts/ and src/.
ROOT = Path(__file__).resolve().parents[1]
for path in (ROOT, ROOT / "src"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from allocval.validator.types import ValidationContext  # noqa: E402


def _client(**overrides: Any) -> dict[str, Any]:
    row = {
        "ClientID": "C1",
        "ClientName": "Acme",
        "PriorityLevel": "3",
        "RequestedTaskIDs": "T1",
        "GroupTag": "GroupA",
        "AttributesJSON": '{"vip": true}',
    }
    row.update(overrides)
    return row


def _worker(**overrides: Any) -> dict[str, Any]:
    row = {
        "WorkerID": "W1",
        "WorkerName": "Ada",
        "Skills": "python,ml",
        "AvailableSlots": "[1,2,3]",
        "MaxLoadPerPhase": "2",
        "WorkerGroup": "Team1",
        "QualificationLevel": "Senior",
    }
    row.update(overrides)
    return row


def _task(**overrides: Any) -> dict[str, Any]:
    row = {
        "TaskID": "T1",
        "TaskName": "Model training",
        "Category": "ML",
        "Duration": "1",
        "RequiredSkills": "python",
        "PreferredPhases": "[1,2]",
        "MaxConcurrent": "1",
    }
    row.update(overrides)
    return row


@pytest.fixture()
def make_client():
    """Factory for a valid client row; keyword arguments override cells."""
    return _client


@pytest.fixture()
def make_worker():
    """Factory for a valid worker row; keyword arguments override cells."""
    return _worker


@pytest.fixture()
def make_task():
    """Factory for a valid task row; keyword arguments override cells."""
    return _task


@pytest.fixture()
def valid_context() -> ValidationContext:
    """One client, one worker, one task: consistent across every check."""
    return ValidationContext(clients=[_client()], workers=[_worker()], tasks=[_task()])
