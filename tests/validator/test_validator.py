# tests/validator/test_validator.py
from __future__ import annotations

import copy
import logging

import pytest

from allocval.errors import DataError
from allocval.schemas.entities import get_entity_spec
from allocval.schemas.models import Config, EntityKind, FindingKind
from allocval.validator.types import TableState, ValidationContext
from allocval.validator.validator import Validator, validate, validate_cross_entity, validate_row

CLIENT_HEADERS = list(get_entity_spec(EntityKind.CLIENT).required_columns)
WORKER_HEADERS = list(get_entity_spec(EntityKind.WORKER).required_columns)
TASK_HEADERS = list(get_entity_spec(EntityKind.TASK).required_columns)


# -----------------------------
# FULL-TABLE PASS
# -----------------------------
def test_valid_table_passes(valid_context, caplog):
    with caplog.at_level(logging.INFO):
        result = validate("client", valid_context.clients, CLIENT_HEADERS, valid_context)

    assert result.valid is True
    assert result.state is TableState.VALID
    assert result.findings == []
    assert result.cell_error_map == {}
    assert "Validator[client]: 1 row(s) valid." in caplog.text


def test_duplicate_and_out_of_range_scenario(make_client):
    rows = [
        make_client(ClientID="C1", PriorityLevel="6"),
        make_client(ClientID="C1", PriorityLevel="3"),
    ]

    result = validate(EntityKind.CLIENT, rows, CLIENT_HEADERS)

    assert [(str(f.kind), f.affected_rows, f.affected_fields) for f in result.findings] == [
        ("out-of-range", [0], ["PriorityLevel"]),
        ("duplicate-id", [1], ["ClientID"]),
    ]
    assert result.cell_error_map == {
        "PriorityLevel": {0: ["PriorityLevel must be between 1 and 5"]},
        "ClientID": {1: ["Duplicate ClientID 'C1' found at row 2"]},
    }
    assert result.state is TableState.HAS_FINDINGS


def test_full_pass_is_idempotent(make_task, make_worker):
    tasks = [
        make_task(),
        make_task(Duration="0", PreferredPhases="abc"),
        make_task(TaskID="T2", RequiredSkills="cobol", MaxConcurrent="x"),
    ]
    ctx = ValidationContext(workers=[make_worker()])
    snapshot = copy.deepcopy(tasks)

    first = validate("task", tasks, TASK_HEADERS, ctx)
    second = validate("task", tasks, TASK_HEADERS, ctx)

    assert first.findings == second.findings
    assert first.cell_error_map == second.cell_error_map
    assert tasks == snapshot


def test_missing_columns_skip_record_checks(make_client):
    headers = [h for h in CLIENT_HEADERS if h != "GroupTag"]
    rows = [{k: v for k, v in make_client(PriorityLevel="9").items() if k != "GroupTag"}]

    result = validate("client", rows, headers, source_name="clients.csv")

    assert [str(f.kind) for f in result.findings] == ["missing-columns"]
    assert result.findings[0].message == "Missing required column(s): GroupTag in clients.csv"
    assert result.table_findings == result.findings
    assert result.cell_error_map == {}


def test_missing_columns_still_run_cross_checks(make_worker, make_task):
    headers = [h for h in TASK_HEADERS if h != "Category"]
    tasks = [make_task(RequiredSkills="rust", MaxConcurrent="0")]
    ctx = ValidationContext(workers=[make_worker()])

    result = validate("task", tasks, headers, ctx)

    assert [str(f.kind) for f in result.findings] == ["missing-columns", "skill-mismatch"]


def test_context_uses_current_rows_not_stale_snapshot(make_worker, make_task):
    stale = ValidationContext(workers=[make_worker()], tasks=[make_task()])
    current = [make_task(RequiredSkills="haskell")]

    result = validate("task", current, TASK_HEADERS, stale)

    assert FindingKind.SKILL_MISMATCH in [f.kind for f in result.findings]


def test_cross_findings_belong_to_their_entity(make_worker, make_task):
    ctx = ValidationContext(tasks=[make_task(RequiredSkills="haskell")])
    workers = [make_worker()]

    worker_result = validate("worker", workers, WORKER_HEADERS, ctx)

    assert worker_result.findings == []


def test_optional_checks_respect_config(make_worker, make_task):
    ctx = ValidationContext(workers=[make_worker(Skills="python")])
    tasks = [make_task(MaxConcurrent="4")]

    on = validate("task", tasks, TASK_HEADERS, ctx)
    off = validate(
        "task", tasks, TASK_HEADERS, ctx, config=Config(checks={"max_concurrency": False})
    )

    assert [str(f.kind) for f in on.findings] == ["max-concurrency-exceeded"]
    assert off.findings == []


def test_findings_summary_is_logged(make_client, caplog):
    rows = [make_client(), make_client()]

    validator = Validator("clients", rows, CLIENT_HEADERS)
    validator.run_all_checks()
    with caplog.at_level(logging.WARNING):
        result = validator.build_result()

    assert validator.kind is EntityKind.CLIENT
    assert result.findings == validator.findings
    assert "Validator[client]: 1 finding(s) across 2 row(s) [duplicate-id=1]" in caplog.text


# -----------------------------
# SINGLE-ROW PASS
# -----------------------------
def test_validate_row_sees_current_table(make_task, make_worker):
    ctx = ValidationContext(
        workers=[make_worker()],
        tasks=[make_task(), make_task(Duration="0")],
    )

    findings = validate_row("task", 1, ctx)

    assert [str(f.kind) for f in findings] == ["duplicate-id", "out-of-range"]
    assert all(f.affected_rows == [1] for f in findings)


def test_validate_row_appends_cross_findings_for_kind(make_client, make_task):
    ctx = ValidationContext(
        clients=[
            make_client(RequestedTaskIDs="T1"),
            make_client(ClientID="C2", RequestedTaskIDs="T5"),
        ],
        tasks=[make_task()],
    )

    findings = validate_row("client", 0, ctx)

    # Row 0 itself is clean; the cross pass reports row 1's reference
    assert [(str(f.kind), f.affected_rows) for f in findings] == [
        ("unknown-task-reference", [1])
    ]


@pytest.mark.parametrize("index", [-1, 2])
def test_validate_row_out_of_range_raises(valid_context, index):
    ctx = valid_context.with_rows("client", [{"ClientID": "C1"}, {"ClientID": "C2"}])
    with pytest.raises(DataError) as e:
        validate_row("client", index, ctx)
    assert "out of range" in str(e.value)


# -----------------------------
# CROSS-ENTITY GROUPING
# -----------------------------
def test_validate_cross_entity_groups_by_entity(make_client, make_worker, make_task):
    ctx = ValidationContext(
        clients=[make_client(RequestedTaskIDs="T9")],
        workers=[make_worker(AvailableSlots="[1]", MaxLoadPerPhase="5")],
        tasks=[make_task(RequiredSkills="go")],
    )

    cfg = Config(checks={"phase_saturation": False, "max_concurrency": False})
    grouped = validate_cross_entity(ctx, cfg)

    assert set(grouped) == set(EntityKind)
    assert [str(f.kind) for f in grouped[EntityKind.CLIENT]] == ["unknown-task-reference"]
    assert [str(f.kind) for f in grouped[EntityKind.WORKER]] == ["overloaded-worker"]
    assert [str(f.kind) for f in grouped[EntityKind.TASK]] == ["skill-mismatch"]
