# tests/validator/test_structural.py
import logging

from allocval.schemas.entities import get_entity_spec
from allocval.schemas.models import EntityKind, FindingKind
from allocval.validator.structural import (
    check_duplicate_ids,
    check_missing_columns,
    first_occurrences,
    identifier_of,
    missing_columns,
)

CLIENT_HEADERS = list(get_entity_spec(EntityKind.CLIENT).required_columns)
TASK_HEADERS = list(get_entity_spec(EntityKind.TASK).required_columns)


# ------------------------------------------------------------------------------
# Missing columns
# ------------------------------------------------------------------------------
def test_complete_header_has_no_findings():
    assert check_missing_columns(CLIENT_HEADERS, EntityKind.CLIENT) == []


def test_extra_columns_are_tolerated():
    assert check_missing_columns(TASK_HEADERS + ["Notes"], "tasks") == []


def test_missing_columns_single_table_scoped_finding(caplog):
    headers = [h for h in CLIENT_HEADERS if h not in ("GroupTag", "AttributesJSON")]

    with caplog.at_level(logging.WARNING):
        findings = check_missing_columns(headers, EntityKind.CLIENT, "clients.csv")

    assert len(findings) == 1
    f = findings[0]
    assert f.kind == FindingKind.MISSING_COLUMNS
    assert f.message == "Missing required column(s): GroupTag, AttributesJSON in clients.csv"
    assert f.details == ["GroupTag", "AttributesJSON"]
    assert f.is_cell_scoped is False
    assert "Missing required column(s)" in caplog.text


def test_missing_columns_strips_header_whitespace():
    headers = [f" {h} " for h in TASK_HEADERS]
    assert missing_columns(headers, EntityKind.TASK) == []


# ------------------------------------------------------------------------------
# Duplicate identifiers
# ------------------------------------------------------------------------------
def test_identifier_of_trims_and_treats_empty_as_none():
    assert identifier_of({"ClientID": " C1 "}, "ClientID") == "C1"
    assert identifier_of({"ClientID": "  "}, "ClientID") is None
    assert identifier_of({}, "ClientID") is None
    assert identifier_of({"TaskID": 7.0}, "TaskID") == "7"


def test_first_occurrences_index():
    rows = [{"TaskID": "T1"}, {"TaskID": "T2"}, {"TaskID": "T1"}]
    assert first_occurrences(rows, "TaskID") == {"T1": 0, "T2": 1}


def test_later_occurrences_are_flagged_first_is_not():
    rows = [{"WorkerID": "W1"}, {"WorkerID": "W2"}, {"WorkerID": "W1"}, {"WorkerID": " W1"}]

    findings = check_duplicate_ids(rows, EntityKind.WORKER)

    assert [f.affected_rows for f in findings] == [[2], [3]]
    assert all(f.affected_fields == ["WorkerID"] for f in findings)
    assert findings[0].message == "Duplicate WorkerID 'W1' found at row 3"
    assert findings[0].details == {"value": "W1", "first_row": 0}


def test_empty_identifiers_never_duplicate():
    rows = [{"ClientID": ""}, {"ClientID": ""}, {"ClientID": None}, {}]
    assert check_duplicate_ids(rows, EntityKind.CLIENT) == []


def test_every_duplicate_pair_is_covered():
    ids = ["A", "B", "A", "C", "B", "A"]
    rows = [{"TaskID": i} for i in ids]
    findings = check_duplicate_ids(rows, "task")
    flagged = {f.affected_rows[0]: f.details["first_row"] for f in findings}

    for i in range(len(ids)):
        for j in range(i + 1, len(ids)):
            if ids[i] == ids[j]:
                # The later row is flagged and points at the first occurrence of its id
                assert j in flagged
                assert ids[flagged[j]] == ids[i]
