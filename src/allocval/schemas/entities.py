# src/allocval/schemas/entities.py
"""
@brief
Per-entity record schemas and the entity lookup table.

@details
Each entity kind has two Pydantic models:
    - a row model used by the generic schema pass (ClientRow, WorkerRow, TaskRow)
    - a full model adding the fields owned by a dedicated record check
      (Client adds AttributesJSON, Task adds PreferredPhases)

Spreadsheet cells arrive as loosely-typed text, so every field is declared
with a before-validator that coerces the raw cell (trimmed text, integer
text, comma lists, JSON arrays, phase ranges) before Pydantic checks the
final shape.

The lenient parsers (split_tokens, parse_int, parse_json_list, parse_phases)
are shared with the record and cross-entity checks. They raise ValueError;
the field validators re-raise as PydanticCustomError to keep messages clean.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, BeforeValidator, Field
from pydantic_core import PydanticCustomError

from allocval.schemas.models import EntityKind

_INT_RE = re.compile(r"^[+-]?\d+(?:\.0+)?$")

# Widest start-end range a PreferredPhases cell may expand to
MAX_PHASE_SPAN = 1000


# ------------------------------------------------------------
# Lenient parsers (shared with record / cross-entity checks)
# ------------------------------------------------------------
def as_text(value: Any) -> Any:
    """Render numeric cells as text; None becomes an empty string."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, int | float):
        return str(value)
    return value


def split_tokens(value: Any) -> list[str]:
    """
    @brief
    Split a comma-separated cell into trimmed, non-empty tokens.

    @details
    Lists (already-structured sources) are accepted and normalized the same
    way. Any other non-text value raises ValueError.
    """
    if isinstance(value, list | tuple):
        items = [as_text(v) for v in value]
    else:
        text = as_text(value)
        if not isinstance(text, str):
            raise ValueError("Expected a comma-separated list")
        items = text.split(",")
    return [str(item).strip() for item in items if str(item).strip()]


def parse_int(value: Any) -> int:
    """Parse an integer cell ("3", " 3 ", 3, 3.0); raises ValueError otherwise."""
    if isinstance(value, bool):
        raise ValueError("Expected an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValueError("Expected an integer")
    if isinstance(value, str) and _INT_RE.match(value.strip()):
        return int(float(value.strip()))
    raise ValueError("Expected an integer")


def parse_json_list(value: Any) -> list[Any]:
    """Parse a JSON array cell; lists pass through. Raises ValueError otherwise."""
    if isinstance(value, list):
        return value
    if not isinstance(value, str):
        raise ValueError("Expected a JSON array")
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise ValueError("Invalid JSON") from e
    if not isinstance(parsed, list):
        raise ValueError("Expected a JSON array")
    return parsed


def parse_phases(value: Any) -> list[Any]:
    """
    @brief
    Parse a PreferredPhases cell.

    @details
    Accepts a JSON array literal ("[1,2,3]") or an inclusive hyphenated range
    ("1-3" -> [1, 2, 3]). Element types are checked by the schema, not here.
    A reversed range ("3-1") or one wider than MAX_PHASE_SPAN is rejected.
    """
    if isinstance(value, list):
        return value
    text = as_text(value)
    if isinstance(text, str):
        text = text.strip()
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                return parsed
        elif "-" in text:
            parts = text.split("-")
            if len(parts) == 2:
                try:
                    start, end = parse_int(parts[0]), parse_int(parts[1])
                except ValueError:
                    start, end = 0, -1
                if start <= end and end - start < MAX_PHASE_SPAN:
                    return list(range(start, end + 1))
    raise ValueError("Invalid PreferredPhases format")


def parse_json_value(value: Any) -> Any:
    """Accept a mapping as-is or parse a JSON string; raises ValueError otherwise."""
    if isinstance(value, dict):
        return value
    if not isinstance(value, str):
        raise ValueError("Expected a JSON object or JSON text")
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise ValueError("Invalid JSON") from e


# ------------------------------------------------------------
# Field validators
# ------------------------------------------------------------
def _custom(code: str, func: Any) -> Any:
    def _validate(value: Any) -> Any:
        try:
            return func(value)
        except ValueError as e:
            raise PydanticCustomError(code, str(e)) from e

    return _validate


def _require_text(value: str) -> str:
    if not value.strip():
        raise PydanticCustomError(
            "required_field_empty", "This field is required and cannot be empty"
        )
    return value.strip()


RequiredText = Annotated[str, BeforeValidator(as_text), AfterValidator(_require_text)]
TokenList = Annotated[list[str], BeforeValidator(_custom("list_parsing", split_tokens))]
Integer = Annotated[int, BeforeValidator(_custom("int_parsing", parse_int))]
NonNegativeInteger = Annotated[
    int, BeforeValidator(_custom("int_parsing", parse_int)), Field(ge=0)
]
PositiveInteger = Annotated[int, Field(strict=True, gt=0)]
SlotList = Annotated[
    list[PositiveInteger], BeforeValidator(_custom("invalid_json", parse_json_list))
]
PhaseList = Annotated[
    list[PositiveInteger], BeforeValidator(_custom("invalid_phases", parse_phases))
]
JsonAttributes = Annotated[Any, BeforeValidator(_custom("invalid_json", parse_json_value))]


# ------------------------------------------------------------
# Record models
# ------------------------------------------------------------
class _RecordModel(BaseModel):
    """
    @brief
    Base model for spreadsheet records.

    @details
    Extra columns are tolerated: the uploaded file may carry more columns
    than the entity requires.
    """

    model_config = {
        "extra": "ignore",
        "populate_by_name": True,
    }


class ClientRow(_RecordModel):
    """Client record without AttributesJSON (checked by the broken-JSON check)."""

    ClientID: RequiredText
    ClientName: RequiredText
    PriorityLevel: Integer
    RequestedTaskIDs: TokenList
    GroupTag: RequiredText


class Client(ClientRow):
    AttributesJSON: JsonAttributes


class Worker(_RecordModel):
    WorkerID: RequiredText
    WorkerName: RequiredText
    Skills: TokenList
    AvailableSlots: SlotList
    MaxLoadPerPhase: NonNegativeInteger
    WorkerGroup: RequiredText
    QualificationLevel: RequiredText


# The worker schema owns every worker field, so the generic pass uses it whole
WorkerRow = Worker


class TaskRow(_RecordModel):
    """Task record without PreferredPhases (parsed separately by feasibility checks)."""

    TaskID: RequiredText
    TaskName: RequiredText
    Category: RequiredText
    Duration: Integer
    RequiredSkills: TokenList
    MaxConcurrent: NonNegativeInteger


class Task(TaskRow):
    PreferredPhases: PhaseList


# ------------------------------------------------------------
# Entity lookup table
# ------------------------------------------------------------
@dataclass(frozen=True)
class EntitySpec:
    """
    @brief
    Everything the engine needs to know about one entity kind.

    @details
    Replaces string switches on the file type: required columns, identifier
    field, full schema and the reduced schema used by the generic pass.
    """

    kind: EntityKind
    id_field: str
    required_columns: tuple[str, ...]
    model: type[BaseModel]
    row_model: type[BaseModel]

    @property
    def label(self) -> str:
        return self.kind.label


ENTITY_SPECS: dict[EntityKind, EntitySpec] = {
    EntityKind.CLIENT: EntitySpec(
        kind=EntityKind.CLIENT,
        id_field="ClientID",
        required_columns=(
            "ClientID",
            "ClientName",
            "PriorityLevel",
            "RequestedTaskIDs",
            "GroupTag",
            "AttributesJSON",
        ),
        model=Client,
        row_model=ClientRow,
    ),
    EntityKind.WORKER: EntitySpec(
        kind=EntityKind.WORKER,
        id_field="WorkerID",
        required_columns=(
            "WorkerID",
            "WorkerName",
            "Skills",
            "AvailableSlots",
            "MaxLoadPerPhase",
            "WorkerGroup",
            "QualificationLevel",
        ),
        model=Worker,
        row_model=WorkerRow,
    ),
    EntityKind.TASK: EntitySpec(
        kind=EntityKind.TASK,
        id_field="TaskID",
        required_columns=(
            "TaskID",
            "TaskName",
            "Category",
            "Duration",
            "RequiredSkills",
            "PreferredPhases",
            "MaxConcurrent",
        ),
        model=Task,
        row_model=TaskRow,
    ),
}


def get_entity_spec(kind: EntityKind | str) -> EntitySpec:
    return ENTITY_SPECS[EntityKind.parse(kind)]


__all__ = [
    "ENTITY_SPECS",
    "MAX_PHASE_SPAN",
    "Client",
    "ClientRow",
    "EntitySpec",
    "Task",
    "TaskRow",
    "Worker",
    "WorkerRow",
    "as_text",
    "get_entity_spec",
    "parse_int",
    "parse_json_list",
    "parse_json_value",
    "parse_phases",
    "split_tokens",
]
