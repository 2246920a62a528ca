# src/allocval/schemas/models.py
"""
@brief
Pydantic data models shared by every part of the validation engine.

@details
Defines:
    - EntityKind: the three spreadsheet types (client, worker, task)
    - FindingKind / Severity: the finding taxonomy and its derived severity
    - Finding: one validation violation, addressed by row position and column
    - Config: runtime configuration (from config.yaml), with check toggles
      and report settings

Finding serializes by alias to the camelCase names expected by the grid and
export collaborators (affectedRows, affectedFields).
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from allocval.errors import DataError


class _StrictBaseModel(BaseModel):
    """
    @brief
    Base model enforcing strict defaults for configuration and data contracts.

    @details
    Forbids unknown fields and preserves exact naming rules.
    """

    model_config = {
        "extra": "forbid",  # Reject unknown fields
        "populate_by_name": True,  # Allow population by field name
        "use_enum_values": True,  # Export raw enum values
    }


class EntityKind(str, Enum):
    """The three entity kinds a user can upload."""

    CLIENT = "client"
    WORKER = "worker"
    TASK = "task"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, value: EntityKind | str) -> EntityKind:
        """
        @brief
        Resolve an entity kind from its enum, value, label or file-type spelling.

        @details
        Accepts "client", "Client", "clients", "tasks" and so on. The plural
        spellings are the file-type names used by the upload collaborator.

        @raises
            DataError
                Raised for any other value.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            if key.endswith("s"):
                key = key[:-1]
            for kind in cls:
                if kind.value == key:
                    return kind
        raise DataError(
            message=f"Unknown entity kind: {value!r}",
            source="EntityKind.parse",
            suggested_action="Use one of: client, worker, task.",
        )


class FindingKind(str, Enum):
    """Taxonomy tag carried by every Finding."""

    SCHEMA_ERROR = "schema-error"
    MISSING_COLUMNS = "missing-columns"
    DUPLICATE_ID = "duplicate-id"
    INVALID_JSON = "invalid-json"
    OUT_OF_RANGE = "out-of-range"
    MALFORMED_LIST = "malformed-list"
    UNKNOWN_TASK_REFERENCE = "unknown-task-reference"
    SKILL_MISMATCH = "skill-mismatch"
    OVERLOADED_WORKER = "overloaded-worker"
    PHASE_SATURATION = "phase-saturation"
    MAX_CONCURRENCY_EXCEEDED = "max-concurrency-exceeded"
    INVALID_PREFERRED_PHASES = "invalid-preferred-phases"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


# Feasibility checks flag risks rather than broken data
_WARNING_KINDS = frozenset(
    {
        FindingKind.OVERLOADED_WORKER.value,
        FindingKind.PHASE_SATURATION.value,
        FindingKind.MAX_CONCURRENCY_EXCEEDED.value,
    }
)

CROSS_ENTITY_KINDS = frozenset(
    {
        FindingKind.UNKNOWN_TASK_REFERENCE.value,
        FindingKind.SKILL_MISMATCH.value,
        FindingKind.OVERLOADED_WORKER.value,
        FindingKind.PHASE_SATURATION.value,
        FindingKind.MAX_CONCURRENCY_EXCEEDED.value,
    }
)


def severity_of(kind: FindingKind | str) -> Severity:
    value = kind.value if isinstance(kind, FindingKind) else str(kind)
    return Severity.WARNING if value in _WARNING_KINDS else Severity.ERROR


class Finding(_StrictBaseModel):
    """
    @brief
    One validation violation.

    @details
    A Finding with both affected_rows and affected_fields can be projected
    onto grid cells. A Finding missing either dimension is table-scoped
    (missing-columns, phase-saturation) and is reported in the flat list only.

    @params
        kind : FindingKind
            Taxonomy tag.
        entity : EntityKind
            Table the finding belongs to.
        message : str
            Human-readable description, possibly several causes comma-joined.
        affected_rows : list[int]
            0-based row positions (alias affectedRows).
        affected_fields : list[str]
            Column names (alias affectedFields).
        details : Any
            Optional structured payload.
    """

    model_config = {**_StrictBaseModel.model_config, "frozen": True}

    kind: FindingKind = Field(..., description="Taxonomy tag")
    entity: EntityKind = Field(..., description="Entity kind of the table")
    message: str = Field(..., description="Human-readable description")
    affected_rows: list[int] = Field(
        default_factory=list, alias="affectedRows", description="0-based row positions"
    )
    affected_fields: list[str] = Field(
        default_factory=list, alias="affectedFields", description="Column names"
    )
    details: Any = Field(None, description="Optional structured payload")

    @property
    def is_cell_scoped(self) -> bool:
        return bool(self.affected_rows) and bool(self.affected_fields)

    @property
    def severity(self) -> Severity:
        return severity_of(self.kind)


# ------------------------------------------------------------
# Runtime configuration
# ------------------------------------------------------------
class CheckToggles(_StrictBaseModel):
    """
    @brief
    Switches for the optional/extended cross-entity checks.

    @details
    Mandatory checks (schema, structure, references, skill coverage)
    always run and have no switch.
    """

    overloaded_workers: bool = Field(
        True, description="Flag workers whose MaxLoadPerPhase exceeds their slot count"
    )
    phase_saturation: bool = Field(
        True, description="Flag phases whose task demand exceeds worker capacity"
    )
    max_concurrency: bool = Field(
        True, description="Flag tasks whose MaxConcurrent exceeds qualified workers"
    )


class ReportConfig(_StrictBaseModel):
    """
    @brief
    Controls the JSON validation report written by the CLI.
    """

    write_report: bool = Field(True, description="If False, no report file is written")
    output_dir: str = Field("data/output", description="Directory for the report")
    filename: str = Field("validation_report.json", description="Report file name")
    include_cell_errors: bool = Field(
        True, description="Include the per-cell error map for every table"
    )


class Config(_StrictBaseModel):
    """
    @brief
    Represents the full runtime configuration loaded from config.yaml.
    """

    checks: CheckToggles = Field(default_factory=CheckToggles.model_construct)
    report: ReportConfig = Field(default_factory=ReportConfig.model_construct)


__all__ = [
    "CROSS_ENTITY_KINDS",
    "CheckToggles",
    "Config",
    "EntityKind",
    "Finding",
    "FindingKind",
    "ReportConfig",
    "Severity",
    "severity_of",
]
