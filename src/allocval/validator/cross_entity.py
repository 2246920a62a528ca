# src/allocval/validator/cross_entity.py
"""
@brief
Checks that need clients, workers and tasks at the same time.

@details
Every check reads the ValidationContext only and never mutates it. A check
whose input tables are empty returns no findings: a partial context cannot
prove a relational violation. Rows whose cells do not parse are skipped here;
the record validators already report them.

Order (also the order of the emitted findings):
    1. unknown task references   (client rows)
    2. skill coverage            (task rows)
    3. overloaded workers        (worker rows, optional)
    4. phase-slot saturation     (table-scoped, optional)
    5. max-concurrency feasibility (task rows, optional)
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping
from typing import Any

from allocval.schemas.entities import parse_int, parse_json_list, parse_phases, split_tokens
from allocval.schemas.models import Config, EntityKind, Finding, FindingKind
from allocval.validator.guard import run_guarded
from allocval.validator.structural import identifier_of
from allocval.validator.types import ValidationContext


# ----------------------------
# AUXILIARY FUNCTIONS
# ----------------------------
def _tokens(row: Mapping[str, Any], field: str) -> list[str]:
    try:
        return split_tokens(row.get(field))
    except ValueError:
        return []


def _int(row: Mapping[str, Any], field: str) -> int | None:
    try:
        return parse_int(row.get(field))
    except ValueError:
        return None


def _positive_ints(values: list[Any]) -> list[int]:
    return [v for v in values if isinstance(v, int) and not isinstance(v, bool) and v > 0]


def _slots(row: Mapping[str, Any]) -> list[Any] | None:
    try:
        return parse_json_list(row.get("AvailableSlots"))
    except ValueError:
        return None


def _phases(row: Mapping[str, Any]) -> list[int] | None:
    try:
        return _positive_ints(parse_phases(row.get("PreferredPhases")))
    except ValueError:
        return None


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


# ----------------------------
# CHECKS
# ----------------------------
def check_unknown_task_references(context: ValidationContext) -> list[Finding]:
    """
    @brief
    Flag RequestedTaskIDs tokens that name no task.

    @details
    The set of known TaskIDs is built from the whole task table; each client
    row that requests unknown IDs gets its own finding listing them, so the
    finding anchors to the RequestedTaskIDs cell of the row that made the
    reference.
    """
    if not context.tasks or not context.clients:
        return []

    task_ids = {
        tid for tid in (identifier_of(t, "TaskID") for t in context.tasks) if tid is not None
    }

    findings: list[Finding] = []
    for index, client in enumerate(context.clients):
        unknown = _unique([t for t in _tokens(client, "RequestedTaskIDs") if t not in task_ids])
        if unknown:
            findings.append(
                Finding(
                    kind=FindingKind.UNKNOWN_TASK_REFERENCE,
                    entity=EntityKind.CLIENT,
                    message=f"Unknown task IDs: {', '.join(unknown)}",
                    affected_rows=[index],
                    affected_fields=["RequestedTaskIDs"],
                    details={"unknown": unknown},
                )
            )
    return findings


def check_skill_coverage(context: ValidationContext) -> list[Finding]:
    """
    @brief
    Flag task skills that no worker has.

    @details
    All worker Skills are unioned into one available set; every task whose
    RequiredSkills contains a token outside that set gets one finding naming
    only the uncovered skills.
    """
    if not context.workers:
        return []

    available: set[str] = set()
    for worker in context.workers:
        available.update(_tokens(worker, "Skills"))

    findings: list[Finding] = []
    for index, task in enumerate(context.tasks):
        missing = _unique([s for s in _tokens(task, "RequiredSkills") if s not in available])
        if missing:
            findings.append(
                Finding(
                    kind=FindingKind.SKILL_MISMATCH,
                    entity=EntityKind.TASK,
                    message=f"No workers available for skills: {', '.join(missing)}",
                    affected_rows=[index],
                    affected_fields=["RequiredSkills"],
                    details={"missing": missing},
                )
            )
    return findings


def check_overloaded_workers(context: ValidationContext) -> list[Finding]:
    """A worker declaring fewer available slots than MaxLoadPerPhase is overloaded."""
    findings: list[Finding] = []
    for index, worker in enumerate(context.workers):
        slots = _slots(worker)
        max_load = _int(worker, "MaxLoadPerPhase")
        if slots is None or max_load is None:
            continue
        if len(slots) < max_load:
            findings.append(
                Finding(
                    kind=FindingKind.OVERLOADED_WORKER,
                    entity=EntityKind.WORKER,
                    message=(
                        f"Worker has {len(slots)} available slots but max load is {max_load}"
                    ),
                    affected_rows=[index],
                    affected_fields=["AvailableSlots", "MaxLoadPerPhase"],
                    details={"slots": len(slots), "max_load": max_load},
                )
            )
    return findings


def check_phase_saturation(context: ValidationContext) -> list[Finding]:
    """
    @brief
    Compare per-phase task demand with per-phase worker capacity.

    @details
    Demand of a phase = sum of Duration over tasks whose PreferredPhases
    include it. Capacity = sum of MaxLoadPerPhase over workers whose
    AvailableSlots include it. Each phase where demand exceeds capacity gets
    one table-scoped finding; phases are reported in ascending order.
    """
    if not context.tasks or not context.workers:
        return []

    # (1) Demand per phase
    demand: dict[int, int] = defaultdict(int)
    task_rows: dict[int, list[int]] = defaultdict(list)
    for index, task in enumerate(context.tasks):
        phases = _phases(task)
        duration = _int(task, "Duration")
        if phases is None or duration is None:
            continue
        for phase in sorted(set(phases)):
            demand[phase] += duration
            task_rows[phase].append(index)

    # (2) Capacity per phase
    capacity: dict[int, int] = defaultdict(int)
    for worker in context.workers:
        slots = _slots(worker)
        max_load = _int(worker, "MaxLoadPerPhase")
        if slots is None or max_load is None:
            continue
        for phase in set(_positive_ints(slots)):
            capacity[phase] += max_load

    # (3) Saturated phases
    findings: list[Finding] = []
    for phase in sorted(demand):
        needed, available = demand[phase], capacity.get(phase, 0)
        if needed > available:
            findings.append(
                Finding(
                    kind=FindingKind.PHASE_SATURATION,
                    entity=EntityKind.TASK,
                    message=(
                        f"Phase {phase} is overloaded: {needed} units needed, "
                        f"{available} available"
                    ),
                    details={
                        "phase": phase,
                        "demand": needed,
                        "capacity": available,
                        "task_rows": task_rows[phase],
                    },
                )
            )
    return findings


def check_max_concurrency(context: ValidationContext) -> list[Finding]:
    """A task's MaxConcurrent may not exceed the number of workers holding all its skills."""
    if not context.tasks or not context.workers:
        return []

    worker_skills = [set(_tokens(w, "Skills")) for w in context.workers]

    findings: list[Finding] = []
    for index, task in enumerate(context.tasks):
        max_concurrent = _int(task, "MaxConcurrent")
        if max_concurrent is None:
            continue
        required = set(_tokens(task, "RequiredSkills"))
        qualified = sum(1 for skills in worker_skills if required <= skills)
        if max_concurrent > qualified:
            findings.append(
                Finding(
                    kind=FindingKind.MAX_CONCURRENCY_EXCEEDED,
                    entity=EntityKind.TASK,
                    message=(
                        f"MaxConcurrent ({max_concurrent}) exceeds qualified workers "
                        f"({qualified})"
                    ),
                    affected_rows=[index],
                    affected_fields=["MaxConcurrent"],
                    details={"max_concurrent": max_concurrent, "qualified": qualified},
                )
            )
    return findings


# (name, check, entity for fallback findings, toggle attribute on CheckToggles)
CROSS_ENTITY_CHECKS = (
    ("unknown-task-reference", check_unknown_task_references, EntityKind.CLIENT, None),
    ("skill-coverage", check_skill_coverage, EntityKind.TASK, None),
    ("overloaded-workers", check_overloaded_workers, EntityKind.WORKER, "overloaded_workers"),
    ("phase-saturation", check_phase_saturation, EntityKind.TASK, "phase_saturation"),
    ("max-concurrency", check_max_concurrency, EntityKind.TASK, "max_concurrency"),
)


def run_cross_entity_checks(
    context: ValidationContext, config: Config | None = None
) -> list[Finding]:
    """
    @brief
    Run every enabled cross-entity check in order.

    @details
    Optional checks are skipped when switched off in config.checks; the
    mandatory ones always run. Each check is guarded independently.
    """
    toggles = (config or Config()).checks
    findings: list[Finding] = []
    for name, check, entity, toggle in CROSS_ENTITY_CHECKS:
        if toggle is not None and not getattr(toggles, toggle):
            continue
        findings += run_guarded(name, check, context, entity=entity)
    return findings


__all__ = [
    "CROSS_ENTITY_CHECKS",
    "check_max_concurrency",
    "check_overloaded_workers",
    "check_phase_saturation",
    "check_skill_coverage",
    "check_unknown_task_references",
    "run_cross_entity_checks",
]
