import json
import textwrap
from pathlib import Path

import pytest
import yaml

from allocval.schemas.models import EntityKind
from scripts.validate import _parse_args, main, run_validation

CLIENTS_CSV = """
ClientID,ClientName,PriorityLevel,RequestedTaskIDs,GroupTag,AttributesJSON
C1,Acme,3,T1,GroupA,"{""vip"": true}"
C2,Globex,5,"T1,T2",GroupB,{}
"""

WORKERS_CSV = """
WorkerID,WorkerName,Skills,AvailableSlots,MaxLoadPerPhase,WorkerGroup,QualificationLevel
W1,Ada,"python,ml","[1,2,3]",2,Team1,Senior
W2,Grace,"python,rust","[2,3]",1,Team2,Junior
"""

TASKS_CSV = """
TaskID,TaskName,Category,Duration,RequiredSkills,PreferredPhases,MaxConcurrent
T1,Training,ML,1,"python,ml",1-2,1
T2,Porting,Systems,1,rust,[3],1
"""


def _write(tmp_path: Path, name: str, text: str) -> Path:
    p = tmp_path / name
    p.write_text(textwrap.dedent(text).strip() + "\n", encoding="utf-8")
    return p


@pytest.fixture()
def inputs(tmp_path: Path) -> dict[str, Path]:
    return {
        "clients": _write(tmp_path, "clients.csv", CLIENTS_CSV),
        "workers": _write(tmp_path, "workers.csv", WORKERS_CSV),
        "tasks": _write(tmp_path, "tasks.csv", TASKS_CSV),
    }


def _argv(inputs: dict[str, Path], out: Path) -> list[str]:
    argv = ["--output", str(out)]
    for name, path in inputs.items():
        argv += [f"--{name}", str(path)]
    return argv


def test_consistent_files_exit_zero_and_write_report(tmp_path: Path, inputs):
    """
    @brief
    Full CLI run over three consistent spreadsheets.

    @details
    Loads all tables, validates them jointly and writes the JSON report to
    the output directory. Exit code 0 signals every table is valid.
    """
    out = tmp_path / "out"

    code = main(_argv(inputs, out))

    assert code == 0
    report = json.loads((out / "validation_report.json").read_text(encoding="utf-8"))
    assert report["valid"] is True
    assert set(report["entities"]) == {"client", "worker", "task"}
    assert all(e["state"] == "valid" for e in report["entities"].values())


def test_findings_exit_one(tmp_path: Path, inputs):
    inputs["tasks"] = _write(tmp_path, "tasks.csv", TASKS_CSV + "T2,Dup,Systems,0,go,abc,1\n")
    out = tmp_path / "out"

    code = main(_argv(inputs, out))

    assert code == 1
    report = json.loads((out / "validation_report.json").read_text(encoding="utf-8"))
    kinds = [f["kind"] for f in report["entities"]["task"]["findings"]]
    assert kinds[:4] == [
        "duplicate-id",
        "out-of-range",
        "invalid-preferred-phases",
        "skill-mismatch",
    ]


def test_missing_input_is_controlled_failure(tmp_path: Path):
    code = main(["--clients", str(tmp_path / "absent.csv"), "--output", str(tmp_path)])
    assert code == 1


def test_legacy_excel_input_is_controlled_failure(tmp_path: Path):
    xls = tmp_path / "clients.xls"
    xls.write_bytes(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 504)

    code = main(["--clients", str(xls), "--output", str(tmp_path / "out")])

    assert code == 1


def test_run_validation_honours_config(tmp_path: Path, inputs):
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text(
        yaml.safe_dump({"report": {"write_report": False}, "checks": {"max_concurrency": False}}),
        encoding="utf-8",
    )
    tasks = {EntityKind.TASK: inputs["tasks"]}

    result = run_validation(tasks, cfg_path, tmp_path / "out")

    assert result["report_path"] is None
    assert not (tmp_path / "out").exists()
    assert result["valid"] is True
    assert list(result["report"]["entities"]) == ["task"]


def test_parse_args_requires_a_table():
    with pytest.raises(SystemExit):
        _parse_args([])
