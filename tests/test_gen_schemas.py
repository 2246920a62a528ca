import json
from pathlib import Path

from scripts.gen_schemas import main


def test_gen_schemas_writes_one_file_per_model(tmp_path: Path, capsys):
    # --- Act ---
    main([str(tmp_path)])

    # --- Assert ---
    names = sorted(p.name for p in tmp_path.iterdir())
    assert names == [
        "client.schema.json",
        "config.schema.json",
        "finding.schema.json",
        "task.schema.json",
        "worker.schema.json",
    ]

    finding = json.loads((tmp_path / "finding.schema.json").read_text(encoding="utf-8"))
    assert "affectedRows" in finding["properties"]

    client = json.loads((tmp_path / "client.schema.json").read_text(encoding="utf-8"))
    assert "AttributesJSON" in client["properties"]
    assert "Generated" in capsys.readouterr().out
