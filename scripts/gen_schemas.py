# scripts/gen_schemas.py
"""
Generate JSON Schemas for the allocval record models.

Exports one schema per entity (full models, including AttributesJSON and
PreferredPhases), plus Finding and Config, into schemas/ or the directory
given as the first argument.
"""

import json
import sys
from pathlib import Path

from allocval.schemas.entities import ENTITY_SPECS
from allocval.schemas.models import Config, Finding


def export_schema(model_cls, name: str, out_dir: Path) -> Path:
    """
    @brief
    Writes "<name>.schema.json" for a Pydantic model.

    @returns
        Path of the written schema file.
    """
    out_dir.mkdir(parents=True, exist_ok=True)
    schema_path = (out_dir / f"{name}.schema.json").resolve()

    # Findings are published with their external (camelCase) names
    schema = model_cls.model_json_schema(by_alias=True)
    with schema_path.open("w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2, ensure_ascii=False)
        f.write("\n")

    try:
        rel = schema_path.relative_to(Path.cwd())
    except ValueError:
        rel = schema_path
    print(f"Generated {rel}")
    return schema_path


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    out_dir = Path(args[0] if args else "schemas").resolve()

    for kind, spec in ENTITY_SPECS.items():
        export_schema(spec.model, kind.value, out_dir)
    export_schema(Finding, "finding", out_dir)
    export_schema(Config, "config", out_dir)


if __name__ == "__main__":
    main()
