"""JSON report output."""

from __future__ import annotations

import json
from pathlib import Path

from vrt.models.comparison import ComparisonReport


def write_report(report: ComparisonReport, output_path: str | Path) -> Path:
    """Write the machine-readable comparison report."""
    output_path = Path(output_path).resolve()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(report.to_json_dict(), f, indent=2)
    return output_path


def load_report(path: str | Path) -> ComparisonReport:
    with open(path) as f:
        return ComparisonReport.model_validate(json.load(f))
