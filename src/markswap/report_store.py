from __future__ import annotations

import json
from dataclasses import fields, is_dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, List

import numpy as np

from .models import AssetOutcome, BatchRun


def _to_jsonable(obj: Any) -> Any:
    """Convert dataclasses, Paths, enums and datetimes into JSON-serializable values."""
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: _to_jsonable(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat(timespec="seconds")
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, (list, tuple)):
        return [_to_jsonable(x) for x in obj]
    if isinstance(obj, dict):
        return {str(k): _to_jsonable(v) for k, v in obj.items()}
    return obj


def save_run_log(run: BatchRun, out_json_path: Path) -> None:
    """Persist the finished run (counts + every outcome) as JSON."""
    out_json_path.parent.mkdir(parents=True, exist_ok=True)
    payload = _to_jsonable(run)
    payload["success_rate"] = run.success_rate
    out_json_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def load_run_log(run_log_path: Path) -> dict:
    """Kept as a dict; the dashboard only reads it."""
    return json.loads(run_log_path.read_text(encoding="utf-8"))


def format_asset_report(outcome: AssetOutcome) -> List[str]:
    """
    Diagnostic lines for one asset: decision, then the top scored regions.

    This is the only trace of why a region was picked, so reviewers can audit
    false detections from the console output alone.
    """
    name = outcome.input_path.name
    lines = [f"{name}: {outcome.state.value}"]

    loc = outcome.location
    if loc is not None:
        r = loc.region
        lines.append(
            f"  decision={loc.decision.value} region={r.label} "
            f"({r.x},{r.y} {r.width}x{r.height}) score={loc.score:.2f} frames={outcome.frames_sampled}"
        )
    for s in outcome.top_regions:
        lines.append(f"    {s.region.label}: {s.score:.2f} ({s.frame_tag})")
    if outcome.error:
        lines.append(f"  error: {outcome.error.splitlines()[0]}")
    return lines


def format_summary(run: BatchRun) -> List[str]:
    return [
        f"Run {run.run_id}",
        f"  Input:      {run.input_dir}",
        f"  Output:     {run.output_dir}",
        f"  Processed:  {run.processed}",
        f"  Successful: {run.successful}",
        f"  Failed:     {run.failed}",
        f"  Skipped:    {run.skipped}",
        f"  Success:    {run.success_rate * 100:.1f}%",
    ]
