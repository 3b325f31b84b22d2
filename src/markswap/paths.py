from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable

OUTPUT_EXTENSION = ".mp4"
RUNS_DIRNAME = "_runs"


def output_name(input_name: str, output_suffix: str) -> str:
    """
    `clip.mov` -> `clip-enhanced-ai.mp4`.

    This naming is the idempotence key (skip-if-exists) and is also how the
    upload step maps outputs back to source records, so it must stay stable.
    """
    return f"{Path(input_name).stem}{output_suffix}{OUTPUT_EXTENSION}"


def is_generated_output(path: Path, output_suffixes: Iterable[str]) -> bool:
    """True for files this tool wrote itself (finished or partial)."""
    stem = path.stem
    if stem.endswith(".part"):
        return True
    return any(stem.endswith(sfx) for sfx in output_suffixes)


@dataclass(frozen=True)
class RunPaths:
    """Centralized paths for a single batch run."""
    run_id: str
    output_dir: Path
    output_suffix: str

    def output_path_for(self, input_path: Path) -> Path:
        return self.output_dir / output_name(input_path.name, self.output_suffix)

    def runs_dir(self) -> Path:
        return self.output_dir / RUNS_DIRNAME

    def run_log_json_path(self) -> Path:
        return self.runs_dir() / f"run_{self.run_id}.json"


def make_run_paths(output_dir: Path, output_suffix: str) -> RunPaths:
    """
    Timestamp-based run id; the output directory itself is shared across runs.

    Microseconds keep back-to-back runs apart; a counter covers the rest.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    base_id = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    run_paths = RunPaths(run_id=base_id, output_dir=output_dir, output_suffix=output_suffix)
    n = 1
    while run_paths.run_log_json_path().exists():
        run_paths = RunPaths(run_id=f"{base_id}_{n}", output_dir=output_dir, output_suffix=output_suffix)
        n += 1
    return run_paths
