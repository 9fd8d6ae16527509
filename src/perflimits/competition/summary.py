"""Raw per-run samples produced by the external benchmarking harness."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..core.exceptions import ValidationError
from .types import TargetKey


@dataclass(frozen=True)
class RunSummary:
    """Samples of one measurement run: ``{target key: {sample kind: [values]}}``."""

    samples: Mapping[str, Mapping[str, tuple[float, ...]]] = field(default_factory=dict)

    def samples_for(self, key: TargetKey | str, sample_kind: str) -> tuple[float, ...]:
        return tuple(self.samples.get(str(key), {}).get(sample_kind, ()))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RunSummary:
        raw = data.get("benchmarks", data)
        if not isinstance(raw, Mapping):
            raise ValidationError("run summary 'benchmarks' must be an object")
        parsed: dict[str, dict[str, tuple[float, ...]]] = {}
        for key, kinds in raw.items():
            TargetKey.parse(str(key))
            if isinstance(kinds, Sequence) and not isinstance(kinds, str):
                kinds = {"time": kinds}
            if not isinstance(kinds, Mapping):
                raise ValidationError(f"samples for {key!r} must be an object or a list")
            parsed[str(key)] = {
                str(kind): tuple(float(value) for value in values)
                for kind, values in kinds.items()
            }
        return cls(parsed)


def _read_json_or_yaml(path: Path) -> Any:
    raw = path.read_text(encoding="utf-8")
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        try:
            import yaml  # type: ignore[import-untyped]
        except ImportError as exc:  # pragma: no cover - depends on optional dependency
            raise ValidationError(
                f"Failed to parse samples file {path}. Use JSON or install pyyaml."
            ) from exc
        return yaml.safe_load(raw)


def load_run_summaries(path: str | Path) -> list[RunSummary]:
    """Load one or more runs from a JSON (or YAML) samples file.

    Accepted shapes are ``{"runs": [{"benchmarks": {...}}, ...]}`` and a single
    ``{"benchmarks": {...}}`` object. Benchmark keys look like ``module:qualname``.
    """
    data = _read_json_or_yaml(Path(path))
    if not isinstance(data, Mapping):
        raise ValidationError(f"Samples file must decode to object, got {type(data).__name__}")
    runs = data.get("runs")
    if runs is None:
        return [RunSummary.from_dict(data)]
    if not isinstance(runs, list) or not runs:
        raise ValidationError("'runs' must be a non-empty list")
    return [RunSummary.from_dict(run) for run in runs]


def replay(summaries: Sequence[RunSummary]) -> Callable[[int], RunSummary]:
    """Return a ``measure`` callable that replays recorded runs, repeating the last one."""
    if not summaries:
        raise ValueError("at least one run summary is required")

    def measure(run_number: int) -> RunSummary:
        return summaries[min(run_number, len(summaries)) - 1]

    return measure
