from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Iterable

import pandas as pd

LOGGER = logging.getLogger("mongobench.results")

SUMMARY_COLUMNS = ["key", "total", "workload", "duration_s", "req_per_sec", "requests"]


@dataclass
class PerformanceResult:
    result: Any
    duration_s: float
    requests: int = 1

    @property
    def req_per_sec(self) -> float:
        if self.duration_s <= 0:
            return 0.0
        return self.requests / self.duration_s

    def to_dict(self) -> dict[str, Any]:
        return {
            "result": _jsonable(self.result),
            "duration": self.duration_s,
            "req_per_sec": self.req_per_sec,
        }


def measure(fn: Callable[[], Any], requests: int = 1) -> PerformanceResult:
    """Time a single call of ``fn``; throughput is ``requests`` over the elapsed wall clock."""
    started_at = time.perf_counter()
    result = fn()
    duration_s = max(time.perf_counter() - started_at, 0.0)
    return PerformanceResult(result=result, duration_s=duration_s, requests=requests)


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return str(value)


class ResultStore:
    """Keeps the results of one benchmark phase and mirrors them to ``<key>.json``."""

    def __init__(self, output_dir: Path) -> None:
        self._output_dir = Path(output_dir)
        self.key = ""
        self.results: dict[str, dict[str, Any]] = {}

    @property
    def path(self) -> Path:
        return self._output_dir / f"{self.key}.json"

    def init(self, key: str) -> None:
        self.key = key
        self.results = {}

    def save_result(self, kind: str, result: PerformanceResult | dict[str, Any]) -> None:
        if isinstance(result, PerformanceResult):
            payload = result.to_dict()
        else:
            payload = _jsonable(result)
        duration = payload.get("duration")
        if duration is not None:
            LOGGER.info("  => The test '%s' finished successfully in %.4fs", kind, duration)
        self.results[kind] = payload
        self._write_file()

    def finish(self) -> None:
        self._write_file()

    def _write_file(self) -> None:
        if not self.key:
            raise RuntimeError("ResultStore.init must be called before saving results")
        self._output_dir.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self.results, f)


@dataclass
class SummaryRecord:
    key: str
    total: int
    workload: str
    duration_s: float
    req_per_sec: float
    requests: int


def build_dataframe(records: Iterable[SummaryRecord]) -> pd.DataFrame:
    rows = [asdict(record) for record in records]
    if not rows:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def write_summary_csv(records: Iterable[SummaryRecord], output_dir: Path) -> Path:
    df = build_dataframe(records)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / "summary.csv"
    df.to_csv(path, index=False)
    LOGGER.info("Saved summary to %s (%d rows)", path, len(df))
    return path


__all__ = [
    "PerformanceResult",
    "ResultStore",
    "SUMMARY_COLUMNS",
    "SummaryRecord",
    "build_dataframe",
    "measure",
    "write_summary_csv",
]
