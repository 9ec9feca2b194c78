from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence
from urllib.parse import urlparse

DEFAULT_URI = "mongodb://localhost:27017/mongobench"
DEFAULT_DATABASE = "mongobench"
DEFAULT_USER_ID = "5cd99e130c21524ec39ab60f"
DEFAULT_PARALLEL_FINDS = 1_000


class ConfigError(ValueError):
    """Raised when a benchmark setting cannot be parsed."""


@dataclass(frozen=True)
class BenchmarkSettings:
    """Everything a benchmark run needs, resolved from flags and environment."""

    key: str
    mongo_uri: str
    database: str
    pool_size: int
    concurrency: int
    ranges: tuple[int, ...]
    user_id: str
    cert_path: Path | None = None
    parallel_finds: int = DEFAULT_PARALLEL_FINDS
    parallel_concurrency: int = DEFAULT_PARALLEL_FINDS
    output_dir: Path = field(default_factory=lambda: Path("results"))
    fail_fast: bool = False
    skip_insert: bool = False
    drop: bool = False
    charts: bool = True
    log_level: str = "INFO"

    def totals(self) -> list[int]:
        return [cumulative_total(self.ranges, position) for position in range(len(self.ranges))]


def parse_ranges(value: str) -> tuple[int, ...]:
    parts = [item.strip() for item in value.split(",") if item.strip()]
    if not parts:
        raise ConfigError("TEST_RANGES must list at least one document count")
    ranges = []
    for part in parts:
        ranges.append(_positive_int("TEST_RANGES", part))
    return tuple(ranges)


def cumulative_total(ranges: Sequence[int], position: int) -> int:
    """Collection size reached once the ranges up to ``position`` have been inserted."""
    if position < 0 or position >= len(ranges):
        raise IndexError(f"range position {position} out of bounds")
    return sum(ranges[: position + 1])


def database_from_uri(uri: str, fallback: str = DEFAULT_DATABASE) -> str:
    path = urlparse(uri).path.lstrip("/")
    return path or fallback


def _positive_int(name: str, value: str | int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid {name} value {value!r}") from exc
    if number <= 0:
        raise ConfigError(f"{name} must be > 0, got {number}")
    return number


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def build_parser(env: Mapping[str, str] | None = None) -> argparse.ArgumentParser:
    env = os.environ if env is None else env
    parser = argparse.ArgumentParser(description="MongoDB Benchmark Harness")
    parser.add_argument("--key", default=env.get("KEY", "benchmark"), help="Result file key prefix")
    parser.add_argument("--mongo-uri", default=env.get("MONGO_URI", DEFAULT_URI))
    parser.add_argument(
        "--database",
        default=env.get("MONGO_DATABASE"),
        help="Database name (defaults to the one in the URI)",
    )
    parser.add_argument("--pool-size", default=env.get("MONGO_POOL_SIZE", "10"))
    parser.add_argument(
        "--concurrency",
        default=env.get("TEST_INSERT_CONCURRENCY", "10"),
        help="Maximum number of inserts in flight",
    )
    parser.add_argument(
        "--ranges",
        default=env.get("TEST_RANGES", "1000"),
        help="Comma-separated document increments, one benchmark phase each",
    )
    parser.add_argument("--user-id", default=env.get("USER_ID", DEFAULT_USER_ID))
    parser.add_argument(
        "--cert",
        default=env.get("MONGO_CERT"),
        help="CA certificate file; enables TLS when set",
    )
    parser.add_argument(
        "--parallel-finds",
        default=env.get("TEST_PARALLEL_FINDS", str(DEFAULT_PARALLEL_FINDS)),
    )
    parser.add_argument(
        "--parallel-concurrency",
        default=env.get("TEST_PARALLEL_CONCURRENCY", str(DEFAULT_PARALLEL_FINDS)),
    )
    parser.add_argument(
        "--output-dir",
        default=env.get("BENCHMARK_OUTPUT_DIR", "results"),
        help="Directory to store result JSON, CSV and charts",
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        default=_flag(env.get("TEST_FAIL_FAST")),
        help="Abort a workload on the first failed operation",
    )
    parser.add_argument("--skip-insert", action="store_true", help="Only run the find workloads")
    parser.add_argument("--drop", action="store_true", help="Drop the tree collection first")
    parser.add_argument("--no-charts", action="store_true", help="Skip chart rendering")
    parser.add_argument(
        "--log-level",
        default=env.get("BENCHMARK_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser


def load_settings(
    argv: Sequence[str] | None = None,
    env: Mapping[str, str] | None = None,
) -> BenchmarkSettings:
    args = build_parser(env).parse_args(argv)
    return BenchmarkSettings(
        key=args.key,
        mongo_uri=args.mongo_uri,
        database=args.database or database_from_uri(args.mongo_uri),
        pool_size=_positive_int("MONGO_POOL_SIZE", args.pool_size),
        concurrency=_positive_int("TEST_INSERT_CONCURRENCY", args.concurrency),
        ranges=parse_ranges(args.ranges),
        user_id=args.user_id,
        cert_path=Path(args.cert) if args.cert else None,
        parallel_finds=_positive_int("TEST_PARALLEL_FINDS", args.parallel_finds),
        parallel_concurrency=_positive_int("TEST_PARALLEL_CONCURRENCY", args.parallel_concurrency),
        output_dir=Path(args.output_dir),
        fail_fast=args.fail_fast,
        skip_insert=args.skip_insert,
        drop=args.drop,
        charts=not args.no_charts,
        log_level=args.log_level,
    )


__all__ = [
    "BenchmarkSettings",
    "ConfigError",
    "build_parser",
    "cumulative_total",
    "database_from_uri",
    "load_settings",
    "parse_ranges",
]
