from __future__ import annotations

import json
import logging
import sys
import time
from typing import Sequence

from .charts import render_charts
from .config import BenchmarkSettings, ConfigError, load_settings
from .connection import BenchmarkConnectionError, create_client
from .models import TREE_COLLECTION, ensure_indexes, ensure_user
from .results import ResultStore, SummaryRecord, build_dataframe, measure, write_summary_csv
from .workloads import default_workloads, insert_many

LOGGER = logging.getLogger("mongobench.benchmark")


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def run_benchmark(settings: BenchmarkSettings, database) -> list[SummaryRecord]:
    """Run every phase against ``database`` and return one summary row per measured workload."""
    initial_time = time.perf_counter()
    collection = database[TREE_COLLECTION]
    if settings.drop:
        LOGGER.info("Dropping collection %s", TREE_COLLECTION)
        collection.drop()
    ensure_indexes(collection)
    user = ensure_user(database, settings.user_id)

    workloads = default_workloads(
        settings.parallel_finds,
        settings.parallel_concurrency,
        fail_fast=settings.fail_fast,
    )
    store = ResultStore(settings.output_dir)
    records: list[SummaryRecord] = []
    inserted = 0

    for count, total in zip(settings.ranges, settings.totals()):
        LOGGER.info("Start test with %d documents", total)
        key = f"{settings.key}-{total}"
        store.init(key)

        if not settings.skip_insert:
            insert = measure(
                lambda: insert_many(
                    collection,
                    inserted,
                    count,
                    settings.concurrency,
                    user,
                    fail_fast=settings.fail_fast,
                ),
                requests=count,
            )
            insert.result = {"failed": len(insert.result.failures)}
            store.save_result("insert", insert)
            records.append(_record(key, total, "insert", insert.duration_s, insert.req_per_sec, count))
            inserted += count

        for workload in workloads:
            result = measure(lambda: workload.run(collection, total), requests=workload.requests)
            store.save_result(workload.name, result)
            records.append(
                _record(key, total, workload.name, result.duration_s, result.req_per_sec, workload.requests)
            )

        LOGGER.info("Finish test with %d documents", total)

    store.save_result("all-tests", {"duration": time.perf_counter() - initial_time})
    store.finish()
    LOGGER.info("Finish all tests")
    return records


def _record(
    key: str,
    total: int,
    workload: str,
    duration_s: float,
    req_per_sec: float,
    requests: int,
) -> SummaryRecord:
    return SummaryRecord(
        key=key,
        total=total,
        workload=workload,
        duration_s=duration_s,
        req_per_sec=req_per_sec,
        requests=requests,
    )


def write_outputs(settings: BenchmarkSettings, records: list[SummaryRecord]) -> None:
    output_dir = settings.output_dir
    summary_path = write_summary_csv(records, output_dir)
    charts = []
    if settings.charts:
        charts = [str(path) for path in render_charts(build_dataframe(records), output_dir)]

    manifest = {
        "key": settings.key,
        "ranges": list(settings.ranges),
        "totals": settings.totals(),
        "concurrency": settings.concurrency,
        "summary": str(summary_path),
        "charts": charts,
    }
    manifest_path = output_dir / f"{settings.key}-manifest.json"
    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2)
    LOGGER.info("Benchmark manifest written to %s", manifest_path)


def main(argv: Sequence[str] | None = None) -> int:
    try:
        settings = load_settings(argv)
    except ConfigError as exc:
        setup_logging("INFO")
        LOGGER.error("Invalid configuration: %s", exc)
        return 1
    setup_logging(settings.log_level)

    LOGGER.info("Benchmark output directory: %s", settings.output_dir)
    LOGGER.info("Document ranges: %s", ", ".join(str(r) for r in settings.ranges))

    try:
        client = create_client(settings.mongo_uri, settings.pool_size, settings.cert_path)
    except BenchmarkConnectionError:
        LOGGER.exception("Error on start connection with Mongo")
        return 1

    try:
        records = run_benchmark(settings, client[settings.database])
        write_outputs(settings, records)
    except Exception:  # noqa: BLE001
        LOGGER.exception("Error on running the benchmark")
        return 1
    finally:
        client.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
