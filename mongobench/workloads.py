from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from pymongo import DESCENDING

from .models import USER_COLLECTION, build_tree
from .parallel import BoundedTaskRunner, run_parallel

LOGGER = logging.getLogger("mongobench.workloads")

NAME_PATTERN = "test"


def _drain(cursor: Iterable[Any], label: str) -> int:
    processed = 0
    for _ in cursor:
        processed += 1
        LOGGER.debug("%s processing: %d", label, processed)
    return processed


def insert_many(
    collection,
    start: int,
    count: int,
    concurrency: int,
    user,
    fail_fast: bool = False,
) -> BoundedTaskRunner:
    """Insert ``count`` trees one document at a time, ``concurrency`` in flight."""

    def insert_one(index: int) -> None:
        collection.insert_one(build_tree(f"teste-{start + index}", user))

    runner = run_parallel(insert_one, count, concurrency, fail_fast=fail_fast, name="insert")
    failures = runner.failures
    if failures:
        LOGGER.warning("%d of %d inserts failed", len(failures), count)
    return runner


def find_all(collection, total: int) -> int:
    return _drain(collection.find().limit(total), "find")


def find_all_ordered(collection, total: int) -> int:
    return _drain(collection.find().sort("time", DESCENDING).limit(total), "find-ordered")


def find_all_ordered_indexed(collection, total: int) -> int:
    cursor = collection.find().sort("createdAt", DESCENDING).limit(total)
    return _drain(cursor, "find-ordered-indexed")


def find_populated(collection, total: int) -> int:
    pipeline = [
        {"$limit": total},
        {
            "$lookup": {
                "from": USER_COLLECTION,
                "localField": "user",
                "foreignField": "_id",
                "as": "user",
            }
        },
        {"$unwind": {"path": "$user", "preserveNullAndEmptyArrays": True}},
    ]
    return _drain(collection.aggregate(pipeline), "find-populate")


def find_by_subdocs(collection, total: int) -> int:
    query = {"components": {"$elemMatch": {"type": "four"}}}
    return _drain(collection.find(query).limit(total), "find-subdocs")


def find_by_regex(collection, total: int) -> int:
    query = {"name": {"$regex": NAME_PATTERN}}
    return _drain(collection.find(query).limit(total), "find-regex")


def find_by_aggregation(collection, total: int) -> float:
    pipeline = [
        {"$limit": total},
        {"$group": {"_id": None, "total": {"$sum": "$value"}}},
    ]
    groups = list(collection.aggregate(pipeline))
    if not groups:
        return 0
    return groups[0]["total"]


def find_in_parallel(
    collection,
    total: int,
    count: int,
    concurrency: int,
    fail_fast: bool = False,
) -> BoundedTaskRunner:
    """Issue ``count`` regex finds concurrently, each draining up to ``total`` documents."""

    def find_one_batch(index: int) -> None:
        find_by_regex(collection, total)

    return run_parallel(find_one_batch, count, concurrency, fail_fast=fail_fast, name="find-parallel")


@dataclass(frozen=True)
class Workload:
    name: str
    run: Callable[[Any, int], Any]
    requests: int = 1


def default_workloads(
    parallel_finds: int,
    parallel_concurrency: int,
    fail_fast: bool = False,
) -> list[Workload]:
    def parallel(collection, total: int) -> int:
        runner = find_in_parallel(
            collection,
            total,
            parallel_finds,
            parallel_concurrency,
            fail_fast=fail_fast,
        )
        return len(runner.failures)

    return [
        Workload("find", find_all),
        Workload("find-ordered", find_all_ordered),
        Workload("find-ordered-indexed", find_all_ordered_indexed),
        Workload("find-populate", find_populated),
        Workload("find-subdocs", find_by_subdocs),
        Workload("find-regex", find_by_regex),
        Workload("find-agg", find_by_aggregation),
        Workload("find-parallel", parallel, requests=parallel_finds),
    ]


__all__ = [
    "Workload",
    "default_workloads",
    "find_all",
    "find_all_ordered",
    "find_all_ordered_indexed",
    "find_by_aggregation",
    "find_by_regex",
    "find_by_subdocs",
    "find_in_parallel",
    "find_populated",
    "insert_many",
]
