from __future__ import annotations

import copy
import os
import re
import threading
from typing import Any

import pytest

os.environ.setdefault("MPLBACKEND", "Agg")


def _matches(document: dict[str, Any], query: dict[str, Any] | None) -> bool:
    for field, condition in (query or {}).items():
        value = document.get(field)
        if isinstance(condition, dict) and "$regex" in condition:
            if not isinstance(value, str) or not re.search(condition["$regex"], value):
                return False
        elif isinstance(condition, dict) and "$elemMatch" in condition:
            if not any(_matches(item, condition["$elemMatch"]) for item in value or []):
                return False
        elif value != condition:
            return False
    return True


class FakeCursor:
    def __init__(self, documents: list[dict[str, Any]]) -> None:
        self._documents = documents
        self._limit = 0

    def sort(self, key: str, direction: int) -> "FakeCursor":
        self._documents = sorted(self._documents, key=lambda d: d.get(key), reverse=direction < 0)
        return self

    def limit(self, limit: int) -> "FakeCursor":
        self._limit = limit
        return self

    def __iter__(self):
        documents = self._documents[: self._limit] if self._limit else self._documents
        return iter(documents)


class FakeCollection:
    """Thread-safe in-memory stand-in for the handful of collection calls the harness makes."""

    def __init__(self, database: "FakeDatabase | None" = None) -> None:
        self._database = database
        self._lock = threading.Lock()
        self.documents: list[dict[str, Any]] = []
        self.indexes: list[Any] = []
        self.dropped = 0

    def insert_one(self, document: dict[str, Any]) -> None:
        with self._lock:
            self.documents.append(copy.deepcopy(document))

    def find(self, query: dict[str, Any] | None = None) -> FakeCursor:
        with self._lock:
            documents = [d for d in self.documents if _matches(d, query)]
        return FakeCursor(documents)

    def aggregate(self, pipeline: list[dict[str, Any]]) -> list[dict[str, Any]]:
        with self._lock:
            documents = [copy.deepcopy(d) for d in self.documents]
        for stage in pipeline:
            if "$limit" in stage:
                documents = documents[: stage["$limit"]]
            elif "$lookup" in stage:
                spec = stage["$lookup"]
                foreign = self._database[spec["from"]].documents
                for document in documents:
                    document[spec["as"]] = [
                        f for f in foreign if f.get(spec["foreignField"]) == document.get(spec["localField"])
                    ]
            elif "$unwind" in stage:
                field = stage["$unwind"]["path"].lstrip("$")
                for document in documents:
                    joined = document.get(field) or [None]
                    document[field] = joined[0]
            elif "$group" in stage:
                field = stage["$group"]["total"]["$sum"].lstrip("$")
                if not documents:
                    return []
                documents = [{"_id": None, "total": sum(d.get(field, 0) for d in documents)}]
        return documents

    def create_index(self, keys: Any) -> None:
        self.indexes.append(keys)

    def update_one(self, query: dict[str, Any], update: dict[str, Any], upsert: bool = False) -> None:
        with self._lock:
            for document in self.documents:
                if _matches(document, query):
                    return
            if upsert:
                self.documents.append({**query, **update.get("$setOnInsert", {})})

    def drop(self) -> None:
        with self._lock:
            self.documents.clear()
            self.dropped += 1


class FakeDatabase:
    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(self)
        return self.collections[name]


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def collection(database: FakeDatabase) -> FakeCollection:
    return database["trees"]
