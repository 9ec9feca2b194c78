from __future__ import annotations

import copy
import datetime
from dataclasses import dataclass, field

from bson import ObjectId
from pymongo import ASCENDING

TREE_COLLECTION = "trees"
USER_COLLECTION = "users"

COMPONENTS: list[dict[str, str]] = [
    {"id": "c1", "name": "root", "type": "one"},
    {"id": "c2", "name": "branch", "type": "two"},
    {"id": "c3", "name": "leaf", "type": "three"},
    {"id": "c4", "name": "fruit", "type": "four"},
]

TREE_NODES: list[dict[str, object]] = [
    {
        "rule": "always",
        "component": "c1",
        "childrens": [
            {
                "rule": "value > 0",
                "component": "c2",
                "childrens": [
                    {"rule": "always", "component": "c3", "childrens": []},
                    {"rule": "value > 10", "component": "c4", "childrens": []},
                ],
            },
            {"rule": "value <= 0", "component": "c3", "childrens": []},
        ],
    }
]


@dataclass(frozen=True)
class TreeTemplate:
    """Static part of every tree document; each insert gets its own deep copy."""

    components: list[dict[str, str]] = field(default_factory=lambda: copy.deepcopy(COMPONENTS))
    nodes: list[dict[str, object]] = field(default_factory=lambda: copy.deepcopy(TREE_NODES))

    def to_document(
        self,
        name: str,
        user: ObjectId,
        value: float = 1,
        now: datetime.datetime | None = None,
    ) -> dict[str, object]:
        now = now or datetime.datetime.now(datetime.timezone.utc)
        return {
            "name": name,
            "user": user,
            "time": now,
            "components": copy.deepcopy(self.components),
            "tree": copy.deepcopy(self.nodes),
            "value": value,
            "createdAt": now,
            "updatedAt": now,
        }


DEFAULT_TEMPLATE = TreeTemplate()


def as_object_id(value: str | ObjectId) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not ObjectId.is_valid(value):
        raise ValueError(f"invalid user id {value!r}")
    return ObjectId(value)


def build_tree(
    name: str,
    user: str | ObjectId,
    value: float = 1,
    now: datetime.datetime | None = None,
    template: TreeTemplate = DEFAULT_TEMPLATE,
) -> dict[str, object]:
    return template.to_document(name, as_object_id(user), value=value, now=now)


def ensure_indexes(collection) -> None:
    collection.create_index([("createdAt", ASCENDING)])


def ensure_user(database, user_id: str | ObjectId) -> ObjectId:
    """Upsert the user referenced by every tree so lookups have a match."""
    oid = as_object_id(user_id)
    database[USER_COLLECTION].update_one(
        {"_id": oid},
        {"$setOnInsert": {"name": "benchmark-user"}},
        upsert=True,
    )
    return oid


__all__ = [
    "DEFAULT_TEMPLATE",
    "TREE_COLLECTION",
    "TreeTemplate",
    "USER_COLLECTION",
    "as_object_id",
    "build_tree",
    "ensure_indexes",
    "ensure_user",
]
