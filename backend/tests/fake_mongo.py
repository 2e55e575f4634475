"""
backend/tests/fake_mongo.py

Purpose:
    In-memory stand-in for the slice of the motor collection API used by the
    ligalive services (filters: equality, $in, $ne, $gte/$gt/$lte/$lt,
    $exists; updates: $set, $unset, $inc, $push, $addToSet, $pull,
    $setOnInsert), with optional unique keys and injectable failures.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

_MISSING = object()


@dataclass
class InsertResult:
    inserted_id: Any


@dataclass
class UpdateResult:
    matched_count: int
    modified_count: int
    upserted_id: Any = None


@dataclass
class DeleteResult:
    deleted_count: int


def _eq(actual: Any, expected: Any) -> bool:
    if actual is _MISSING:
        return expected is None
    if isinstance(actual, list) and not isinstance(expected, list):
        return expected in actual
    return actual == expected


def _is_operator_dict(value: Any) -> bool:
    return isinstance(value, dict) and bool(value) and all(str(k).startswith("$") for k in value)


def _match_value(actual: Any, cond: Any) -> bool:
    if not _is_operator_dict(cond):
        return _eq(actual, cond)
    for op, arg in cond.items():
        if op == "$in":
            ok = any(_eq(actual, item) for item in arg)
        elif op == "$nin":
            ok = not any(_eq(actual, item) for item in arg)
        elif op == "$ne":
            ok = not _eq(actual, arg)
        elif op == "$exists":
            ok = (actual is not _MISSING) == bool(arg)
        elif op in ("$gte", "$gt", "$lte", "$lt"):
            if actual is _MISSING or actual is None:
                ok = False
            elif op == "$gte":
                ok = actual >= arg
            elif op == "$gt":
                ok = actual > arg
            elif op == "$lte":
                ok = actual <= arg
            else:
                ok = actual < arg
        else:
            raise NotImplementedError(f"filter operator {op}")
        if not ok:
            return False
    return True


def matches(doc: dict, query: dict | None) -> bool:
    for key, cond in (query or {}).items():
        if not _match_value(doc.get(key, _MISSING), cond):
            return False
    return True


def _apply_update(doc: dict, update: dict, *, inserting: bool) -> None:
    for op, fields in update.items():
        if op == "$setOnInsert":
            if inserting:
                for key, value in fields.items():
                    doc[key] = copy.deepcopy(value)
        elif op == "$set":
            for key, value in fields.items():
                doc[key] = copy.deepcopy(value)
        elif op == "$unset":
            for key in fields:
                doc.pop(key, None)
        elif op == "$inc":
            for key, value in fields.items():
                doc[key] = doc.get(key, 0) + value
        elif op == "$push":
            for key, value in fields.items():
                doc.setdefault(key, []).append(copy.deepcopy(value))
        elif op == "$addToSet":
            for key, value in fields.items():
                target = doc.setdefault(key, [])
                if value not in target:
                    target.append(copy.deepcopy(value))
        elif op == "$pull":
            for key, value in fields.items():
                doc[key] = [item for item in doc.get(key, []) if item != value]
        else:
            raise NotImplementedError(f"update operator {op}")


def _sort_docs(docs: list[dict], sort_keys: list[tuple[str, int]]) -> list[dict]:
    out = list(docs)
    for key, direction in reversed(sort_keys):
        out.sort(
            key=lambda d: (d.get(key) is not None, d.get(key) if d.get(key) is not None else 0),
            reverse=direction < 0,
        )
    return out


class FakeCursor:
    def __init__(self, docs: list[dict]):
        self.docs = docs
        self._limit = 0

    def sort(self, key_or_list, direction=None):
        sort_keys = key_or_list if isinstance(key_or_list, list) else [(key_or_list, direction or 1)]
        self.docs = _sort_docs(self.docs, sort_keys)
        return self

    def limit(self, n: int):
        self._limit = int(n)
        return self

    async def to_list(self, length=None):
        docs = self.docs
        if self._limit:
            docs = docs[: self._limit]
        if length:
            docs = docs[:length]
        return [copy.deepcopy(d) for d in docs]


class FakeCollection:
    def __init__(self, docs: list[dict] | None = None, *, unique: list[tuple[str, ...]] | None = None):
        self.docs: list[dict] = [copy.deepcopy(d) for d in (docs or [])]
        self.unique = list(unique or [])
        self.calls: list[tuple[str, Any]] = []
        self._failures: dict[str, list[Exception]] = {}

    # ---- test helpers ----

    def fail_next(self, method: str, exc: Exception) -> None:
        self._failures.setdefault(method, []).append(exc)

    def _maybe_fail(self, method: str) -> None:
        queue = self._failures.get(method)
        if queue:
            raise queue.pop(0)

    def _check_unique(self, candidate: dict, ignore: dict | None = None) -> None:
        for fields in self.unique:
            values = tuple(candidate.get(f) for f in fields)
            if any(v is None for v in values):
                continue
            for other in self.docs:
                if other is ignore:
                    continue
                if tuple(other.get(f) for f in fields) == values:
                    raise DuplicateKeyError(f"E11000 duplicate key error: {dict(zip(fields, values))}")

    def _first(self, query: dict | None) -> dict | None:
        for doc in self.docs:
            if matches(doc, query):
                return doc
        return None

    def _new_doc_from_query(self, query: dict) -> dict:
        doc = {k: copy.deepcopy(v) for k, v in query.items() if not k.startswith("$") and not _is_operator_dict(v)}
        doc.setdefault("_id", ObjectId())
        return doc

    # ---- motor surface ----

    async def find_one(self, query=None, projection=None):
        self.calls.append(("find_one", query))
        self._maybe_fail("find_one")
        doc = self._first(query)
        return copy.deepcopy(doc) if doc is not None else None

    def find(self, query=None, projection=None):
        self.calls.append(("find", query))
        return FakeCursor([d for d in self.docs if matches(d, query)])

    async def count_documents(self, query):
        return sum(1 for d in self.docs if matches(d, query))

    async def insert_one(self, doc):
        self.calls.append(("insert_one", doc))
        self._maybe_fail("insert_one")
        stored = copy.deepcopy(doc)
        stored.setdefault("_id", ObjectId())
        self._check_unique(stored)
        self.docs.append(stored)
        return InsertResult(inserted_id=stored["_id"])

    async def update_one(self, query, update, upsert=False):
        self.calls.append(("update_one", query))
        self._maybe_fail("update_one")
        doc = self._first(query)
        if doc is None:
            if not upsert:
                return UpdateResult(matched_count=0, modified_count=0)
            doc = self._new_doc_from_query(query)
            _apply_update(doc, update, inserting=True)
            self._check_unique(doc)
            self.docs.append(doc)
            return UpdateResult(matched_count=0, modified_count=0, upserted_id=doc["_id"])
        before = copy.deepcopy(doc)
        _apply_update(doc, update, inserting=False)
        return UpdateResult(matched_count=1, modified_count=int(before != doc))

    async def update_many(self, query, update):
        self.calls.append(("update_many", query))
        self._maybe_fail("update_many")
        modified = 0
        matched = [d for d in self.docs if matches(d, query)]
        for doc in matched:
            before = copy.deepcopy(doc)
            _apply_update(doc, update, inserting=False)
            modified += int(before != doc)
        return UpdateResult(matched_count=len(matched), modified_count=modified)

    async def find_one_and_update(self, query, update, upsert=False, return_document=ReturnDocument.BEFORE, projection=None):
        self.calls.append(("find_one_and_update", query))
        self._maybe_fail("find_one_and_update")
        doc = self._first(query)
        if doc is None:
            if not upsert:
                return None
            doc = self._new_doc_from_query(query)
            _apply_update(doc, update, inserting=True)
            self._check_unique(doc)
            self.docs.append(doc)
            return copy.deepcopy(doc) if return_document == ReturnDocument.AFTER else None
        before = copy.deepcopy(doc)
        _apply_update(doc, update, inserting=False)
        return copy.deepcopy(doc) if return_document == ReturnDocument.AFTER else before

    async def delete_one(self, query):
        self.calls.append(("delete_one", query))
        self._maybe_fail("delete_one")
        doc = self._first(query)
        if doc is None:
            return DeleteResult(deleted_count=0)
        self.docs.remove(doc)
        return DeleteResult(deleted_count=1)

    async def delete_many(self, query):
        self.calls.append(("delete_many", query))
        kept = [d for d in self.docs if not matches(d, query)]
        deleted = len(self.docs) - len(kept)
        self.docs = kept
        return DeleteResult(deleted_count=deleted)


class FakeDB:
    """Collections are created on first access, by attribute or by key."""

    def __init__(self, **collections: FakeCollection):
        self._collections: dict[str, FakeCollection] = dict(collections)

    def __getattr__(self, name: str) -> FakeCollection:
        if name.startswith("_"):
            raise AttributeError(name)
        return self._collections.setdefault(name, FakeCollection())

    def __getitem__(self, name: str) -> FakeCollection:
        return getattr(self, name)

    async def command(self, name: str):
        return {"ok": 1.0}


def league_db() -> FakeDB:
    """Fake database with the unique keys the real indexes enforce."""
    return FakeDB(
        team_tournament_standings=FakeCollection(unique=[("team_id", "tournament_id")]),
        matches=FakeCollection(unique=[("source_live_match_id",)]),
    )
