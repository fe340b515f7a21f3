"""
Shared fixtures: in-memory stores and an API client wired to them.
"""

import copy
import fnmatch
import json
import math
import time
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timezone

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from chapter_dashboard.api.app import create_app
from chapter_dashboard.api.dependencies import clear_app_state, init_app_state
from chapter_dashboard.config import Settings
from chapter_dashboard.entities import (
    ChapterEntity,
    ChapterStatistics,
    InsertFailure,
    InsertManyResult,
    completion_rate,
)
from chapter_dashboard.exceptions import CacheUnavailableError, ConflictError, StoreUnavailableError
from chapter_dashboard.protocols import UNIQUE_KEY_FIELDS

ADMIN_KEY = "test-admin-key"


class InMemoryChapterStore:
    """ChapterStore kept in a dict, with the unique (subject, chapter, class, unit) rule."""

    def __init__(self, enforce_unique: bool = True) -> None:
        self.docs: dict[str, dict] = {}
        self.enforce_unique = enforce_unique
        self.available = True
        self.closed = False

    def _check(self):
        if not self.available:
            raise StoreUnavailableError("Database is unavailable")

    @staticmethod
    def _identity(doc):
        return tuple(doc[name] for name in UNIQUE_KEY_FIELDS)

    def _taken(self, doc, exclude_id=None):
        if not self.enforce_unique:
            return False
        return any(
            self._identity(other) == self._identity(doc)
            for other_id, other in self.docs.items()
            if other_id != exclude_id
        )

    @staticmethod
    def _matches(doc, filters):
        for name, value in filters.items():
            if isinstance(value, str) and name in ("subject", "class", "unit"):
                if value.lower() not in doc[name].lower():
                    return False
            elif doc.get(name) != value:
                return False
        return True

    def find_many(self, filters, sort_by, sort_order, offset, limit):
        self._check()
        matching = [doc for doc in self.docs.values() if self._matches(doc, filters)]
        matching.sort(key=lambda doc: (doc.get(sort_by), str(doc["_id"])), reverse=sort_order == "desc")
        page = matching[offset : offset + limit]
        return [ChapterEntity.from_document(doc) for doc in page], len(matching)

    def filter_options(self):
        self._check()
        docs = list(self.docs.values())
        return {
            "subjects": sorted({doc["subject"] for doc in docs}),
            "classes": sorted({doc["class"] for doc in docs}),
            "units": sorted({doc["unit"] for doc in docs}),
            "statuses": sorted({doc["status"] for doc in docs}),
        }

    def find_by_id(self, chapter_id):
        self._check()
        doc = self.docs.get(chapter_id)
        return ChapterEntity.from_document(doc) if doc else None

    def insert_many(self, payloads):
        self._check()
        inserted, failed = [], []
        for index, payload in enumerate(payloads):
            if self._taken(payload):
                failed.append(
                    InsertFailure(
                        index=index,
                        message="E11000 duplicate key error collection: chapters index: unique_chapter",
                        code=11000,
                    )
                )
                continue
            now = datetime.now(timezone.utc)
            doc = {**copy.deepcopy(payload), "_id": ObjectId(), "createdAt": now, "updatedAt": now}
            self.docs[str(doc["_id"])] = doc
            inserted.append(ChapterEntity.from_document(doc))
        return InsertManyResult(inserted=inserted, failed=failed)

    def _write(self, chapter_id, updated):
        if self._taken(updated, exclude_id=chapter_id):
            raise ConflictError("A chapter with the same subject, chapter, class and unit already exists")
        updated["updatedAt"] = datetime.now(timezone.utc)
        self.docs[chapter_id] = updated
        return ChapterEntity.from_document(updated)

    def replace_by_id(self, chapter_id, payload):
        self._check()
        doc = self.docs.get(chapter_id)
        if doc is None:
            return None
        return self._write(chapter_id, {**doc, **copy.deepcopy(payload)})

    def update_by_id(self, chapter_id, patch):
        self._check()
        doc = self.docs.get(chapter_id)
        if doc is None:
            return None
        updated = {**doc, **{k: v for k, v in patch.items() if k != "yearWiseQuestionCount"}}
        updated["yearWiseQuestionCount"] = {
            **doc.get("yearWiseQuestionCount", {}),
            **patch.get("yearWiseQuestionCount", {}),
        }
        return self._write(chapter_id, updated)

    def delete_by_id(self, chapter_id):
        self._check()
        doc = self.docs.pop(chapter_id, None)
        return ChapterEntity.from_document(doc) if doc else None

    def aggregate_statistics(self):
        self._check()
        chapters = [ChapterEntity.from_document(doc) for doc in self.docs.values()]
        if not chapters:
            return ChapterStatistics()
        statuses, subjects = {}, {}
        for chapter in chapters:
            statuses[chapter.status.value] = statuses.get(chapter.status.value, 0) + 1
            subjects[chapter.subject] = subjects.get(chapter.subject, 0) + 1
        rates = [completion_rate(c.question_solved, c.year_wise_question_count) for c in chapters]
        return ChapterStatistics(
            total_records=len(chapters),
            total_questions_solved=sum(c.question_solved for c in chapters),
            weak_count=sum(1 for c in chapters if c.is_weak_chapter),
            status_distribution=statuses,
            subject_distribution=subjects,
            average_completion_rate=sum(rates) / len(rates),
        )

    def ensure_indexes(self):
        self._check()

    def health_check(self):
        return self.available

    def close(self):
        self.closed = True


class InMemoryCacheStore:
    """CacheStore with per-key expiry. Values go through JSON like they do in Redis."""

    def __init__(self) -> None:
        self.values: dict[str, object] = {}
        self.expires: dict[str, float] = {}
        self.available = True
        self.closed = False

    def _check(self):
        if not self.available:
            raise CacheUnavailableError("Cache is unavailable")

    def _expire(self, key):
        deadline = self.expires.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self.values.pop(key, None)
            self.expires.pop(key, None)

    def get(self, key):
        self._check()
        self._expire(key)
        raw = self.values.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key, value, ttl):
        self._check()
        self.values[key] = json.dumps(value, default=str)
        self.expires[key] = time.monotonic() + ttl

    def delete(self, key):
        self._check()
        self.expires.pop(key, None)
        return self.values.pop(key, None) is not None

    def delete_pattern(self, pattern):
        self._check()
        keys = [key for key in self.values if fnmatch.fnmatchcase(key, pattern)]
        for key in keys:
            self.delete(key)
        return len(keys)

    def increment_window(self, key, window):
        self._check()
        self._expire(key)
        count = int(self.values.get(key, 0)) + 1
        self.values[key] = count
        self.expires.setdefault(key, time.monotonic() + window)
        return count, math.ceil(self.expires[key] - time.monotonic())

    def keys(self, pattern="*"):
        return sorted(key for key in self.values if fnmatch.fnmatchcase(key, pattern))

    def health_check(self):
        return self.available

    def close(self):
        self.closed = True


def make_chapter(**overrides):
    """A valid chapter payload as submitted by an admin."""
    chapter = {
        "subject": "Math",
        "chapter": "Algebra",
        "class": "Class 10",
        "unit": "Unit 1",
        "yearWiseQuestionCount": {"2024": 5},
        "questionSolved": 0,
        "status": "Not Started",
        "isWeakChapter": False,
    }
    chapter.update(overrides)
    return chapter


@pytest.fixture
def chapter_factory():
    return make_chapter


@pytest.fixture
def settings():
    """Settings with a known admin key and the default limits."""
    return Settings(
        admin_secret_key=ADMIN_KEY,
        app_env="test",
        cache_namespace="chapters",
        rate_limit_window=60,
        rate_limit_max=30,
        admin_rate_limit_max=100,
        log_level="WARNING",
    )


@pytest.fixture
def chapter_store():
    return InMemoryChapterStore()


@pytest.fixture
def cache_store():
    return InMemoryCacheStore()


@pytest.fixture
def admin_headers():
    return {"x-admin-key": ADMIN_KEY}


@pytest.fixture
def client_factory(chapter_store, cache_store):
    """Build a TestClient over the in-memory stores with the given settings."""
    clients = []

    def build(config):
        @asynccontextmanager
        async def lifespan(app):
            init_app_state(app, config, chapter_store, cache_store)
            yield
            clear_app_state(app)

        client = TestClient(create_app(config, lifespan=lifespan))
        client.__enter__()
        clients.append(client)
        return client

    yield build

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(client_factory, settings):
    """Create a test client."""
    return client_factory(settings)


@pytest.fixture
def strict_admin_client(client_factory, settings):
    """Client whose admin budget is two requests per window."""
    return client_factory(replace(settings, admin_rate_limit_max=2))
