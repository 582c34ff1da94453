from __future__ import annotations

import itertools
from datetime import datetime, timezone

import pytest

from tasktree.repositories import InMemoryDocumentStore
from tasktree.service import TaskManager


@pytest.fixture()
def now() -> datetime:
    return datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture()
def id_factory():
    """Deterministic ids: t1, t2, ..."""
    counter = itertools.count(1)
    return lambda: f"t{next(counter)}"


@pytest.fixture()
def manager(store: InMemoryDocumentStore, id_factory, now: datetime) -> TaskManager:
    return TaskManager(store, id_factory=id_factory, clock=lambda: now)
