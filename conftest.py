"""
Pytest configuration shared by every service's tests
"""

import os
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from shared.utils.database import DESCENDING
from shared.utils.errors import DuplicateKeyError

os.environ.setdefault("ENVIRONMENT", "testing")

pytest_plugins = ('pytest_asyncio',)


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "asyncio: mark test as an asyncio test."
    )


class InMemoryCollection:
    """Collection stand-in with the same find/insert/index semantics"""

    def __init__(self, name: str = "documents"):
        self.name = name
        self.documents: List[Dict[str, Any]] = []
        self.unique_indexes: List[Tuple[Tuple[str, ...], bool]] = []

    async def ensure(self) -> None:
        pass

    async def create_index(self, keys, unique=False, sparse=False, name=None) -> str:
        fields = tuple(field for field, _ in keys)
        if unique:
            self.unique_indexes.append((fields, sparse))
        return name or f"{self.name}_" + "_".join(fields)

    def _conflicts(self, doc: Dict[str, Any]) -> bool:
        for existing in self.documents:
            if existing["id"] == doc["id"]:
                return True
        for fields, sparse in self.unique_indexes:
            if sparse and not all(field in doc for field in fields):
                continue
            values = tuple(doc.get(field) for field in fields)
            for existing in self.documents:
                if sparse and not all(field in existing for field in fields):
                    continue
                if tuple(existing.get(field) for field in fields) == values:
                    return True
        return False

    async def insert_one(self, document: Dict[str, Any], ignore_duplicates: bool = False) -> Optional[Dict[str, Any]]:
        doc = dict(document)
        doc.setdefault("id", str(uuid.uuid4()))
        if self._conflicts(doc):
            if ignore_duplicates:
                return None
            raise DuplicateKeyError(f"Duplicate key in {self.name}")
        self.documents.append(doc)
        return dict(doc)

    async def find(
        self,
        filter: Optional[Dict[str, Any]] = None,
        sort: Optional[Sequence[Tuple[str, int]]] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        results = [
            dict(doc) for doc in self.documents
            if all(doc.get(key) == value for key, value in (filter or {}).items())
        ]
        for field, direction in reversed(list(sort or [])):
            results.sort(key=lambda d: d.get(field) or "", reverse=direction == DESCENDING)
        return results[:limit] if limit is not None else results

    async def find_one(self, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        results = await self.find(filter, limit=1)
        return results[0] if results else None

    async def count(self, filter: Optional[Dict[str, Any]] = None) -> int:
        return len(await self.find(filter))


@pytest.fixture
def collection_factory():
    """Build in-memory collections"""
    return InMemoryCollection


@pytest.fixture
def memory_queue_name():
    """A queue name no other test uses; memory:// queues are process-global"""
    return f"test_queue_{uuid.uuid4().hex[:12]}"
