"""Shared fixtures. Points settings at a throwaway database before anything reads them."""

import os
import tempfile
from pathlib import Path

# The database session module reads settings at import time.
_TEST_DIR = Path(tempfile.mkdtemp(prefix="navigator-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DIR / 'navigator.db'}")
os.environ.setdefault("EMBEDDING_DIMENSIONS", "4")
os.environ.setdefault("RESOURCE_CATALOG_FILE", str(_TEST_DIR / "missing-catalog.yaml"))
os.environ.setdefault("LEARNING_INTERVAL_SECONDS", "86400")
os.environ.setdefault("APP_ENV", "test")

import pytest

from tests.support import (
    FakeFeedbackRepository,
    FakeQueryLogRepository,
    FakeSnapshotRepository,
    build_resource,
)


@pytest.fixture
def make_resource():
    return build_resource


@pytest.fixture
def feedback_repo() -> FakeFeedbackRepository:
    return FakeFeedbackRepository()


@pytest.fixture
def query_log() -> FakeQueryLogRepository:
    return FakeQueryLogRepository()


@pytest.fixture
def snapshot_repo() -> FakeSnapshotRepository:
    return FakeSnapshotRepository()
