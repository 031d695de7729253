"""Global pytest configuration for all tests."""

import os

import pytest


def pytest_configure(config):
    """Set environment variables before any test collection or execution."""
    os.environ.setdefault("AWS_REGION", "us-east-1")
    os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture(autouse=True)
def clean_harvest_env(monkeypatch):
    """Keep HARVEST_* settings from the developer's shell out of tests."""
    for var in list(os.environ):
        if var.startswith("HARVEST_"):
            monkeypatch.delenv(var, raising=False)


class MemoryStore:
    """In-memory dataset store."""

    def __init__(self, collection: str = "content-harvest"):
        self.collection = collection
        self.records = []

    def push(self, record):
        self.records.append(record)


@pytest.fixture
def memory_store():
    return MemoryStore()
