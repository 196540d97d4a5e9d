"""Shared fixtures for build-cache tests."""

import io
import logging
import os

import pytest

from build_cache.errors import NotFound, TransportError
from build_cache.providers.base import StorageProvider


class InMemoryProvider(StorageProvider):
    """Provider that keeps blobs in a dict and records every call.

    Keys listed in ``fail_on`` raise TransportError when touched.
    """

    name = "memory"

    def __init__(self, fail_on=()):
        self.blobs = {}
        self.fail_on = set(fail_on)
        self.calls = []

    def upload(self, key, content):
        self.calls.append(("upload", key))
        if key in self.fail_on:
            raise TransportError(f"simulated upload failure for {key}", key=key)
        self.blobs[key] = content.read()

    def download(self, key):
        self.calls.append(("download", key))
        if key in self.fail_on:
            raise TransportError(f"simulated download failure for {key}", key=key)
        if key not in self.blobs:
            raise NotFound(f"no object at {key}", key=key)
        return io.BytesIO(self.blobs[key])


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Clear BUILD_CACHE_* variables and point the config dir at a temp path."""
    for name in list(os.environ):
        if name.startswith("BUILD_CACHE_"):
            monkeypatch.delenv(name)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))

    yield

    # setup_logging() detaches the package logger from the root logger
    logger = logging.getLogger("build_cache")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def memory_provider():
    """Empty in-memory provider."""
    return InMemoryProvider()


@pytest.fixture
def sample_tree(tmp_path):
    """A small directory tree with nested files."""
    root = tmp_path / "sample"
    (root / "lib" / "nested").mkdir(parents=True)
    (root / "index.js").write_text("console.log('hi');\n")
    (root / "lib" / "util.js").write_text("module.exports = {};\n")
    (root / "lib" / "nested" / "data.bin").write_bytes(bytes(range(256)) * 4)
    return root


def _read_tree(root):
    return {
        str(p.relative_to(root)): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


@pytest.fixture
def read_tree():
    """Helper mapping relative path -> bytes for every file under a directory."""
    return _read_tree


@pytest.fixture
def make_provider():
    """Factory for in-memory providers that fail on the given keys."""
    return InMemoryProvider
