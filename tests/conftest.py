"""
Pytest configuration and fixtures for all tests.

This file is automatically loaded by pytest and provides common fixtures
and configuration for all test modules.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Import pytest for fixtures
import pytest

from ln_translator.core.epub.reader import EpubArchive
from ln_translator.core.exceptions import BackendResponseError
from tests.fixtures.fake_backend import FakeBackend
from tests.fixtures.sample_epub import SAMPLE_CHAPTERS, make_epub


@pytest.fixture
def sample_epub_bytes():
    """Three-chapter EPUB: two text chapters and one image-only page."""
    return make_epub(SAMPLE_CHAPTERS)


@pytest.fixture
def sample_archive(sample_epub_bytes):
    return EpubArchive.from_bytes(sample_epub_bytes, "sample.epub")


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def hard_error():
    return BackendResponseError("boom", status_code=500)


@pytest.fixture
def log_calls():
    """A log callback accepting (key, message[, data]); records into ``callback.calls``."""
    calls = []

    def callback(*args):
        calls.append(args)

    callback.calls = calls
    return callback
