"""
Pytest configuration and shared fixtures for Canvas Studio tests.

This module provides shared test fixtures and configuration
used across multiple test modules.
"""

import io

import pytest
from PIL import Image

from CS_Libs.VersionStoreLib.asset_storage import LocalAssetStorage
from CS_Libs.VersionStoreLib.version_store import VersionStore


def make_png(size=(100, 100), color=(255, 0, 0, 255)) -> bytes:
    """Encode a solid-color RGBA image as PNG bytes."""
    buffer = io.BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def open_png(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


@pytest.fixture
def png_factory():
    """
    Provide a factory for in-memory PNG images.

    Returns:
        Callable (size, color) -> PNG bytes
    """
    return make_png


@pytest.fixture
def storage(tmp_path):
    """Local asset storage rooted in a temporary directory."""
    return LocalAssetStorage(tmp_path)


@pytest.fixture
def store(storage):
    """Version store over the temporary storage; worker threads are shut down after the test."""
    version_store = VersionStore(storage)
    yield version_store
    version_store.shutdown(wait=True)


@pytest.fixture
def asset(storage):
    """An 800x600 red image asset."""
    return storage.create_asset(make_png((800, 600)), "image/png")


@pytest.fixture
def sample_hex_colors():
    """
    Provide a list of sample hex colors for testing.

    Returns:
        List of lowercase #rrggbb strings
    """
    return [
        "#ff0000",
        "#00ff00",
        "#0000ff",
        "#ffffff",
        "#000000",
        "#808080",
        "#3366cc",
        "#123456",
    ]
