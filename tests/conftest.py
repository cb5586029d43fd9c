"""Pytest configuration and fixtures."""

import gc
import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path

import numpy as np
import pytest

from knnvec.config import Settings


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    try:
        yield Path(tmpdir)
    finally:
        # Release memory-mapped archives before removal
        gc.collect()
        shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def override_settings(temp_dir: Path) -> Generator[Settings, None, None]:
    """Provide isolated knnvec settings scoped to tests."""

    import knnvec.config as config_module

    original_settings = getattr(config_module, "_settings", None)

    data_dir = temp_dir / "appdata"
    data_dir.mkdir(parents=True, exist_ok=True)

    settings = config_module.Settings(data_dir=data_dir, num_threads=2)
    config_module._settings = settings

    try:
        yield settings
    finally:
        config_module._settings = original_settings


@pytest.fixture
def tiny_points() -> tuple[list[int], np.ndarray]:
    """Three 2-D points with hand-checkable distances."""
    ids = [10, 11, 12]
    vectors = np.asarray([[0.0, 0.0], [1.0, 0.0], [10.0, 10.0]], dtype=np.float32)
    return ids, vectors


@pytest.fixture
def random_corpus() -> tuple[np.ndarray, np.ndarray]:
    """200 random 8-D vectors with unique ids 1000..1199."""
    rng = np.random.default_rng(7)
    vectors = rng.standard_normal((200, 8)).astype(np.float32)
    ids = np.arange(1000, 1200, dtype=np.int32)
    return ids, vectors


@pytest.fixture
def random_queries() -> np.ndarray:
    rng = np.random.default_rng(11)
    return rng.standard_normal((25, 8)).astype(np.float32)
