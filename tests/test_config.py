from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from knnvec.bootstrap import (
    bootstrap_application,
    init_library,
    library_initialized,
    shutdown_library,
)
from knnvec.config import Settings, get_settings, set_settings
from knnvec.utils.logs import PACKAGE_LOGGER


def test_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings = Settings(data_dir=tmp_path / "data")

    assert settings.log_level == "WARNING"
    assert settings.default_space == "l2"
    assert settings.default_method == "hnsw"
    assert settings.batch_pad_value == -1
    assert settings.num_threads >= 1
    assert settings.print_progress is False
    assert settings.progress_interval == 10_000


def test_environment_overrides(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("KNNVEC_NUM_THREADS", "3")
    monkeypatch.setenv("KNNVEC_LOG_LEVEL", "debug")
    monkeypatch.setenv("KNNVEC_BATCH_PAD_VALUE", "-9")

    settings = Settings(data_dir=tmp_path / "data")
    assert settings.num_threads == 3
    assert settings.log_level == "DEBUG"
    assert settings.batch_pad_value == -9


@pytest.mark.parametrize("field,value", [("num_threads", 0), ("progress_interval", 0), ("log_level", "LOUD")])
def test_invalid_values_rejected(tmp_path, field, value):
    with pytest.raises(ValidationError):
        Settings(data_dir=tmp_path / "data", **{field: value})


def test_index_dir_created_under_data_dir(tmp_path):
    settings = Settings(data_dir=tmp_path / "data")
    index_dir = settings.get_index_dir()
    assert index_dir == tmp_path / "data" / "indexes"
    assert index_dir.is_dir()


def test_set_settings_replaces_global(override_settings):
    replacement = Settings(data_dir=override_settings.data_dir, num_threads=5)
    set_settings(replacement)
    assert get_settings() is replacement


def test_init_library_is_idempotent_and_reversible(override_settings):
    shutdown_library()
    logger = logging.getLogger(PACKAGE_LOGGER)
    before = list(logger.handlers)
    try:
        init_library(override_settings)
        init_library(override_settings)
        assert library_initialized()
        assert len(logger.handlers) == len(before) + 1
        assert logger.level == logging.WARNING
    finally:
        shutdown_library()

    assert not library_initialized()
    assert logger.handlers == before
    shutdown_library()


def test_bootstrap_container_uses_settings(override_settings):
    try:
        container = bootstrap_application()
        assert container.settings is override_settings
        handle = container.new_handle()
        assert handle.space_name == "l2"
        assert handle.method_name == "hnsw"
    finally:
        shutdown_library()


def test_build_progress_is_logged(override_settings, caplog, random_corpus):
    from knnvec.app.handle import IndexHandle

    settings = Settings(
        data_dir=override_settings.data_dir, print_progress=True, progress_interval=50
    )
    handle = IndexHandle("l2", [], "sw-graph", settings=settings)
    handle.add_data_point_batch(*random_corpus)
    with caplog.at_level(logging.INFO, logger=PACKAGE_LOGGER):
        handle.create_index(["NN=4"])

    progress = [r for r in caplog.records if "points inserted" in r.getMessage()]
    assert [r.getMessage().split()[2] for r in progress] == ["50/200", "100/200", "150/200", "200/200"]
