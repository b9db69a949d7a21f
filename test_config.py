#!/usr/bin/env python3
"""Tests for configuration and logging setup."""

import json
import logging
import os
import time
import warnings

import pytest

from composer.compositor import CompositionWarning
from composer.config import ConfigManager
from composer.constants import PREVIEW_WIDTH, MIN_REGION_PX
from composer.logging_config import ErrorLogger, prune_old_logs, setup_logging


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    logging.captureWarnings(False)
    root.handlers[:] = handlers
    root.setLevel(level)


def test_config_defaults(tmp_path):
    config = ConfigManager(tmp_path)
    assert config.preview_width == PREVIEW_WIDTH
    assert config.min_region_px == MIN_REGION_PX
    assert config.default_board == "dark"
    assert config.font_dirs == []
    assert config.log_level == logging.INFO


def test_config_save_and_reload(tmp_path):
    config = ConfigManager(tmp_path / "nested")
    config.set("preview_width", 640)
    config.set("font_dirs", ["~/fonts"])
    config.set("log_level", "debug")
    config.save()

    reloaded = ConfigManager(tmp_path / "nested")
    assert reloaded.preview_width == 640
    assert reloaded.font_dirs[0].name == "fonts"
    assert "~" not in str(reloaded.font_dirs[0])
    assert reloaded.log_level == logging.DEBUG


def test_config_dir_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("STORYCOMPOSER_CONFIG_DIR", str(tmp_path))
    assert ConfigManager().config_path == tmp_path / "config.json"


def test_unreadable_config_is_ignored(tmp_path):
    (tmp_path / "config.json").write_text("{broken", encoding="utf-8")
    config = ConfigManager(tmp_path)
    assert config.config == {}
    assert config.default_board == "dark"


def test_unknown_log_level_falls_back(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({"log_level": "chatty"}), encoding="utf-8")
    assert ConfigManager(tmp_path).log_level == logging.INFO


def test_setup_logging_writes_run_log(tmp_path):
    log_file = setup_logging(logging.DEBUG, log_dir=tmp_path)
    logging.getLogger("composer.test").debug("layout resolved")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert log_file.parent == tmp_path
    text = log_file.read_text(encoding="utf-8")
    assert "StoryComposer" in text
    assert "layout resolved" in text


def test_setup_logging_without_file(tmp_path):
    assert setup_logging(log_to_file=False) is None
    assert len(logging.getLogger().handlers) == 1


def test_composition_warnings_reach_the_log(tmp_path):
    log_file = setup_logging(logging.INFO, log_dir=tmp_path)
    with warnings.catch_warnings():
        warnings.simplefilter("always")
        logging.captureWarnings(True)
        warnings.warn("Skipping diagramPanel layer: undecodable raster", CompositionWarning)
    for handler in logging.getLogger().handlers:
        handler.flush()
    assert "Skipping diagramPanel layer" in log_file.read_text(encoding="utf-8")


def test_prune_old_logs_keeps_newest(tmp_path):
    for i in range(5):
        path = tmp_path / f"storycomposer_2024010{i}_000000.log"
        path.write_text("x", encoding="utf-8")
        stamp = time.time() - (10 - i) * 60
        os.utime(path, (stamp, stamp))
    (tmp_path / "unrelated.log").write_text("keep", encoding="utf-8")

    assert prune_old_logs(tmp_path, keep=2) == 3
    remaining = sorted(p.name for p in tmp_path.iterdir())
    assert remaining == ["storycomposer_20240103_000000.log", "storycomposer_20240104_000000.log", "unrelated.log"]


def test_error_logger_reraises_by_default():
    with pytest.raises(ValueError):
        with ErrorLogger("render", logging.getLogger("test")):
            raise ValueError("boom")


def test_error_logger_can_suppress(caplog):
    with caplog.at_level(logging.ERROR, logger="test"):
        with ErrorLogger("compose", logging.getLogger("test"), reraise=False, scene="opening") as guard:
            raise OSError("disk full")
    assert guard.failed
    assert isinstance(guard.error, OSError)
    assert "compose failed (scene='opening'): OSError: disk full" in caplog.text


def test_error_logger_success():
    with ErrorLogger("validate") as guard:
        pass
    assert not guard.failed
    assert guard.error is None
