# tests/core/test_config_management.py
import json
import logging

import pytest

from exporter.model import ExportSettings
from pagesmith_shell.core.context.shell_context import ShellContext
from pagesmith_shell.core.handlers.config_handler import handle_config
from pagesmith_shell.core.managers.config_manager import ConfigManager
from pagesmith_shell.core.utils.path_utils import PathUtils
from pagesmith_shell.core.utils.configure_logging import LogWithTqdm, configure_logger

# A small, predictable configuration for these tests
MOCK_SETTINGS_CONTENT = {
    "debug": {
        "level": "WARNING"
    },
    "exporter": {
        "above_fold_count": 3,
        "inline_styles": False,
        "workers": 1
    },
    "assets": {
        "width_ladder": [320, 640],
        "resizing_hosts": []
    }
}


@pytest.fixture
def config_env(tmp_path, monkeypatch):
    """
    Sets up an isolated environment for the ConfigManager:
    - Creates a temporary package root holding a fake 'settings.json'.
    - Monkeypatches PathUtils to point at that location.
    The singleton is reloaded from the real settings file afterwards.
    """
    package_root = tmp_path / "pagesmith_shell"
    package_root.mkdir()
    settings_file = package_root / "settings.json"
    settings_file.write_text(json.dumps(MOCK_SETTINGS_CONTENT))

    monkeypatch.setattr(PathUtils, 'get_shell_package_root', lambda: package_root)

    manager = ConfigManager()
    manager.reset()  # Force a reload from the fake file

    yield manager, ShellContext(config=manager)

    monkeypatch.undo()
    manager.reset()


# --- ConfigManager ---

def test_config_manager_load(config_env):
    manager, _ = config_env
    config = manager.get_all()
    assert config["debug"]["level"] == "WARNING"
    assert config["exporter"]["above_fold_count"] == 3


def test_config_manager_is_a_singleton(config_env):
    manager, _ = config_env
    assert ConfigManager() is manager


def test_config_manager_get_nested(config_env):
    manager, _ = config_env
    assert manager.get_nested("exporter.workers") == 1
    assert manager.get_nested("non.existent.key", "default") == "default"


def test_config_manager_set_nested_casts_to_original_type(config_env):
    manager, _ = config_env

    manager.set_nested("exporter.above_fold_count", "5")
    assert manager.get_nested("exporter.above_fold_count") == 5
    assert isinstance(manager.get_nested("exporter.above_fold_count"), int)

    manager.set_nested("exporter.inline_styles", "yes")
    assert manager.get_nested("exporter.inline_styles") is True
    manager.set_nested("exporter.inline_styles", "off")
    assert manager.get_nested("exporter.inline_styles") is False

    # A new key is stored as given
    manager.set_nested("new_feature.enabled", "True")
    assert manager.get_nested("new_feature.enabled") == "True"


def test_config_manager_list_values(config_env):
    manager, _ = config_env

    manager.set_nested("assets.width_ladder", "480, 960")
    assert manager.get_nested("assets.width_ladder") == [480, 960]

    manager.set_nested("assets.width_ladder", "[100, 200, 300]")
    assert manager.get_nested("assets.width_ladder") == [100, 200, 300]

    manager.set_nested("assets.resizing_hosts", "img.example.com,cdn.example.com")
    assert manager.get_nested("assets.resizing_hosts") == ["img.example.com", "cdn.example.com"]


def test_config_manager_refuses_to_overwrite_a_section(config_env):
    manager, _ = config_env
    assert manager.set_nested("exporter", "nothing") is False
    assert isinstance(manager.get_nested("exporter"), dict)


def test_uncastable_value_is_stored_as_string(config_env):
    manager, _ = config_env
    manager.set_nested("exporter.workers", "many")
    assert manager.get_nested("exporter.workers") == "many"


def test_config_manager_reset(config_env):
    manager, _ = config_env

    manager.set_nested("debug.level", "DEBUG")
    assert manager.get_nested("debug.level") == "DEBUG"

    manager.reset()
    assert manager.get_nested("debug.level") == "WARNING"


def test_missing_settings_file_gives_empty_config(tmp_path, monkeypatch):
    monkeypatch.setattr(PathUtils, 'get_shell_package_root', lambda: tmp_path / "nowhere")
    manager = ConfigManager()
    manager.reset()
    try:
        assert manager.get_all() == {}
    finally:
        monkeypatch.undo()
        manager.reset()


def test_export_settings_from_config(config_env):
    manager, _ = config_env
    manager.set_nested("exporter.above_fold_count", "2")

    settings = ExportSettings.from_config(manager, workers=4, inline_styles=None)
    assert settings.above_fold_count == 2
    assert settings.workers == 4
    assert settings.inline_styles is False
    assert settings.width_ladder == [320, 640]


def test_bundled_settings_file_exists():
    assert PathUtils.get_settings_file().exists()
    data = json.loads(PathUtils.get_settings_file().read_text(encoding="utf-8"))
    assert "exporter" in data and "assets" in data


# --- 'config' command handler ---

def test_handle_config_list(config_env, capsys):
    _, ctx = config_env
    assert handle_config(["list"], ctx) == 0
    captured = capsys.readouterr()

    output_json = json.loads(captured.out)
    assert output_json["exporter"]["above_fold_count"] == 3


def test_handle_config_get(config_env, capsys):
    _, ctx = config_env
    assert handle_config(["get", "exporter.workers"], ctx) == 0
    assert capsys.readouterr().out.strip() == "1"

    assert handle_config(["get", "exporter.nope"], ctx) == 1
    assert "Unknown config key" in capsys.readouterr().out


def test_handle_config_set(config_env, capsys):
    manager, ctx = config_env
    assert handle_config(["set", "exporter.workers", "4"], ctx) == 0
    captured = capsys.readouterr()

    assert "Config updated: exporter.workers = 4 (type: int)" in captured.out
    assert manager.get_nested("exporter.workers") == 4


def test_handle_config_reset(config_env, capsys):
    manager, ctx = config_env

    handle_config(["set", "debug.level", "CRITICAL"], ctx)
    assert manager.get_nested("debug.level") == "CRITICAL"

    assert handle_config(["reset"], ctx) == 0
    captured = capsys.readouterr()

    assert "Configuration has been reset" in captured.out
    assert manager.get_nested("debug.level") == "WARNING"


def test_handle_config_usage(config_env, capsys):
    _, ctx = config_env
    assert handle_config([], ctx) == 1
    assert "config list" in capsys.readouterr().out
    assert handle_config(["frobnicate"], ctx) == 1


# --- Logging ---

def test_configure_logger_levels():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        configure_logger("debug", {"exporter": "WARNING"}, {"aiohttp": "ERROR", "urllib3": 40})

        assert root.level == logging.DEBUG
        assert [type(h) for h in root.handlers] == [LogWithTqdm]
        assert logging.getLogger("exporter").level == logging.WARNING
        assert logging.getLogger("aiohttp").level == logging.ERROR
        assert logging.getLogger("urllib3").level == logging.ERROR
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        for name in ("exporter", "aiohttp", "urllib3"):
            logging.getLogger(name).setLevel(logging.NOTSET)
