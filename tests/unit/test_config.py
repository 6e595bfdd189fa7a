"""Tests for configuration loading, error classification and logging setup."""
import json
import logging
import os

import pytest
import yaml

from view_engine.config.configuration import (
    RenderingConfiguration,
    ensure_rendering_config,
    load_config_file,
    load_configuration_from_env,
    merge_configs,
)
from view_engine.config.loader import discover_config_file, load_config
from view_engine.error.exceptions import (
    AssetError,
    CacheWriteError,
    CompileError,
    ConfigurationError,
    LayoutCycleError,
    PathNotFound,
    RecursionLimitExceeded,
    RenderError,
)
from view_engine.error.handler import ErrorCategory, ErrorHandler, describe_error
from view_engine.logging.config import JsonFormatter, LogConfig, reset


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Run from an empty directory without VIEW_ENGINE_ variables."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for key in list(os.environ):
        if key.startswith("VIEW_ENGINE_"):
            monkeypatch.delenv(key)
    return tmp_path


class TestRenderingConfiguration:
    """Tests for RenderingConfiguration validation."""

    def test_defaults(self, views_dir, tmp_path):
        config = RenderingConfiguration(views_dir=str(views_dir), cache_dir=str(tmp_path / "compiled"))

        assert config.views_dir == views_dir.resolve()
        assert config.template_extension == ".html"
        assert config.max_recursion_depth == 32
        assert config.cache_enabled is True
        assert config.cache_dir.is_dir()

    def test_normalizes_values(self, views_dir, cache_dir):
        config = RenderingConfiguration(
            views_dir=str(views_dir),
            cache_dir=str(cache_dir),
            template_extension="tpl",
            log_level="debug",
        )
        assert config.template_extension == ".tpl"
        assert config.log_level == "DEBUG"

    def test_workspace_root_substitution(self, views_dir, cache_dir, monkeypatch):
        monkeypatch.setenv("WORKSPACE_ROOT", str(views_dir.parent))
        config = RenderingConfiguration(views_dir="${WORKSPACE_ROOT}/views", cache_dir=str(cache_dir))
        assert config.views_dir == views_dir.resolve()

    @pytest.mark.parametrize("overrides", [
        {"log_level": "LOUD"},
        {"max_recursion_depth": 0},
        {"template_extension": "."},
        {"memory_cache_size": 0},
    ])
    def test_invalid_values(self, views_dir, cache_dir, overrides):
        with pytest.raises(Exception):
            RenderingConfiguration(views_dir=str(views_dir), cache_dir=str(cache_dir), **overrides)

    def test_missing_views_dir(self, isolated):
        with pytest.raises(ConfigurationError, match="views_dir"):
            ensure_rendering_config({"views_dir": str(isolated / "nope")})

    def test_views_dir_is_required(self, isolated):
        with pytest.raises(ConfigurationError):
            ensure_rendering_config({})

    def test_existing_configuration_is_returned(self, views_dir, cache_dir):
        config = RenderingConfiguration(views_dir=views_dir, cache_dir=cache_dir)
        assert ensure_rendering_config(config) is config


class TestConfigLoading:
    """Tests for files, environment and merging."""

    def test_load_yaml_and_json(self, tmp_path):
        yaml_file = tmp_path / "settings.yaml"
        yaml_file.write_text(yaml.safe_dump({"views_dir": "views"}), encoding="utf-8")
        json_file = tmp_path / "settings.json"
        json_file.write_text(json.dumps({"cache_enabled": False}), encoding="utf-8")

        assert load_config_file(str(yaml_file)) == {"views_dir": "views"}
        assert load_config_file(str(json_file)) == {"cache_enabled": False}

    def test_load_config_file_errors(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config_file(str(tmp_path / "missing.yaml"))

        bad = tmp_path / "bad.yaml"
        bad.write_text("views_dir: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config_file(str(bad))

        listing = tmp_path / "list.yaml"
        listing.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config_file(str(listing))

        other = tmp_path / "settings.ini"
        other.write_text("[x]", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Unsupported"):
            load_config_file(str(other))

    def test_environment_variables(self, isolated, monkeypatch):
        monkeypatch.setenv("VIEW_ENGINE_VIEWS_DIR", "/srv/views")
        monkeypatch.setenv("VIEW_ENGINE_UNKNOWN", "ignored")
        assert load_configuration_from_env() == {"views_dir": "/srv/views"}

    def test_merge_configs(self):
        base = {"a": 1, "nested": {"x": 1, "y": 2}}
        merged = merge_configs(base, {"nested": {"y": 3}, "b": 2})
        assert merged == {"a": 1, "b": 2, "nested": {"x": 1, "y": 3}}
        assert base["nested"]["y"] == 2

    def test_load_config_with_file_and_environment(self, isolated, monkeypatch):
        (isolated / "views").mkdir()
        config_file = isolated / "engine.yaml"
        config_file.write_text(yaml.safe_dump({
            "views_dir": str(isolated / "views"),
            "cache_dir": str(isolated / "cache"),
            "max_recursion_depth": 10,
        }), encoding="utf-8")
        monkeypatch.setenv("VIEW_ENGINE_MAX_RECURSION_DEPTH", "5")

        config = load_config(str(config_file))

        assert config.max_recursion_depth == 5
        assert config.cache_dir == (isolated / "cache").resolve()

    def test_load_config_discovers_file(self, isolated):
        (isolated / "views").mkdir()
        (isolated / "view_engine.yaml").write_text(
            yaml.safe_dump({"views_dir": str(isolated / "views"), "default_layout": "layout/site"}),
            encoding="utf-8",
        )
        config = load_config()
        assert config.default_layout == "layout/site"
        assert config.views_dir == (isolated / "views").resolve()

    def test_discover_config_file(self, tmp_path):
        first, second = tmp_path / "first", tmp_path / "second"
        first.mkdir()
        second.mkdir()
        (second / "view_engine.json").write_text("{}", encoding="utf-8")
        (second / "view_engine.yaml").write_text("{}", encoding="utf-8")

        assert discover_config_file([str(first)]) is None
        assert discover_config_file([str(first), str(second)]) == str(second / "view_engine.yaml")


class TestErrorHandler:
    """Tests for error classification."""

    @pytest.mark.parametrize("error, category", [
        (PathNotFound("x"), ErrorCategory.PATH),
        (AssetError("x"), ErrorCategory.PATH),
        (CompileError("x"), ErrorCategory.COMPILE),
        (LayoutCycleError(["a", "b", "a"]), ErrorCategory.COMPILE),
        (CacheWriteError("x", path="/tmp/x"), ErrorCategory.CACHE),
        (RecursionLimitExceeded(["a"], 1), ErrorCategory.RECURSION),
        (RenderError("x"), ErrorCategory.RENDER),
        (ConfigurationError("x"), ErrorCategory.CONFIGURATION),
        (KeyError("x"), ErrorCategory.SYSTEM),
    ])
    def test_classify_error(self, error, category):
        assert ErrorHandler.classify_error(error) == category

    def test_only_cache_errors_are_recoverable(self):
        assert ErrorHandler.is_recoverable(CacheWriteError("x", path="/tmp/x"))
        assert not ErrorHandler.is_recoverable(CompileError("x"))

    def test_exit_codes(self):
        assert ErrorHandler.exit_code(ConfigurationError("x")) == 2
        assert ErrorHandler.exit_code(PathNotFound("x")) == 1

    def test_describe_error(self):
        error = CompileError("Unclosed @if", line=3, template="home")
        assert describe_error(error) == "[compile] CompileError: Unclosed @if (template 'home')"

    def test_cycle_messages(self):
        assert str(LayoutCycleError(["a", "b", "a"])) == "Layout cycle detected: a -> b -> a"
        error = RecursionLimitExceeded(["a", "a"], 1, reason="Include cycle detected")
        assert str(error) == "Include cycle detected: a -> a"
        assert str(RecursionLimitExceeded(["a"], 4)).startswith("Recursion limit of 4 exceeded")


class TestLogConfig:
    """Tests for logging setup."""

    @pytest.fixture(autouse=True)
    def restore_logger(self):
        package_logger = logging.getLogger("view_engine")
        handlers, level, propagate = package_logger.handlers[:], package_logger.level, package_logger.propagate
        yield
        reset(package_logger)
        package_logger.handlers[:] = handlers
        package_logger.setLevel(level)
        package_logger.propagate = propagate

    def test_configure_package_logger(self, tmp_path):
        log_file = tmp_path / "logs" / "engine.log"
        package_logger = LogConfig(log_level="debug", log_file=str(log_file)).configure()

        assert package_logger is logging.getLogger("view_engine")
        assert package_logger.level == logging.DEBUG
        assert package_logger.propagate is False
        assert len(package_logger.handlers) == 2

        logging.getLogger("view_engine.templates").debug("compiled home")
        for handler in package_logger.handlers:
            handler.flush()
        assert "compiled home" in log_file.read_text(encoding="utf-8")

    def test_custom_handler_is_used(self):
        handler = logging.NullHandler()
        LogConfig(handler=handler).configure()
        assert logging.getLogger("view_engine").handlers == [handler]

    def test_from_settings(self, views_dir, cache_dir):
        settings = RenderingConfiguration(
            views_dir=views_dir, cache_dir=cache_dir, log_level="WARNING", json_logging=True
        )
        log_config = LogConfig.from_settings(settings)
        assert log_config.log_level == logging.WARNING
        assert log_config.json_logging is True
        assert log_config.log_file is None

    def test_json_formatter(self):
        record = logging.LogRecord("view_engine", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        payload = json.loads(JsonFormatter().format(record))
        assert payload["message"] == "hello world"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "view_engine"
        assert "template" not in payload

    def test_json_formatter_includes_template(self):
        record = logging.LogRecord("view_engine", logging.INFO, __file__, 1, "compiled", (), None)
        record.template = "home/index"
        assert json.loads(JsonFormatter().format(record))["template"] == "home/index"
