"""Tests for config file loading and priority."""

import os
import re
import tempfile
from pathlib import Path
import unittest
from unittest import mock

from tracewire import config, init, stop_tracing
from tracewire.errors import ConfigError


def _write_toml(content):
    f = tempfile.NamedTemporaryFile(mode='w', suffix='.toml', delete=False)
    f.write(content)
    f.close()
    return f.name


def _isolate_env(test):
    """Hide TRACEWIRE_* variables for the duration of a test."""
    clean = {k: v for k, v in os.environ.items() if not k.startswith("TRACEWIRE_")}
    patcher = mock.patch.dict(os.environ, clean, clear=True)
    patcher.start()
    test.addCleanup(patcher.stop)


class TestConfigFileLoading(unittest.TestCase):
    """Test TOML config file loading."""

    def test_load_toml_config_basic(self):
        """Test loading a basic TOML config file."""
        path = _write_toml("""
[tracing]
sample_rate = 0.5

[exporters]
enable_console = true

[instrumentation]
trace_xhr = false
""")
        try:
            loaded = config.load_toml_config(path)

            self.assertEqual(loaded["tracing"]["sample_rate"], 0.5)
            self.assertTrue(loaded["exporters"]["enable_console"])
            self.assertFalse(loaded["instrumentation"]["trace_xhr"])
        finally:
            os.unlink(path)

    def test_load_toml_config_missing_file(self):
        """Test that loading missing file returns empty dict."""
        loaded = config.load_toml_config("/nonexistent/file.toml")
        self.assertEqual(loaded, {})

    def test_load_toml_config_invalid_toml(self):
        """Test that invalid TOML raises ConfigError."""
        path = _write_toml("invalid [toml content")
        try:
            with self.assertRaises(ConfigError):
                config.load_toml_config(path)
        finally:
            os.unlink(path)

    def test_unknown_key_rejected(self):
        path = _write_toml("[tracing]\napi_key = \"nope\"\n")
        try:
            with self.assertRaises(ConfigError):
                config.load_config_with_priority(config_file=path)
        finally:
            os.unlink(path)

    def test_find_config_file_current_directory(self):
        """Test finding config file in current directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "tracewire.toml"
            config_path.write_text("[tracing]\nsample_rate = 1")

            original_cwd = os.getcwd()
            try:
                os.chdir(tmpdir)

                found = config.find_config_file()
                self.assertIsNotNone(found)
                self.assertEqual(Path(found).name, "tracewire.toml")
            finally:
                os.chdir(original_cwd)

    def test_find_config_file_none(self):
        """No config in cwd or a fresh home directory."""
        original_cwd = os.getcwd()
        with tempfile.TemporaryDirectory() as tmpdir:
            try:
                os.chdir(tmpdir)
                with mock.patch.object(Path, "home", return_value=Path(tmpdir)):
                    self.assertIsNone(config.find_config_file())
            finally:
                os.chdir(original_cwd)


class TestConfigPriority(unittest.TestCase):
    """Test configuration loading priority."""

    def setUp(self):
        _isolate_env(self)

    def tearDown(self):
        stop_tracing()

    def test_explicit_params_override_env(self):
        os.environ["TRACEWIRE_SAMPLE_RATE"] = "0.2"

        merged = config.load_config_with_priority(overrides={"sample_rate": 0.9})

        self.assertEqual(merged["sample_rate"], 0.9)

    def test_none_override_is_ignored(self):
        os.environ["TRACEWIRE_SAMPLE_RATE"] = "0.2"

        merged = config.load_config_with_priority(overrides={"sample_rate": None})

        self.assertEqual(merged["sample_rate"], 0.2)

    def test_env_override_config_file(self):
        path = _write_toml("[tracing]\nsample_rate = 0.1\n")
        try:
            os.environ["TRACEWIRE_SAMPLE_RATE"] = "0.6"
            merged = config.load_config_with_priority(config_file=path)

            self.assertEqual(merged["sample_rate"], 0.6)
        finally:
            os.unlink(path)

    def test_config_file_loaded_when_no_overrides(self):
        path = _write_toml("""
[tracing]
sample_rate = 0.8

[instrumentation]
tracing_origins = ["api.internal", "re:^/"]
pending_timeout = 300

[exporters]
enable_console = true
""")
        try:
            merged = config.load_config_with_priority(config_file=path)

            self.assertEqual(merged["sample_rate"], 0.8)
            self.assertEqual(merged["tracing_origins"], ["api.internal", "re:^/"])
            self.assertTrue(merged["enable_console"])
        finally:
            os.unlink(path)

    def test_init_with_config_file(self):
        """init() builds the provider from the file."""
        path = _write_toml("[tracing]\nsample_rate = 0.3\nservice_name = \"dogpark\"\n")
        try:
            provider = init(config_file=path)

            self.assertEqual(provider.sampler.sample_rate, 0.3)
            self.assertEqual(provider.span_processors, [])
            self.assertEqual(provider.resource, {"service.name": "dogpark"})
        finally:
            os.unlink(path)


class TestValidation(unittest.TestCase):
    def test_defaults(self):
        cfg = config.validate_config({})

        self.assertIsNone(cfg.tracing.sample_rate)
        self.assertTrue(cfg.instrumentation.trace_fetch)
        self.assertEqual(cfg.instrumentation.max_cache_size, 10_000)
        self.assertFalse(cfg.exporters.enable_console)

    def test_bad_value_raises_config_error(self):
        with self.assertRaises(ConfigError):
            config.validate_config({"max_cache_size": 0})
        with self.assertRaises(ConfigError):
            config.validate_config({"pending_timeout": -1})

    def test_invalid_sample_rate_is_not_a_config_error(self):
        cfg = config.validate_config({"sample_rate": "not-a-number"})
        self.assertEqual(cfg.tracing.sample_rate, "not-a-number")

    def test_instrumentation_options(self):
        cfg = config.validate_config({"tracing_origins": ["api.internal", "re:^/v\\d+/"], "trace_xhr": False})
        options = cfg.to_instrumentation_options()

        self.assertEqual(options.tracing_origins[0], "api.internal")
        self.assertIsInstance(options.tracing_origins[1], re.Pattern)
        self.assertFalse(options.trace_xhr)

    def test_bad_origin_regex(self):
        cfg = config.validate_config({"tracing_origins": ["re:("]})
        with self.assertRaises(ConfigError):
            cfg.to_instrumentation_options()


class TestConfigFromEnv(unittest.TestCase):
    """Test loading configuration from environment variables."""

    def setUp(self):
        _isolate_env(self)

    def test_load_config_from_env_all_vars(self):
        os.environ.update({
            "TRACEWIRE_SAMPLE_RATE": "0.9",
            "TRACEWIRE_SERVICE_NAME": "dogpark",
            "TRACEWIRE_TRACING_ORIGINS": "localhost, api.internal",
            "TRACEWIRE_TRACE_FETCH": "true",
            "TRACEWIRE_TRACE_XHR": "no",
            "TRACEWIRE_REPORTING_ENDPOINT_PATTERN": "ingest_key",
            "TRACEWIRE_MAX_CACHE_SIZE": "50",
            "TRACEWIRE_PENDING_TIMEOUT": "12.5",
            "TRACEWIRE_ENABLE_CONSOLE_EXPORTER": "1",
            "TRACEWIRE_ENABLE_LOGGING": "0",
        })

        env_config = config.load_config_from_env(flat=True)

        self.assertEqual(env_config["sample_rate"], 0.9)
        self.assertEqual(env_config["service_name"], "dogpark")
        self.assertEqual(env_config["tracing_origins"], ["localhost", "api.internal"])
        self.assertTrue(env_config["trace_fetch"])
        self.assertFalse(env_config["trace_xhr"])
        self.assertEqual(env_config["reporting_endpoint_pattern"], "ingest_key")
        self.assertEqual(env_config["max_cache_size"], 50)
        self.assertEqual(env_config["pending_timeout"], 12.5)
        self.assertTrue(env_config["enable_console"])
        self.assertFalse(env_config["enable_logging"])

    def test_nested_result(self):
        os.environ["TRACEWIRE_SAMPLE_RATE"] = "1"
        self.assertEqual(config.load_config_from_env(), {"tracing": {"sample_rate": 1.0}})

    def test_unparseable_rate_passed_through(self):
        os.environ["TRACEWIRE_SAMPLE_RATE"] = "not-a-number"
        self.assertEqual(config.load_config_from_env(flat=True)["sample_rate"], "not-a-number")

    def test_bad_integer_raises(self):
        os.environ["TRACEWIRE_MAX_CACHE_SIZE"] = "lots"
        with self.assertRaises(ConfigError):
            config.load_config_from_env()

    def test_load_config_from_env_missing_vars(self):
        self.assertEqual(config.load_config_from_env(), {})


if __name__ == "__main__":
    unittest.main()
