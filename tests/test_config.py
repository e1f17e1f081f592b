"""Tests for crewdesk.config."""
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from crewdesk.config import Config, get_config, load_config
from crewdesk.errors import ConfigError

_ENV_KEYS = [
    "CREWDESK_CACHE_DIR",
    "CREWDESK_CACHE_TTL",
    "CREWDESK_CACHE_ENABLED",
    "CREWDESK_COUNCIL",
    "CREWDESK_COUNCIL_ROUNDS",
    "CREWDESK_DEFAULT_PROVIDER",
    "CREWDESK_CLI_TIMEOUT",
    "CREWDESK_DATA_DIR",
    "CREWDESK_CONFIG",
]


class ConfigTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.missing = Path(self.tmp.name) / "absent.yaml"
        self.env = patch.dict(os.environ, {})
        self.env.start()
        for key in _ENV_KEYS:
            os.environ.pop(key, None)

    def tearDown(self):
        self.env.stop()
        self.tmp.cleanup()


class TestLoadConfig(ConfigTestCase):
    def test_packaged_defaults(self):
        config = get_config(self.missing)
        self.assertIn("ollama", config.providers)
        self.assertIn("claude-cli", config.providers)
        self.assertEqual(config.default_provider, "ollama")
        self.assertEqual(config.council["rounds"], 2)
        self.assertTrue(config.cache["enabled"])
        self.assertEqual(config.cli_timeout_seconds, 180)

    def test_user_file_is_merged(self):
        path = Path(self.tmp.name) / "config.yaml"
        path.write_text("council:\n  rounds: 4\nproviders:\n  ollama:\n    model: mistral\n")
        config = get_config(path)
        self.assertEqual(config.council["rounds"], 4)
        self.assertEqual(config.council["member_timeout_seconds"], 180)
        self.assertEqual(config.provider("ollama")["model"], "mistral")
        self.assertEqual(config.provider("ollama")["kind"], "local")

    def test_config_path_from_environment(self):
        path = Path(self.tmp.name) / "env.yaml"
        path.write_text("default_provider: claude-cli\n")
        os.environ["CREWDESK_CONFIG"] = str(path)
        self.assertEqual(get_config().default_provider, "claude-cli")

    def test_invalid_yaml(self):
        path = Path(self.tmp.name) / "broken.yaml"
        path.write_text("council: [unclosed\n")
        with self.assertRaises(ConfigError):
            load_config(path)

    def test_non_mapping_yaml(self):
        path = Path(self.tmp.name) / "list.yaml"
        path.write_text("- one\n- two\n")
        with self.assertRaises(ConfigError):
            load_config(path)

    def test_environment_overrides(self):
        os.environ.update({
            "CREWDESK_CACHE_DIR": "/tmp/crewdesk-cache",
            "CREWDESK_CACHE_TTL": "60",
            "CREWDESK_CACHE_ENABLED": "false",
            "CREWDESK_COUNCIL": "yes",
            "CREWDESK_COUNCIL_ROUNDS": "3",
            "CREWDESK_DEFAULT_PROVIDER": "gemini-cli",
            "CREWDESK_CLI_TIMEOUT": "30",
        })
        config = get_config(self.missing)
        self.assertEqual(config.cache["directory"], "/tmp/crewdesk-cache")
        self.assertEqual(config.cache["ttl_secs"], 60)
        self.assertFalse(config.cache["enabled"])
        self.assertTrue(config.council["enabled"])
        self.assertEqual(config.council["rounds"], 3)
        self.assertEqual(config.default_provider, "gemini-cli")
        self.assertEqual(config.cli_timeout_seconds, 30)

    def test_bad_numeric_override_is_ignored(self):
        os.environ["CREWDESK_CACHE_TTL"] = "soon"
        self.assertEqual(get_config(self.missing).cache["ttl_secs"], 3600)


class TestResolveApiKey(ConfigTestCase):
    def test_literal(self):
        config = Config({"providers": {"openai": {"api_key": "sk-literal"}}})
        self.assertEqual(config.resolve_api_key("openai"), "sk-literal")

    def test_env_reference(self):
        os.environ["CREWDESK_TEST_OPENAI"] = "sk-env"
        config = Config({"providers": {"openai": {"api_key": "$CREWDESK_TEST_OPENAI"}}})
        self.assertEqual(config.resolve_api_key("openai"), "sk-env")

    def test_api_key_env(self):
        os.environ["CREWDESK_TEST_GEMINI"] = "g-env"
        config = Config({"providers": {"gemini-api": {"api_key_env": "CREWDESK_TEST_GEMINI"}}})
        self.assertEqual(config.resolve_api_key("gemini-api"), "g-env")

    def test_empty_is_none(self):
        os.environ["CREWDESK_TEST_EMPTY"] = "   "
        config = Config({"providers": {"openai": {"api_key": "$CREWDESK_TEST_EMPTY"}, "anthropic": {}}})
        self.assertIsNone(config.resolve_api_key("openai"))
        self.assertIsNone(config.resolve_api_key("anthropic"))
        self.assertIsNone(config.resolve_api_key("unknown"))


if __name__ == "__main__":
    unittest.main()
