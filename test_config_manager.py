# test_config_manager.py
import json
import os
import tempfile
import unittest
from unittest import mock

import config_manager
from config import GlobalConfig
from errors import ConfigurationError
from models import ProviderSpec


class TestLoadConfig(unittest.TestCase):

    def test_missing_file_is_empty(self):
        self.assertEqual(config_manager.load_config("/nonexistent/devsum/config.json"), {})

    def test_invalid_json(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "config.json")
            with open(path, "w", encoding="utf-8") as f:
                f.write("{not json")
            with self.assertRaises(ConfigurationError):
                config_manager.load_config(path)

    def test_valid_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "config.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"providers": [{"provider": "mock"}]}, f)
            self.assertEqual(config_manager.load_config(path)["providers"][0]["provider"], "mock")


class TestProviderSpecs(unittest.TestCase):

    def setUp(self):
        self.config = GlobalConfig()

    def test_specs_sorted_by_priority(self):
        data = {
            "providers": [
                {"name": "backup", "provider": "claude", "priority": 2, "api_key_env": "MY_KEY"},
                {"name": "primary", "provider": "gemini", "priority": 1, "model": "gemini-x"},
            ]
        }
        specs = config_manager.load_provider_specs(data, self.config)
        self.assertEqual([s.name for s in specs], ["primary", "backup"])
        self.assertEqual(specs[0].model, "gemini-x")
        self.assertEqual(specs[1].api_key_env, "MY_KEY")

    def test_default_priority_follows_order(self):
        data = {"providers": [{"provider": "openai"}, {"provider": "mock"}]}
        specs = config_manager.load_provider_specs(data, self.config)
        self.assertEqual([(s.name, s.priority) for s in specs], [("openai", 1), ("mock", 2)])

    def test_invalid_entries(self):
        for data in (
            {"providers": [{"name": "x"}]},
            {"providers": "gemini"},
            {"providers": [{"provider": "mock", "priority": "high"}]},
            {"providers": [{"provider": "mock"}, {"provider": "mock"}]},
        ):
            with self.subTest(data=data):
                with self.assertRaises(ConfigurationError):
                    config_manager.load_provider_specs(data, self.config)

    def test_chain_from_environment(self):
        env = {"ANTHROPIC_API_KEY": "k1", "DEEPSEEK_API_KEY": "k2"}
        with mock.patch.dict(os.environ, env, clear=True):
            specs = config_manager.load_provider_specs({}, self.config)
        self.assertEqual([s.provider for s in specs], ["claude", "deepseek"])
        self.assertEqual([s.priority for s in specs], [1, 2])

    def test_no_keys_gives_empty_chain(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(config_manager.load_provider_specs({}, self.config), [])


class TestResolveProviderChain(unittest.TestCase):

    def setUp(self):
        self.specs = [
            ProviderSpec(name="primary", provider="gemini", priority=1),
            ProviderSpec(name="backup", provider="claude", priority=2),
        ]

    def test_no_override(self):
        self.assertEqual(config_manager.resolve_provider_chain(self.specs, None), self.specs)

    def test_override_by_name_moves_to_front(self):
        chain = config_manager.resolve_provider_chain(self.specs, "backup")
        self.assertEqual([s.name for s in chain], ["backup", "primary"])
        self.assertEqual([s.priority for s in chain], [1, 2])

    def test_override_by_provider_type(self):
        chain = config_manager.resolve_provider_chain(self.specs, "claude")
        self.assertEqual(chain[0].name, "backup")

    def test_override_with_unconfigured_registered_provider(self):
        chain = config_manager.resolve_provider_chain(self.specs, "mock")
        self.assertEqual([s.name for s in chain], ["mock", "primary", "backup"])

    def test_unknown_override(self):
        with self.assertRaises(ConfigurationError):
            config_manager.resolve_provider_chain(self.specs, "skynet")


if __name__ == "__main__":
    unittest.main()
