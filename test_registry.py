# test_registry.py
import unittest
import os
import logging
from unittest import mock

# 导入核心模块
from config import GlobalConfig
from ai_summarizer import get_llm_provider
from errors import ProviderPermanentError, ProviderTransientError
from llm.provider_abc import (
    PROVIDER_REGISTRY,
    GenerationParams,
    parse_retry_after,
    parse_sections,
    register_provider,
    status_error,
)
from models import ProviderSpec

# 配置日志输出以便观察
logging.basicConfig(level=logging.INFO)


class TestRegistry(unittest.TestCase):

    def setUp(self):
        self.config = GlobalConfig()

    def test_all_providers_registered(self):
        """导入 ai_summarizer 后，封闭的供应商集合全部注册"""
        print(f"\n当前注册表内容: {sorted(PROVIDER_REGISTRY)}")
        for provider_id in ("gemini", "openai", "claude", "deepseek", "ollama", "mock"):
            self.assertIn(provider_id, PROVIDER_REGISTRY, f"❌ '{provider_id}' 未注册！")
            self.assertEqual(PROVIDER_REGISTRY[provider_id].provider_id, provider_id)

    def test_duplicate_registration_is_rejected(self):
        with self.assertRaises(ValueError):
            register_provider("mock")(type("AnotherMock", (), {}))

    def test_instantiation(self):
        """测试是否能实例化 MockProvider"""
        provider = get_llm_provider(ProviderSpec(name="offline", provider="mock"), self.config)
        self.assertEqual(provider.model, self.config.DEFAULT_MODELS["mock"])
        sections = provider.generate("x", GenerationParams(length="light", max_output_tokens=10))
        self.assertTrue(sections["summary"].startswith("[Mock]"), "❌ MockProvider 返回内容不符合预期")

    def test_missing_api_key_is_permanent(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            for provider_id in ("gemini", "openai", "claude", "deepseek"):
                with self.subTest(provider=provider_id):
                    with self.assertRaises(ProviderPermanentError):
                        get_llm_provider(
                            ProviderSpec(name=provider_id, provider=provider_id), self.config
                        )

    def test_custom_api_key_env(self):
        with mock.patch.dict(os.environ, {"TEAM_OPENAI_KEY": "sk-test"}, clear=True):
            provider = get_llm_provider(
                ProviderSpec(name="team", provider="openai", api_key_env="TEAM_OPENAI_KEY", model="gpt-x"),
                self.config,
            )
        self.assertEqual(provider.model, "gpt-x")

    def test_ollama_needs_no_key(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            provider = get_llm_provider(ProviderSpec(name="local", provider="ollama"), self.config)
        self.assertEqual(provider.model, self.config.DEFAULT_MODELS["ollama"])


class TestErrorClassification(unittest.TestCase):

    def test_status_codes(self):
        for status in (408, 429, 500, 503):
            self.assertIsInstance(status_error("p", status, "x"), ProviderTransientError)
        for status in (400, 401, 403, 404, None):
            self.assertIsInstance(status_error("p", status, "x"), ProviderPermanentError)

    def test_retry_after(self):
        self.assertEqual(parse_retry_after({"retry-after": "12"}), 12.0)
        self.assertIsNone(parse_retry_after({"retry-after": "Wed, 21 Oct 2015 07:28:00 GMT"}))
        self.assertIsNone(parse_retry_after(None))
        error = status_error("p", 429, "slow down", parse_retry_after({"Retry-After": "3"}))
        self.assertEqual(error.retry_after, 3.0)

    def test_sdk_errors_are_wrapped(self):
        provider = get_llm_provider(ProviderSpec(name="offline", provider="mock"), GlobalConfig())
        params = GenerationParams(length="light", max_output_tokens=10)
        with mock.patch.object(provider, "_complete", side_effect=TimeoutError("slow")):
            with self.assertRaises(ProviderTransientError):
                provider.generate("x", params)
        with mock.patch.object(provider, "_complete", side_effect=KeyError("weird")):
            with self.assertRaises(ProviderPermanentError):
                provider.generate("x", params)
        with mock.patch.object(provider, "_complete", return_value="   "):
            with self.assertRaises(ProviderPermanentError):
                provider.generate("x", params)


class TestParseSections(unittest.TestCase):

    def test_heading_styles(self):
        text = (
            "```markdown\n"
            "Here is your report.\n"
            "## Summary\nGood week.\n\n"
            "**Highlights:**\n- one\n- two\n"
            "### risks\n\n"
            "# Recommendations\nShip it.\n"
            "```"
        )
        sections = parse_sections(text)
        self.assertEqual(sections["summary"], "Good week.")
        self.assertEqual(sections["highlights"], "- one\n- two")
        self.assertNotIn("risks", sections)
        self.assertEqual(sections["recommendations"], "Ship it.")


if __name__ == "__main__":
    unittest.main()
