"""Tests for the provider adapters in crewdesk.models."""
import os
import socket
import sys
import unittest
from unittest.mock import patch

import httpx

from helpers import mock_http_client

from crewdesk.config import Config
from crewdesk.errors import MissingCredential, ProviderCallFailed
from crewdesk.models.cli import CliClient, command_available
from crewdesk.models.cloud import AnthropicClient, OpenAIClient
from crewdesk.models.gemini import GeminiClient
from crewdesk.models.ollama import OllamaClient
from crewdesk.models.providers import (
    CliProvider,
    CloudProvider,
    OllamaProvider,
    Provider,
    build_providers,
)


def _python(code):
    return [sys.executable, "-c", code]


class TestCliProvider(unittest.TestCase):
    def test_prompt_is_last_argument(self):
        provider = CliProvider("echo", _python("import sys; print('hello ' + sys.argv[1])"))
        self.assertEqual(provider.generate("world"), "hello world")

    def test_prompt_on_stdin(self):
        provider = CliProvider("upper", _python("import sys; print(sys.stdin.read().upper())"), prompt_mode="stdin")
        self.assertEqual(provider.generate("shout"), "SHOUT")

    def test_nonzero_exit_carries_stderr(self):
        provider = CliProvider("bad", _python("import sys; sys.stderr.write('rate limited'); sys.exit(3)"))
        with self.assertRaises(ProviderCallFailed) as ctx:
            provider.generate("x")
        self.assertEqual(str(ctx.exception), "rate limited")
        self.assertEqual(ctx.exception.provider, "bad")

    def test_nonzero_exit_without_stderr(self):
        provider = CliProvider("quiet", _python("import sys; sys.exit(3)"))
        with self.assertRaises(ProviderCallFailed) as ctx:
            provider.generate("x")
        self.assertEqual(str(ctx.exception), "exit 3")

    def test_streaming_emits_lines(self):
        provider = CliProvider("lines", _python("print('one'); print('two')"))
        chunks = []
        text = provider.generate_streaming("ignored", chunks.append)
        self.assertEqual(chunks, ["one\n", "two\n"])
        self.assertEqual(text, "".join(chunks))

    def test_streaming_failure_after_output(self):
        provider = CliProvider(
            "partial",
            _python("import sys; print('partial', flush=True); sys.stderr.write('died'); sys.exit(2)"),
        )
        chunks = []
        with self.assertRaises(ProviderCallFailed) as ctx:
            provider.generate_streaming("x", chunks.append)
        self.assertEqual(chunks, ["partial\n"])
        self.assertEqual(str(ctx.exception), "died")

    def test_streaming_timeout(self):
        provider = CliProvider("sleepy", _python("import time; time.sleep(10)"), timeout_seconds=1)
        with self.assertRaises(ProviderCallFailed) as ctx:
            provider.generate_streaming("x", lambda chunk: None)
        self.assertEqual(str(ctx.exception), "timeout")

    def test_undecodable_output_is_replaced(self):
        provider = CliProvider("raw", _python("import sys; sys.stdout.buffer.write(b'ok\\xff\\xfe\\n')"))
        self.assertEqual(provider.generate("x"), "ok\ufffd\ufffd")

    def test_undecodable_output_while_streaming(self):
        provider = CliProvider("raw", _python("import sys; sys.stdout.buffer.write(b'ok\\xff\\xfe\\n')"))
        chunks = []
        text = provider.generate_streaming("x", chunks.append)
        self.assertEqual(chunks, ["ok\ufffd\ufffd\n"])
        self.assertEqual(text, "".join(chunks))

    def test_availability(self):
        self.assertTrue(CliProvider("py", [sys.executable]).is_available())
        self.assertFalse(CliProvider("nope", ["crewdesk-no-such-binary-xyz"]).is_available())
        self.assertFalse(command_available([]))

    def test_satisfies_protocol(self):
        self.assertIsInstance(CliProvider("py", [sys.executable]), Provider)

    def test_retry_on_transient_failure(self):
        client = CliClient(max_retries=1, retry_delay=0.0)
        result = client.run(_python("import sys; sys.stderr.write('connection reset'); sys.exit(1)"), "x")
        self.assertFalse(result.ok)
        self.assertEqual(result.retries, 1)


class TestOllamaProvider(unittest.TestCase):
    @patch("crewdesk.models.ollama.httpx.Client")
    def test_generate(self, mock_client_cls):
        mock_client = mock_http_client(mock_client_cls, payload={"response": "local reply"})
        provider = OllamaProvider(endpoint="http://localhost:11434", model="llama3.2", temperature=0.5)
        self.assertEqual(provider.generate("hi"), "local reply")
        url = mock_client.post.call_args[0][0]
        body = mock_client.post.call_args[1]["json"]
        self.assertEqual(url, "http://localhost:11434/api/generate")
        self.assertEqual(body["model"], "llama3.2")
        self.assertFalse(body["stream"])
        self.assertEqual(body["options"]["temperature"], 0.5)

    @patch("crewdesk.models.ollama.httpx.Client")
    def test_http_error(self, mock_client_cls):
        mock_http_client(mock_client_cls, status_code=500, text="model not loaded")
        with self.assertRaises(ProviderCallFailed) as ctx:
            OllamaProvider().generate("hi")
        self.assertIn("HTTP 500", str(ctx.exception))

    @patch("crewdesk.models.ollama.httpx.Client")
    def test_missing_response_field(self, mock_client_cls):
        mock_http_client(mock_client_cls, payload={"done": True})
        with self.assertRaises(ProviderCallFailed):
            OllamaProvider().generate("hi")

    @patch("crewdesk.models.ollama.httpx.Client")
    def test_streaming_is_one_chunk(self, mock_client_cls):
        mock_http_client(mock_client_cls, payload={"response": "a\nb"})
        chunks = []
        self.assertEqual(OllamaProvider().generate_streaming("hi", chunks.append), "a\nb")
        self.assertEqual(chunks, ["a\nb"])

    def test_tcp_probe(self):
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.bind(("127.0.0.1", 0))
        server.listen(1)
        port = server.getsockname()[1]
        try:
            self.assertTrue(OllamaClient(f"http://127.0.0.1:{port}").reachable(0.5))
        finally:
            server.close()
        self.assertFalse(OllamaClient(f"http://127.0.0.1:{port}").reachable(0.5))


class TestCloudProviders(unittest.TestCase):
    @patch("crewdesk.models.cloud.httpx.Client")
    def test_openai(self, mock_client_cls):
        mock_client = mock_http_client(
            mock_client_cls,
            payload={"choices": [{"message": {"content": "from gpt"}}]},
        )
        provider = CloudProvider("openai", OpenAIClient("sk-test", base_url="https://api.example/v1"), "gpt-4o-mini")
        self.assertEqual(provider.generate("hi"), "from gpt")
        args, kwargs = mock_client.post.call_args
        self.assertEqual(args[0], "https://api.example/v1/chat/completions")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer sk-test")
        self.assertEqual(kwargs["json"]["messages"], [{"role": "user", "content": "hi"}])

    @patch("crewdesk.models.cloud.httpx.Client")
    def test_anthropic(self, mock_client_cls):
        mock_client = mock_http_client(mock_client_cls, payload={"content": [{"type": "text", "text": "from claude"}]})
        provider = CloudProvider("anthropic", AnthropicClient("key"), "claude-3-5-sonnet-20241022")
        self.assertEqual(provider.generate("hi"), "from claude")
        args, kwargs = mock_client.post.call_args
        self.assertTrue(args[0].endswith("/messages"))
        self.assertEqual(kwargs["headers"]["x-api-key"], "key")
        self.assertEqual(kwargs["headers"]["anthropic-version"], "2023-06-01")
        self.assertEqual(kwargs["json"]["max_tokens"], 4096)

    @patch("crewdesk.models.gemini.httpx.Client")
    def test_gemini(self, mock_client_cls):
        mock_client = mock_http_client(
            mock_client_cls,
            payload={"candidates": [{"content": {"parts": [{"text": "from "}, {"text": "gemini"}]}}]},
        )
        provider = CloudProvider("gemini-api", GeminiClient(api_key="g-key"), "2.5-flash")
        self.assertEqual(provider.generate("hi"), "from gemini")
        args, kwargs = mock_client.post.call_args
        self.assertTrue(args[0].endswith("/models/gemini-2.5-flash:generateContent"))
        self.assertEqual(kwargs["headers"]["x-goog-api-key"], "g-key")

    @patch("crewdesk.models.cloud.httpx.Client")
    def test_missing_key(self, mock_client_cls):
        provider = CloudProvider("openai", OpenAIClient(""), "gpt-4o-mini")
        self.assertFalse(provider.is_available())
        with self.assertRaises(MissingCredential):
            provider.generate("hi")
        mock_client_cls.assert_not_called()

    @patch("crewdesk.models.cloud.httpx.Client")
    def test_non_success_status(self, mock_client_cls):
        mock_http_client(mock_client_cls, status_code=429, text="slow down")
        provider = CloudProvider("openai", OpenAIClient("sk"), "gpt-4o-mini")
        with self.assertRaises(ProviderCallFailed) as ctx:
            provider.generate("hi")
        self.assertIn("429", str(ctx.exception))
        self.assertIn("slow down", str(ctx.exception))

    @patch("crewdesk.models.cloud.httpx.Client")
    def test_unexpected_json(self, mock_client_cls):
        mock_http_client(mock_client_cls, payload={"choices": []})
        provider = CloudProvider("openai", OpenAIClient("sk"), "gpt-4o-mini")
        with self.assertRaises(ProviderCallFailed) as ctx:
            provider.generate("hi")
        self.assertEqual(str(ctx.exception), "Invalid response format")

    @patch("crewdesk.models.cloud.httpx.Client")
    def test_transport_error(self, mock_client_cls):
        mock_client = mock_http_client(mock_client_cls)
        mock_client.post.side_effect = httpx.ConnectError("connection refused")
        provider = CloudProvider("anthropic", AnthropicClient("key"), "claude")
        with self.assertRaises(ProviderCallFailed):
            provider.generate("hi")

    @patch("crewdesk.models.cloud.httpx.Client")
    def test_streaming_is_one_chunk(self, mock_client_cls):
        mock_http_client(mock_client_cls, payload={"choices": [{"message": {"content": "x\ny"}}]})
        provider = CloudProvider("openai", OpenAIClient("sk"), "gpt-4o-mini")
        chunks = []
        self.assertEqual(provider.generate_streaming("hi", chunks.append), "x\ny")
        self.assertEqual(chunks, ["x\ny"])


class TestGeminiClient(unittest.TestCase):
    def test_no_api_key_returns_error(self):
        result = GeminiClient(api_key="").generate("Hello")
        self.assertFalse(result.ok)
        self.assertIn("GEMINI_API_KEY", result.error)

    @patch("crewdesk.models.gemini.httpx.Client")
    def test_no_candidates(self, mock_client_cls):
        mock_http_client(mock_client_cls, payload={"candidates": []})
        result = GeminiClient(api_key="k").generate("test")
        self.assertFalse(result.ok)
        self.assertIn("No candidates", result.error)

    @patch("crewdesk.models.gemini.httpx.Client")
    def test_non_string_part_text(self, mock_client_cls):
        mock_http_client(mock_client_cls, payload={"candidates": [{"content": {"parts": [{"text": 42}]}}]})
        result = GeminiClient(api_key="k").generate("test")
        self.assertFalse(result.ok)
        self.assertTrue(result.error)

    @patch("crewdesk.models.gemini.httpx.Client")
    def test_timeout(self, mock_client_cls):
        mock_client = mock_http_client(mock_client_cls)
        mock_client.post.side_effect = httpx.TimeoutException("timed out")
        result = GeminiClient(api_key="k", timeout=5.0).generate("test")
        self.assertFalse(result.ok)
        self.assertIn("timeout", result.error.lower())


class TestBuildProviders(unittest.TestCase):
    def test_builds_enabled_providers_in_order(self):
        config = Config({
            "providers": {
                "claude-cli": {"kind": "cli", "command": ["claude", "--print"]},
                "ollama": {"kind": "local", "endpoint": "http://localhost:11434", "model": "llama3.2"},
                "openai": {"kind": "cloud", "api": "openai", "api_key": "sk-literal"},
                "anthropic": {"kind": "cloud", "api": "anthropic", "enabled": False},
                "weird": {"kind": "carrier-pigeon"},
            },
        })
        providers = build_providers(config)
        self.assertEqual(list(providers), ["claude-cli", "ollama", "openai"])
        self.assertEqual(providers["claude-cli"].kind, "cli")
        self.assertEqual(providers["ollama"].kind, "local")
        self.assertTrue(providers["openai"].requires_credential)
        self.assertTrue(providers["openai"].is_available())

    def test_cloud_key_from_environment(self):
        config = Config({"providers": {"gemini-api": {"kind": "cloud", "api": "gemini", "api_key_env": "CREWDESK_TEST_KEY"}}})
        with patch.dict(os.environ, {"CREWDESK_TEST_KEY": "from-env"}):
            provider = build_providers(config)["gemini-api"]
        self.assertTrue(provider.is_available())
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("CREWDESK_TEST_KEY", None)
            self.assertFalse(build_providers(config)["gemini-api"].is_available())


if __name__ == "__main__":
    unittest.main()
