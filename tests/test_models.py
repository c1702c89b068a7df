from __future__ import annotations

import json
import os
import unittest
import urllib.error
from unittest.mock import patch

from imcode.models import (
    SYSTEM_PROMPT,
    MockProvider,
    OpenAICompatibleProvider,
    OpenAIProviderConfig,
    ProviderError,
    ProviderModelClient,
    build_messages,
    build_provider,
)


class _FakeResponse:
    def __init__(self, lines: list[bytes]) -> None:
        self._lines = lines

    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *exc: object) -> bool:
        return False

    def __iter__(self):
        return iter(self._lines)


def _provider() -> OpenAICompatibleProvider:
    return OpenAICompatibleProvider(
        OpenAIProviderConfig(base_url="https://api.example.com/v1/", api_key_env="IMCODE_TEST_KEY", default_model="gpt-4o-mini")
    )


class BuildMessagesTests(unittest.TestCase):
    def test_layout(self) -> None:
        messages = build_messages(
            {
                "message": "add burn",
                "context": [
                    {"role": "user", "content": "make a token"},
                    {"role": "assistant", "content": "done"},
                    {"role": "system", "content": "dropped"},
                ],
                "files": [{"name": "contracts/Token.move", "content": "module a::Token {}"}],
            }
        )
        self.assertEqual(messages[0], {"role": "system", "content": SYSTEM_PROMPT})
        self.assertIn("### contracts/Token.move", messages[1]["content"])
        self.assertEqual([item["role"] for item in messages[2:]], ["user", "assistant", "user"])
        self.assertEqual(messages[-1]["content"], "add burn")

    def test_without_files(self) -> None:
        messages = build_messages({"message": "hi"})
        self.assertEqual(len(messages), 2)


class ProviderTests(unittest.TestCase):
    def test_streaming_chunks_are_joined(self) -> None:
        lines = [
            b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n',
            b"\n",
            b'data: {"choices":[{"delta":{"content":"lo"}}]}\n',
            b"data: [DONE]\n",
        ]
        with patch.dict(os.environ, {"IMCODE_TEST_KEY": "secret"}), patch(
            "urllib.request.urlopen", return_value=_FakeResponse(lines)
        ) as urlopen:
            client = ProviderModelClient(_provider())
            self.assertEqual(client.complete({"message": "hi"}), {"response": "Hello"})

        request = urlopen.call_args[0][0]
        self.assertEqual(request.full_url, "https://api.example.com/v1/chat/completions")
        self.assertEqual(request.get_header("Authorization"), "Bearer secret")
        payload = json.loads(request.data.decode("utf-8"))
        self.assertEqual(payload["model"], "gpt-4o-mini")
        self.assertEqual(payload["temperature"], 0.7)
        self.assertEqual(payload["max_tokens"], 3000)
        self.assertTrue(payload["stream"])

    def test_missing_api_key(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ProviderError):
                list(_provider().generate_stream([{"role": "user", "content": "hi"}]))

    def test_connection_error(self) -> None:
        with patch.dict(os.environ, {"IMCODE_TEST_KEY": "secret"}), patch(
            "urllib.request.urlopen", side_effect=urllib.error.URLError("down")
        ):
            with self.assertRaises(ProviderError):
                list(_provider().generate_stream([{"role": "user", "content": "hi"}]))

    def test_build_provider(self) -> None:
        self.assertIsInstance(build_provider({"type": "openai_compatible", "model": "gpt-4o-mini"}), OpenAICompatibleProvider)
        mock = build_provider({"type": "mock", "response": "reply"})
        self.assertIsInstance(mock, MockProvider)
        self.assertEqual(list(mock.generate_stream([])), ["reply"])
        with self.assertRaises(ValueError):
            build_provider({"type": "carrier-pigeon"})


if __name__ == "__main__":
    unittest.main()
