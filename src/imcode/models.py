"""Model collaborators that turn a chat request into reply text."""

from __future__ import annotations

import json
import os
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Protocol

from .errors import ImcodeError

SYSTEM_PROMPT = (
    "You are the ImCode assistant, specialized in Move smart contract development for the Umi Network. "
    "You help developers create, understand, extend and deploy Move contracts, deployment scripts, "
    "configuration files and documentation.\n\n"
    "Always put every file in its own fenced code block tagged with its language. When you know the "
    "file name, add it to the fence info string as file=<path>. When asked to edit an existing file, "
    "return the complete updated file in a single code block. Keep explanations concise."
)


class ProviderError(ImcodeError):
    pass


class ModelClient(Protocol):
    def complete(self, request: Mapping[str, Any]) -> dict[str, str]:
        """Return ``{"response": text}`` for ``{message, context, files}``."""
        ...


class Provider(Protocol):
    def generate_stream(self, messages: list[dict[str, str]], model: str | None = None) -> Iterable[str]:
        ...


@dataclass
class OpenAIProviderConfig:
    base_url: str
    api_key_env: str
    default_model: str
    temperature: float = 0.7
    max_tokens: int = 3000
    timeout_s: int = 60


class OpenAICompatibleProvider:
    def __init__(self, config: OpenAIProviderConfig) -> None:
        self._config = config

    def _get_api_key(self) -> str:
        api_key = os.getenv(self._config.api_key_env)
        if not api_key:
            raise ProviderError(f"API key is not configured (set the {self._config.api_key_env} environment variable)")
        return api_key

    def generate_stream(self, messages: list[dict[str, str]], model: str | None = None) -> Iterable[str]:
        url = f"{self._config.base_url.rstrip('/')}/chat/completions"
        payload = {
            "model": model or self._config.default_model,
            "messages": messages,
            "temperature": self._config.temperature,
            "max_tokens": self._config.max_tokens,
            "stream": True,
        }
        request = urllib.request.Request(
            url,
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self._get_api_key()}",
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self._config.timeout_s) as response:  # noqa: S310
                for raw_line in response:
                    line = raw_line.decode("utf-8").strip()
                    if not line.startswith("data:"):
                        continue
                    data = line.removeprefix("data:").strip()
                    if data == "[DONE]":
                        break
                    try:
                        chunk = json.loads(data)
                    except json.JSONDecodeError as exc:
                        raise ProviderError("Failed to decode model stream chunk") from exc
                    content = (chunk.get("choices") or [{}])[0].get("delta", {}).get("content")
                    if content:
                        yield content
        except urllib.error.HTTPError as exc:
            raise ProviderError(f"Model request failed: {exc}") from exc
        except urllib.error.URLError as exc:
            raise ProviderError(f"Model connection failed: {exc}") from exc


class MockProvider:
    def __init__(self, stream_chunks: Iterable[str], default_model: str = "mock-model") -> None:
        self.stream_chunks = list(stream_chunks)
        self.default_model = default_model
        self.calls: list[list[dict[str, str]]] = []

    def generate_stream(self, messages: list[dict[str, str]], model: str | None = None) -> Iterable[str]:
        del model
        self.calls.append(messages)
        yield from self.stream_chunks


def build_provider(provider_cfg: Mapping[str, Any], model: str | None = None) -> Provider:
    provider_type = provider_cfg.get("type")
    if provider_type == "openai_compatible":
        return OpenAICompatibleProvider(
            OpenAIProviderConfig(
                base_url=str(provider_cfg.get("base_url", "")),
                api_key_env=str(provider_cfg.get("api_key_env", "")),
                default_model=str(model or provider_cfg.get("model") or ""),
                temperature=float(provider_cfg.get("temperature", 0.7)),
                max_tokens=int(provider_cfg.get("max_tokens", 3000)),
                timeout_s=int(provider_cfg.get("timeout_s", 60)),
            )
        )
    if provider_type == "mock":
        chunks = provider_cfg.get("stream_chunks") or provider_cfg.get("response") or [""]
        if isinstance(chunks, str):
            chunks = [chunks]
        return MockProvider(stream_chunks=chunks, default_model=str(model or provider_cfg.get("model") or "mock-model"))
    raise ValueError(f"Unsupported provider type: {provider_type}")


def build_messages(request: Mapping[str, Any], system_prompt: str = SYSTEM_PROMPT) -> list[dict[str, str]]:
    """Lay out system prompt, current files, prior turns and the new message."""

    messages = [{"role": "system", "content": system_prompt}]
    files = [item for item in request.get("files") or [] if isinstance(item, Mapping)]
    if files:
        sections = [f"### {item.get('name')}\n```\n{item.get('content', '')}\n```" for item in files]
        messages.append({"role": "system", "content": "Current project files:\n\n" + "\n\n".join(sections)})
    for turn in request.get("context") or []:
        role = str(turn.get("role") or "")
        content = str(turn.get("content") or "")
        if role in {"user", "assistant"} and content:
            messages.append({"role": role, "content": content})
    messages.append({"role": "user", "content": str(request.get("message") or "")})
    return messages


class ProviderModelClient:
    """Adapt a streaming provider to the ``complete(request)`` collaborator contract."""

    def __init__(self, provider: Provider, model: str | None = None, system_prompt: str = SYSTEM_PROMPT) -> None:
        self.provider = provider
        self.model = model
        self.system_prompt = system_prompt

    def complete(self, request: Mapping[str, Any]) -> dict[str, str]:
        messages = build_messages(request, self.system_prompt)
        text = "".join(token for token in self.provider.generate_stream(messages, model=self.model))
        return {"response": text}
