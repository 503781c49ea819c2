"""
Generator Adapter — backend capability + registry + deadline race.

Backends:
  - "openai"  hosted model via the OpenAI Chat Completions API
  - "ollama"  local model via the Ollama HTTP API (/api/generate)

Each backend exposes one operation, complete(PromptSpec) -> raw text.
The registry is resolved once, when the orchestrator is built.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional

import httpx
from openai import AsyncOpenAI

from generation.exceptions import GenerationTimeout
from generation.schemas import PromptSpec
from generation.settings import GenerationSettings

log = logging.getLogger("generation.adapter")


class GeneratorBackend:
    """Capability interface: turn a prompt contract into raw generator text."""

    name = "base"

    async def complete(self, spec: PromptSpec) -> str:
        raise NotImplementedError


# ─── Hosted model ──────────────────────────────────────────────────────────────

class OpenAIBackend(GeneratorBackend):
    name = "openai"

    def __init__(self, settings: GenerationSettings):
        self.model = settings.resolved_model
        self._api_key = settings.openai_api_key
        self._client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise RuntimeError(
                    "OPENAI_API_KEY is not set. Add it to your .env file."
                )
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def complete(self, spec: PromptSpec) -> str:
        client = self._get_client()
        kwargs = {}
        if spec.json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        response = await client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": spec.system},
                {"role": "user", "content": spec.prompt},
            ],
            temperature=spec.temperature,
            max_tokens=spec.max_tokens,
            **kwargs,
        )
        return response.choices[0].message.content or ""


# ─── Local model ───────────────────────────────────────────────────────────────

class OllamaBackend(GeneratorBackend):
    name = "ollama"

    def __init__(self, settings: GenerationSettings):
        self.model = settings.resolved_model
        self.base_url = settings.ollama_base_url.rstrip("/")
        # the orchestrator's deadline is the real bound; this only guards a hung socket
        self._http_timeout = settings.request_timeout_sec + 5.0

    async def complete(self, spec: PromptSpec) -> str:
        payload = {
            "model": self.model,
            "prompt": spec.prompt,
            "system": spec.system,
            "stream": False,
            "options": {
                "temperature": spec.temperature,
                "num_predict": spec.max_tokens,
            },
        }
        if spec.json_mode:
            payload["format"] = "json"
        async with httpx.AsyncClient(timeout=self._http_timeout) as client:
            response = await client.post(f"{self.base_url}/api/generate", json=payload)
            response.raise_for_status()
            return response.json().get("response", "")


# ─── Registry ──────────────────────────────────────────────────────────────────

BACKENDS: Dict[str, Callable[[GenerationSettings], GeneratorBackend]] = {
    OpenAIBackend.name: OpenAIBackend,
    OllamaBackend.name: OllamaBackend,
}


def register_backend(name: str, factory: Callable[[GenerationSettings], GeneratorBackend]) -> None:
    BACKENDS[name.lower()] = factory


def resolve_backend(settings: GenerationSettings) -> GeneratorBackend:
    """Build the backend named by settings.backend."""
    factory = BACKENDS.get(settings.backend.lower())
    if factory is None:
        raise ValueError(
            f"Unknown generator backend '{settings.backend}'. Available: {sorted(BACKENDS)}"
        )
    backend = factory(settings)
    log.info(f"[ADAPTER] backend={settings.backend} model={settings.resolved_model}")
    return backend


# ─── Deadline race ─────────────────────────────────────────────────────────────

def _discard_late_result(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log.debug(f"[ADAPTER] abandoned call finished with {exc!r}")


async def complete_with_deadline(
    backend: GeneratorBackend,
    spec: PromptSpec,
    timeout_sec: float,
) -> str:
    """
    Race backend.complete(spec) against a fixed deadline.

    The first to finish wins. On timeout the call is cancelled and no longer
    observed, so a late result can never reach the caller.

    Raises:
        GenerationTimeout: the deadline passed first
    """
    task = asyncio.ensure_future(backend.complete(spec))
    done, _ = await asyncio.wait({task}, timeout=timeout_sec)
    if task in done:
        return task.result()
    task.add_done_callback(_discard_late_result)
    task.cancel()
    raise GenerationTimeout(f"{backend.name} did not respond within {timeout_sec:.1f}s")
