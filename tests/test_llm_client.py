import asyncio
import os
import time
import unittest
from unittest.mock import patch

from generation.exceptions import GenerationTimeout
from generation.llm_client import (
    BACKENDS, OllamaBackend, OpenAIBackend, complete_with_deadline, register_backend, resolve_backend,
)
from generation.schemas import PromptSpec
from generation.settings import GenerationSettings

from fakes import ScriptedBackend, SlowBackend


def _spec() -> PromptSpec:
    return PromptSpec(system="sys", prompt="prompt", expected_count=1)


class DeadlineRaceTestCase(unittest.IsolatedAsyncioTestCase):
    async def test_fast_backend_wins(self) -> None:
        backend = ScriptedBackend(lambda spec: "raw text")
        self.assertEqual(await complete_with_deadline(backend, _spec(), 1.0), "raw text")

    async def test_timeout_raises_and_abandons_call(self) -> None:
        backend = SlowBackend(delay=5.0)
        started = time.monotonic()
        with self.assertRaises(GenerationTimeout):
            await complete_with_deadline(backend, _spec(), 0.05)
        self.assertLess(time.monotonic() - started, 2.0)
        await asyncio.sleep(0.01)
        self.assertEqual(backend.cancelled, 1)

    async def test_backend_errors_propagate(self) -> None:
        def boom(spec):
            raise ConnectionError("down")

        with self.assertRaises(ConnectionError):
            await complete_with_deadline(ScriptedBackend(boom), _spec(), 1.0)


class BackendRegistryTestCase(unittest.TestCase):
    def test_resolves_builtin_backends(self) -> None:
        self.assertIsInstance(resolve_backend(GenerationSettings(backend="openai")), OpenAIBackend)
        ollama = resolve_backend(GenerationSettings(backend="ollama"))
        self.assertIsInstance(ollama, OllamaBackend)
        self.assertEqual(ollama.model, "llama3.1:8b")

    def test_unknown_backend(self) -> None:
        with self.assertRaises(ValueError):
            resolve_backend(GenerationSettings(backend="carrier-pigeon"))

    def test_register_custom_backend(self) -> None:
        register_backend("scripted", lambda settings: ScriptedBackend())
        try:
            self.assertIsInstance(resolve_backend(GenerationSettings(backend="scripted")), ScriptedBackend)
        finally:
            BACKENDS.pop("scripted", None)

    def test_openai_backend_requires_key_only_when_called(self) -> None:
        backend = OpenAIBackend(GenerationSettings(backend="openai", openai_api_key=None))
        with self.assertRaises(RuntimeError):
            backend._get_client()


class GenerationSettingsTestCase(unittest.TestCase):
    def test_from_env(self) -> None:
        env = {
            "GENERATOR_BACKEND": "Ollama",
            "GENERATOR_MODEL": "mistral",
            "GENERATION_TIMEOUT_SEC": "12.5",
            "GENERATION_BATCH_CEILING": "3",
            "GENERATION_SECTION_PASSES": "2",
            "GENERATION_MAX_PARALLEL": "1",
        }
        with patch.dict(os.environ, env):
            settings = GenerationSettings.from_env()
        self.assertEqual(settings.backend, "ollama")
        self.assertEqual(settings.resolved_model, "mistral")
        self.assertEqual(settings.request_timeout_sec, 12.5)
        self.assertEqual(settings.batch_ceiling, 3)
        self.assertEqual(settings.passes, 2)
        self.assertEqual(settings.max_parallel_requests, 1)

    def test_default_model_per_backend(self) -> None:
        self.assertEqual(GenerationSettings().resolved_model, "gpt-4o-mini")


if __name__ == "__main__":
    unittest.main()
