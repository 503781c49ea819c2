"""
Generation configuration.

Built once at start-up (GenerationSettings.from_env()) and passed into
the JobOrchestrator; nothing in the pipeline reads os.environ directly.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "ollama": "llama3.1:8b",
}


class GenerationSettings(BaseModel):
    backend: str = "openai"
    model: Optional[str] = None
    openai_api_key: Optional[str] = None
    ollama_base_url: str = "http://localhost:11434"

    request_timeout_sec: float = Field(30.0, gt=0)
    batch_ceiling: int = Field(5, ge=1)
    passes: int = Field(1, ge=1)
    max_parallel_requests: int = Field(3, ge=1)

    temperature: float = 0.5
    max_tokens: int = 4096
    context_char_limit: int = 6000
    enforce_request_axes: bool = True

    @property
    def resolved_model(self) -> str:
        return self.model or DEFAULT_MODELS.get(self.backend, DEFAULT_MODELS["openai"])

    @classmethod
    def from_env(cls) -> "GenerationSettings":
        return cls(
            backend=os.getenv("GENERATOR_BACKEND", "openai").strip().lower(),
            model=os.getenv("GENERATOR_MODEL") or None,
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434"),
            request_timeout_sec=float(os.getenv("GENERATION_TIMEOUT_SEC", "30")),
            batch_ceiling=int(os.getenv("GENERATION_BATCH_CEILING", "5")),
            passes=int(os.getenv("GENERATION_SECTION_PASSES", "1")),
            max_parallel_requests=int(os.getenv("GENERATION_MAX_PARALLEL", "3")),
            temperature=float(os.getenv("GENERATION_TEMPERATURE", "0.5")),
            max_tokens=int(os.getenv("GENERATION_MAX_TOKENS", "4096")),
        )
