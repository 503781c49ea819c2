"""Shared test doubles: in-memory database, scripted generator backends, counting section source."""

import asyncio
import json
from typing import Callable, List, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.database import Base
from database import models
from generation.llm_client import GeneratorBackend
from generation.schemas import PromptSpec, QuotaConfig
from generation.section_source import MarkdownSectionSource


MATERIAL_TEXT = """# Computer Networks

## Layered Architecture
The **OSI model** splits network communication into seven layers. Each layer offers
services to the layer above it and relies on the layer below, which keeps protocol
design modular and lets vendors replace one layer without touching the others.

## Transport Layer
The **transport layer** provides end to end delivery between processes. TCP adds
reliable ordered delivery with acknowledgements and retransmission, while UDP keeps
a lightweight connectionless service for applications that tolerate loss.

## Routing
**Routing** decides the path packets take across networks. Distance vector protocols
share tables with neighbours, while link state protocols flood topology information
so that every router can compute shortest paths with Dijkstra's algorithm.
"""


def make_session_factory():
    """Fresh in-memory SQLite database with every table created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def seed_material(db, content: str = MATERIAL_TEXT, unit: int = 1, code: str = "CS301"):
    course = models.Course(code=code, name="Computer Networks")
    db.add(course)
    db.flush()
    material = models.CourseMaterial(course_id=course.id, unit=unit, title="Networks notes", content=content)
    db.add(material)
    db.commit()
    db.refresh(course)
    db.refresh(material)
    return course, material


def make_quota(**overrides) -> QuotaConfig:
    data = {
        "difficulty": {"EASY": 2, "MEDIUM": 2, "HARD": 2},
        "bloom_level": {"REMEMBER": 2, "APPLY": 2, "ANALYZE": 2},
        "question_type": {"DIRECT": 4, "SCENARIO_BASED": 2},
    }
    data.update(overrides)
    return QuotaConfig.model_validate(data)


def well_formed_response(spec: PromptSpec) -> str:
    items = [
        {
            "question_text": f"Question {n + 1}: explain the idea.",
            "answer_text": f"Model answer {n + 1}.",
            "difficulty_level": "medium",
            "bloom_level": "understanding",
            "question_type": "direct",
            "marks": "8",
        }
        for n in range(spec.expected_count)
    ]
    return json.dumps({"questions": items})


class ScriptedBackend(GeneratorBackend):
    """Answers every prompt with responder(spec)."""

    name = "scripted"

    def __init__(self, responder: Callable[[PromptSpec], str] = well_formed_response):
        self.responder = responder
        self.calls: List[PromptSpec] = []

    async def complete(self, spec: PromptSpec) -> str:
        self.calls.append(spec)
        return self.responder(spec)


class SlowBackend(GeneratorBackend):
    """Never answers before the deadline; records whether it was cancelled."""

    name = "slow"

    def __init__(self, delay: float = 5.0):
        self.delay = delay
        self.cancelled = 0

    async def complete(self, spec: PromptSpec) -> str:
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        return well_formed_response(spec)


class FailingBackend(GeneratorBackend):
    name = "failing"

    async def complete(self, spec: PromptSpec) -> str:
        raise ConnectionError("backend unreachable")


class CountingSectionSource(MarkdownSectionSource):
    def __init__(self, sections: Optional[list] = None):
        self.calls = 0
        self._sections = sections

    def extract(self, material):
        self.calls += 1
        if self._sections is not None:
            return list(self._sections)
        return super().extract(material)
