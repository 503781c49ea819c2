"""
Section Source — extracted material text → ordered hierarchical sections.

The byte-level document parser lives outside this service; materials are
registered with their extracted text. MarkdownSectionSource is the default
implementation; any object with an extract(material) method can be passed
to the orchestrator instead.

Strategy:
1. Headings: markdown "#", numbered "2.3 Title", and "Unit III ..." lines open a section.
2. Topics: titles of the headings nested directly under a section.
3. Concepts: emphasised terms (**term**, __term__) inside the section body.
4. Headingless text falls back to fixed-size word windows.
"""

import logging
import re
from typing import List, Optional, Protocol

from generation.exceptions import ParseError
from generation.schemas import Section

log = logging.getLogger("generation.sections")

MIN_SECTION_WORDS = 12
FALLBACK_WINDOW_WORDS = 400
MIN_MATERIAL_WORDS = 20

MARKDOWN_HEADING = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
NUMBERED_HEADING = re.compile(r"^(\d+(?:\.\d+){1,3})[.)]?\s+([A-Z][^.!?]{2,80})$")
UNIT_HEADING = re.compile(r"^(Unit\s+[IVXLCDM0-9]+)\b[\s:.\-–]*(.*)$", re.I)
EMPHASIS = re.compile(r"\*\*([^*\n]{2,60})\*\*|__([^_\n]{2,60})__")


class SectionSource(Protocol):
    def extract(self, material) -> List[Section]:
        ...


def _heading(line: str) -> Optional[tuple]:
    """Return (level, title) when line is a heading."""
    m = MARKDOWN_HEADING.match(line)
    if m:
        return len(m.group(1)), m.group(2).strip()
    m = UNIT_HEADING.match(line)
    if m:
        title = m.group(1).strip()
        if m.group(2).strip():
            title = f"{title}: {m.group(2).strip()}"
        return 1, title
    m = NUMBERED_HEADING.match(line)
    if m:
        return m.group(1).count(".") + 1, m.group(2).strip()
    return None


def _concepts(text: str) -> List[str]:
    found = []
    for m in EMPHASIS.finditer(text):
        term = (m.group(1) or m.group(2)).strip()
        if term and term not in found:
            found.append(term)
    return found[:12]


def _strip_emphasis(text: str) -> str:
    return EMPHASIS.sub(lambda m: m.group(1) or m.group(2), text)


class MarkdownSectionSource:
    """Split a material's extracted text into Sections at headings."""

    def extract(self, material) -> List[Section]:
        text = (getattr(material, "content", None) or "").strip()
        if len(text.split()) < MIN_MATERIAL_WORDS:
            raise ParseError(
                f"Material {getattr(material, 'id', '?')} has insufficient extracted content"
            )

        raw = self._split(text)
        if not raw:
            raw = self._windows(text, getattr(material, "title", "") or "Material")

        sections = []
        for idx, item in enumerate(raw, start=1):
            body = item["body"].strip()
            if len(body.split()) < MIN_SECTION_WORDS:
                continue
            sections.append(Section(
                id=f"sec-{idx:03d}",
                title=item["title"],
                level=item["level"],
                content=_strip_emphasis(body),
                topics=item["topics"],
                concepts=_concepts(body),
            ))

        log.info(f"[SECTIONS] material={getattr(material, 'id', '?')}: {len(sections)} sections")
        return sections

    @staticmethod
    def _split(text: str) -> List[dict]:
        items: List[dict] = []
        current: Optional[dict] = None
        preamble = ""
        for line in text.splitlines():
            stripped = line.strip()
            heading = _heading(stripped) if stripped else None
            if heading is None:
                if current is not None:
                    current["body"] += line + "\n"
                else:
                    preamble += line + "\n"
                continue
            level, title = heading
            # nested headings become topics of the nearest shallower section
            for parent in reversed(items):
                if parent["level"] < level:
                    parent["topics"].append(title)
                    break
            current = {"title": title, "level": level, "body": "", "topics": []}
            items.append(current)
        if items and preamble.strip():
            items.insert(0, {"title": "Introduction", "level": 1, "body": preamble, "topics": []})
        return items

    @staticmethod
    def _windows(text: str, title: str) -> List[dict]:
        words = text.split()
        items = []
        for n, start in enumerate(range(0, len(words), FALLBACK_WINDOW_WORDS), start=1):
            chunk = " ".join(words[start:start + FALLBACK_WINDOW_WORDS])
            items.append({"title": f"{title} (part {n})", "level": 1, "body": chunk, "topics": []})
        return items
