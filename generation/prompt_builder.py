"""
Step 3 — Prompt Builder

Turns one GenerationRequest (section + axis combination + count) into a
backend-neutral PromptSpec. The answer-length guidance scales with marks
so that 16-mark questions get long model answers and 2-mark ones stay short.
"""

from database.models import Marks
from generation.schemas import GenerationRequest, PromptSpec
from generation.settings import GenerationSettings


SYSTEM_PROMPT = (
    "You are an expert university exam question setter. "
    "Output only valid JSON, no markdown, no explanation."
)


# ─── Question Generation Prompt ────────────────────────────────────────────────

QUESTION_PROMPT = """Generate exactly {count} exam question(s) from the course material section below.

SPECIFICATIONS:
- Difficulty: {difficulty}
- Bloom's Level: {bloom_level}
- Question Type: {question_type}
- Marks: {marks_points}
- Section: {section_title}
- Topics: {topics}
- Key Concepts: {concepts}

CONTEXT (use ONLY information from this section; do NOT copy text verbatim):
---
{context_text}
---

OUTPUT FORMAT — respond with ONLY a valid JSON object:
{{
  "questions": [
    {{
      "question_text": "<complete, self-contained question>",
      "answer_text": "<model answer, length proportional to marks>",
      "difficulty_level": "{difficulty}",
      "bloom_level": "{bloom_level}",
      "question_type": "{question_type}",
      "marks": "{marks}",
      "topic": "<topic from the section this question tests>",
      "bloom_justification": "<one sentence on why the question is {bloom_level}>"
    }}
  ]
}}

RULES:
1. Return exactly {count} item(s) in "questions"
2. Every item MUST have both question_text and answer_text
3. Do NOT start with "According to the passage" or "Based on the text"
4. {type_rule}
5. Answer length: {length_rule}
"""


TYPE_RULES = {
    "DIRECT": "Ask directly about a definition, fact, or procedure from the section",
    "INDIRECT": "Require the student to infer or connect ideas rather than recall them",
    "SCENARIO_BASED": "Open with a short realistic scenario and ask about it",
    "PROBLEM_BASED": "Pose a problem the student must solve step by step",
}

LENGTH_RULES = {
    Marks.TWO: "2-4 sentences (50-80 words)",
    Marks.EIGHT: "3-4 paragraphs (300-400 words) with examples",
    Marks.SIXTEEN: "5-7 paragraphs (600-800 words) with structured sub-parts",
}


def _max_tokens(request: GenerationRequest, ceiling: int) -> int:
    """Scale the token budget with marks and item count."""
    per_item = {Marks.TWO: 250, Marks.EIGHT: 700, Marks.SIXTEEN: 1300}[request.marks]
    return min(ceiling, 200 + per_item * request.count)


def build_prompt(request: GenerationRequest, settings: GenerationSettings) -> PromptSpec:
    section = request.section
    prompt = QUESTION_PROMPT.format(
        count=request.count,
        difficulty=request.difficulty.value,
        bloom_level=request.bloom_level.value,
        question_type=request.question_type.value,
        marks=request.marks.value,
        marks_points=request.marks.points,
        section_title=section.title,
        topics=", ".join(section.topics) or "—",
        concepts=", ".join(section.concepts) or "—",
        context_text=section.content[:settings.context_char_limit],
        type_rule=TYPE_RULES[request.question_type.value],
        length_rule=LENGTH_RULES[request.marks],
    )
    return PromptSpec(
        system=SYSTEM_PROMPT,
        prompt=prompt,
        expected_count=request.count,
        temperature=settings.temperature,
        max_tokens=_max_tokens(request, settings.max_tokens),
    )
