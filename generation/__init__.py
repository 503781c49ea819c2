"""
Question Bank Generation Pipeline
generation/

Steps:
1. Section Source      — material text → ordered hierarchical sections (parsed once, cached)
2. Quota Planner       — quota axes + sections → ordered GenerationRequests
3. Prompt Builder      — request → backend-neutral PromptSpec
4. Generator Adapter   — hosted/local backend, raced against a hard deadline
5. Response Validator  — raw text → canonical CandidateQuestions (synonym tables)
6. Fallback Policy     — placeholders with the request's axes when nothing usable came back
7. Job Orchestrator    — drives 1-6, persists questions, reaches COMPLETED or FAILED once
"""
