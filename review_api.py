"""
Question Bank Review API — Main Application
FastAPI application for exam question bank generation and review.
Manages courses and materials, quota-driven question generation jobs,
the role-gated question / paper pattern approval chains, and review statistics.
"""

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from database.database import engine, Base
from database import models  # noqa: F401  (registers tables on Base)
from generation.orchestrator import JobOrchestrator
from generation.settings import GenerationSettings

from routers import courses, generation, questions, patterns, statistics

logging.basicConfig(level=logging.INFO, format="%(asctime)s  %(levelname)s  %(message)s")
log = logging.getLogger("review_api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create tables + build the job orchestrator from the environment."""
    Base.metadata.create_all(bind=engine)
    if getattr(app.state, "orchestrator", None) is None:
        settings = GenerationSettings.from_env()
        app.state.orchestrator = JobOrchestrator(settings)
        log.info(
            f"✓ Generator backend: {settings.backend} ({settings.resolved_model}), "
            f"timeout={settings.request_timeout_sec}s, batch ceiling={settings.batch_ceiling}"
        )
    yield


app = FastAPI(
    title="Question Bank Review API",
    description="Quota-driven exam question generation with multi-stage coordinator review",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ─── Routers ───────────────────────────────────────────────────────────────────

app.include_router(courses.router)        # /courses, /materials
app.include_router(generation.router)     # /generation/jobs
app.include_router(questions.router)      # /questions
app.include_router(patterns.router)       # /patterns
app.include_router(statistics.router)     # /statistics


@app.get("/")
def root():
    return {
        "name": "Question Bank Review API",
        "version": "1.0.0",
        "endpoints": {
            "docs": "/docs",
            "courses": "/courses",
            "materials": "/materials",
            "generation": "/generation/jobs",
            "questions": "/questions",
            "patterns": "/patterns",
            "statistics": "/statistics/courses/{course_id}",
        },
    }


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "question-bank-review-api"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
