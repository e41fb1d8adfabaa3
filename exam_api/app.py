"""Main FastAPI application."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from exam_api.config import LOG_LEVEL
from exam_api.database import init_db
from exam_api.logging_setup import setup_console_logging
from exam_api.routes import attempts, exams, series
from exam_api.services.ranking_service import schedule_rankings_refresh

setup_console_logging(LOG_LEVEL)

app = FastAPI(title="Exam Attempt API")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# Startup events
@app.on_event("startup")
def startup_events() -> None:
    """Initialize database and schedule the ranking refresh on startup."""
    init_db()
    schedule_rankings_refresh()


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


# Include routers
app.include_router(exams.router)
app.include_router(attempts.router)
app.include_router(series.router)
