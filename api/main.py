"""
api/main.py — FastAPI application entry point.

Run with:
    uvicorn api.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy import text

from api.endpoints.agent_routes import router as agent_router
from api.endpoints.lead_routes import router as lead_router
from api.endpoints.scoring_routes import router as scoring_router
from sdr_agent.config import settings
from sdr_agent.db.session import engine

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ─────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown logic."""
    # Verify DB is reachable on startup
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    logger.info("Database connection verified.")
    yield
    logger.info("Application shutting down.")


# ── App ───────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="AI SDR Agent",
    description=(
        "A conversational sales-development agent that scores leads against "
        "natural language criteria, moves them through the pipeline and drafts outreach."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


# ── Routers ──────────────────────────────────────────────────────────────────

app.include_router(agent_router, prefix="/agent", tags=["Agent"])
app.include_router(lead_router, prefix="/leads", tags=["Leads"])
app.include_router(scoring_router, prefix="/scoring", tags=["Scoring"])


# ── Health check ─────────────────────────────────────────────────────────────

@app.get("/health", tags=["System"])
def health_check():
    """Returns service liveness status."""
    return {"status": "ok", "service": "ai-sdr-agent"}


@app.get("/", tags=["System"])
def root():
    return {
        "message": "AI SDR Agent is running.",
        "docs": "/docs",
        "model": settings.llm_model,
    }
