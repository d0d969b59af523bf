"""
Panel Interviewer - FastAPI Backend

Exposes the panel interview core:
- Multi-persona interviewer panel (Technical, HR, Business)
- Phase-driven turn taking
- ChromaDB knowledge retrieval for question grounding
- Point-by-point answer comparison
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from . import __version__
from .interview.state import SessionRegistry
from .llm.client import llm_client
from .memory.bootstrap import knowledge_bootstrapper
from .memory.importer import knowledge_importer
from .memory.vector_db import knowledge_store
from .models.errors import (
    ConfigurationError,
    GenerationError,
    ParseError,
    RetrievalError,
    SessionNotFound,
    StateError,
)
from .models.schemas import (
    AnswerRequest,
    AnswerResponse,
    BootstrapResult,
    CompareRequest,
    ComparisonResult,
    ConversationTurn,
    InterviewPhase,
    InterviewProgress,
    KnowledgeImportResult,
    KnowledgeStatus,
    QuestionResponse,
    StartSessionRequest,
    StartSessionResponse,
)
from .utils.config import config

logging.basicConfig(level=config.log_level)
logger = logging.getLogger(__name__)

# ================================================================
# FastAPI App Initialization
# ================================================================

app = FastAPI(
    title="Panel Interviewer API",
    description="Multi-persona interview orchestration with knowledge retrieval",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ================================================================
# Session Registry
# ================================================================

# Lazy creation so importing the app does not touch external services
_registry: Optional[SessionRegistry] = None


def get_registry() -> SessionRegistry:
    """Get the process-wide session registry."""
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry


def get_llm():
    return llm_client


def get_importer():
    return knowledge_importer


def get_store():
    return knowledge_store


def get_bootstrapper():
    return knowledge_bootstrapper


# ================================================================
# Error Mapping
# ================================================================

@app.exception_handler(StateError)
async def state_error_handler(request: Request, exc: StateError):
    return JSONResponse(status_code=409, content={"error": exc.kind.value, "detail": str(exc)})


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, exc: GenerationError):
    logger.error(f"Generation failed on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"error": "generation_failed", "detail": str(exc)})


@app.exception_handler(ParseError)
async def parse_error_handler(request: Request, exc: ParseError):
    return JSONResponse(status_code=422, content={"error": "unparseable_output", "detail": str(exc)})


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Configuration error: {exc}")
    return JSONResponse(status_code=500, content={"error": "configuration", "detail": str(exc)})


@app.exception_handler(RetrievalError)
async def retrieval_error_handler(request: Request, exc: RetrievalError):
    logger.error(f"Knowledge store failure on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"error": "knowledge_store_unavailable", "detail": str(exc)})


@app.exception_handler(SessionNotFound)
async def session_not_found_handler(request: Request, exc: SessionNotFound):
    return JSONResponse(status_code=404, content={"error": "session_not_found", "detail": f"Unknown session {exc.args[0]}"})


# ================================================================
# API Endpoints
# ================================================================

@app.get("/")
def root(store=Depends(get_store)):
    """Health check endpoint."""
    return {
        "status": "running",
        "version": __version__,
        "service": "Panel Interviewer",
        "knowledge_stats": store.get_stats(),
    }


@app.get("/health/llm")
def llm_health(llm=Depends(get_llm)):
    """Check that the generation service answers."""
    return {"llm_available": llm.health_check()}


@app.post("/sessions", response_model=StartSessionResponse)
def start_session(request: StartSessionRequest, registry: SessionRegistry = Depends(get_registry)):
    """Start a new interview session."""
    session_id = registry.start_session(request.resume, request.job_description)
    return StartSessionResponse(
        session_id=session_id,
        phase=registry.progress(session_id).current_phase,
        phases=InterviewPhase.get_order(),
    )


@app.post("/sessions/{session_id}/question", response_model=QuestionResponse)
def next_question(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    """Generate the next question from the scheduled interviewer."""
    return registry.next_question(session_id)


@app.post("/sessions/{session_id}/question/stream")
def stream_question(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    """
    Stream the next question as plain text.
    The turn opens once the stream has been fully delivered. Failures to
    start generation are reported with an error status before any output.
    """
    agent, fragments = registry.stream_question(session_id)
    # Releases the session if the client goes away before the stream is drained
    cleanup = BackgroundTasks()
    cleanup.add_task(fragments.close)
    headers = {
        "X-Interviewer-Role": agent.role().value,
        "X-Interviewer-Name": agent.display_name(),
        "X-Interview-Phase": registry.progress(session_id).current_phase.value,
    }
    return StreamingResponse(
        fragments, media_type="text/plain; charset=utf-8", headers=headers, background=cleanup
    )


@app.post("/sessions/{session_id}/answer", response_model=AnswerResponse)
def submit_answer(
    session_id: str,
    request: AnswerRequest,
    retry_degraded: Optional[bool] = Query(None),
    registry: SessionRegistry = Depends(get_registry),
):
    """Grade the candidate's answer to the open question."""
    return registry.submit_answer(session_id, request.answer_text, retry_degraded=retry_degraded)


@app.get("/sessions/{session_id}/progress", response_model=InterviewProgress)
def get_progress(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    """Current phase and question counters."""
    return registry.progress(session_id)


@app.get("/sessions/{session_id}/history", response_model=List[ConversationTurn])
def get_history(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    """Full conversation history, oldest first."""
    return registry.history(session_id)


@app.get("/sessions/{session_id}")
def get_status(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> Dict[str, Any]:
    """Session status summary."""
    return registry.get(session_id).get_status()


@app.delete("/sessions/{session_id}")
def end_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    """End a session; pending generation results for it are discarded."""
    session = registry.end_session(session_id)
    return {"status": "Session ended", **session.get_status()}


@app.post("/compare", response_model=ComparisonResult)
def compare_answer(request: CompareRequest, registry: SessionRegistry = Depends(get_registry)):
    """Point-by-point comparison of a candidate answer with a reference answer."""
    return registry.compare_answer(request.question, request.candidate_answer, request.reference_answer)


@app.post("/knowledge/import", response_model=KnowledgeImportResult)
def import_knowledge(
    items: List[Dict[str, Any]],
    rebuild: bool = Query(False),
    importer=Depends(get_importer),
):
    """
    Import knowledge items ({content_type, content, metadata}).
    With rebuild=true the index is replaced atomically.
    """
    if not items:
        raise HTTPException(status_code=400, detail="No knowledge items supplied")
    parsed, errors = importer.parse_items(items)
    return importer.store_items(parsed, errors, rebuild=rebuild)


@app.get("/knowledge/stats")
def knowledge_stats(store=Depends(get_store)):
    """Knowledge base statistics."""
    return store.get_stats()


@app.get("/knowledge/status", response_model=KnowledgeStatus)
def knowledge_status(bootstrapper=Depends(get_bootstrapper)):
    """Whether the knowledge base needs seeding."""
    return bootstrapper.get_status()


@app.post("/knowledge/bootstrap", response_model=BootstrapResult)
def bootstrap_knowledge(
    generate: bool = Query(True),
    force: bool = Query(False),
    bootstrapper=Depends(get_bootstrapper),
):
    """
    Seed the knowledge base with job description templates.
    With generate=true a question bank and reference answers are generated per
    template; an already populated base is left alone unless force=true.
    """
    return bootstrapper.bootstrap(generate=generate, force=force)


# ================================================================
# Main Entry Point
# ================================================================

def run():
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
