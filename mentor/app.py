from datetime import datetime, timezone
from fastapi import FastAPI
from fastapi.requests import Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import json
import statsd
import time

from mentor.config import Settings
from mentor.errors import MentorError, InvalidInput
from mentor.gateway import ReasoningGateway
from mentor.log import get_logger
from mentor.models import AnalysisRecord, ChatRecord
from mentor.orchestrator import SessionOrchestrator
from mentor.stores import SessionStore, AnalysisStore, make_engine

logger = get_logger(__name__)


async def read_body(req: Request) -> dict:
    try:
        body = await req.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidInput("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object")
    return body


def code_field(body: dict) -> str:
    code = body.get("code")
    if not isinstance(code, str):
        raise InvalidInput("Code is required")
    return code


def serialize_analysis(record: AnalysisRecord) -> dict:
    result = record.analysis_result
    return {
        "id": record.id,
        "language": result.get("language", record.language),
        "confidence": result.get("confidence"),
        "overview": result.get("overview"),
        "issues": result.get("issues", []),
        "optimizations": result.get("optimizations", []),
        "metrics": result.get("metrics"),
    }


def serialize_chat_record(record: ChatRecord) -> dict:
    created_at = datetime.fromtimestamp(record.timestamp / 1000, tz=timezone.utc)
    return {
        "id": record.id,
        "role": record.role,
        "content": record.content,
        "createdAt": created_at.isoformat(),
    }


def create_app(settings: Settings, gateway: ReasoningGateway = None, engine=None, metrics: statsd.StatsClient = None) -> FastAPI:
    metrics = metrics or statsd.StatsClient(host=settings.graphite_host, port=settings.graphite_port, prefix=settings.metrics_prefix)
    engine = engine or make_engine(settings.database_url)
    gateway = gateway or ReasoningGateway(settings, metrics)

    orchestrator = SessionOrchestrator(
        gateway=gateway,
        sessions=SessionStore(engine),
        analyses=AnalysisStore(engine),
        metrics=metrics,
    )

    app = FastAPI(title="Code Mentor")
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"]
    )

    @app.exception_handler(MentorError)
    async def _mentor_error(req: Request, exc: MentorError):
        metrics.incr(f"errors.http.{exc.status_code}")
        if exc.status_code >= 500:
            logger.error("request_failed", path=req.url.path, error_type=type(exc).__name__, error=exc.message)
        else:
            logger.warning("request_rejected", path=req.url.path, error_type=type(exc).__name__, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.get("/api/health")
    async def _health():
        return {"status": "ok"}

    @app.post("/api/analyze")
    async def _analyze_code(req: Request):
        metrics.incr("analyze")
        start_time = time.time()
        body = await read_body(req)

        language = body.get("language")
        record = await orchestrator.handle_analysis_request(code_field(body), language if isinstance(language, str) else None)

        metrics.timing("analyze.timed", (time.time() - start_time) * 1000)
        return serialize_analysis(record)

    @app.get("/api/analysis/{analysis_id}")
    async def _get_analysis(analysis_id: int):
        record = await orchestrator.get_analysis(analysis_id)
        return serialize_analysis(record)

    @app.post("/api/detect-language")
    async def _detect_language(req: Request):
        metrics.incr("detect_language")
        body = await read_body(req)

        guess = await orchestrator.detect_language(code_field(body))
        return guess.model_dump()

    @app.post("/api/chat/new-session")
    async def _new_session():
        return {"sessionId": orchestrator.create_session()}

    @app.post("/api/chat")
    async def _chat(req: Request):
        metrics.incr("chat")
        start_time = time.time()
        body = await read_body(req)

        session_id = body.get("sessionId")
        message = body.get("message")
        if not isinstance(session_id, str) or not isinstance(message, str):
            raise InvalidInput("Session ID and message are required")

        context = body.get("context")
        code_context = context.get("code") if isinstance(context, dict) else None
        if not isinstance(code_context, str):
            code_context = None

        response = await orchestrator.handle_chat_turn(session_id, message, code_context)

        metrics.timing("chat.timed", (time.time() - start_time) * 1000)
        return {"response": response, "sessionId": session_id}

    @app.get("/api/chat/{session_id}")
    async def _chat_history(session_id: str):
        records = await orchestrator.history(session_id)
        return [serialize_chat_record(record) for record in records]

    return app
