from contextlib import asynccontextmanager
from typing import Dict, List, Optional
import asyncio
import uuid

from fastapi.concurrency import run_in_threadpool
import statsd

from mentor.errors import InvalidInput, NotFound
from mentor.gateway import ReasoningGateway
from mentor.log import get_logger
from mentor.models import AnalysisRecord, ChatRecord, ChatTurn, LanguageGuess
from mentor.stores import SessionStore, AnalysisStore

logger = get_logger(__name__)


def build_code_context(code: str) -> ChatTurn:
    return ChatTurn(
        role="system",
        content=f"The user is currently working with this code:\n\n{code}\n\nUse this context when answering their questions.",
    )


class SessionOrchestrator:
    """Sequences analysis requests and chat turns against the gateway and the stores.

    Chat turns for the same session are serialized with a per-session lock held for
    the whole turn, so each turn sees the reply to the one before it and the
    transcript never interleaves.
    """

    def __init__(self, gateway: ReasoningGateway, sessions: SessionStore, analyses: AnalysisStore, metrics: statsd.StatsClient):
        self.gateway = gateway
        self.sessions = sessions
        self.analyses = analyses
        self.metrics = metrics
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _session_lock(self, session_id: str):
        # the entry lives only while a turn holds or waits on it
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[session_id] -= 1
            if not self._lock_users[session_id]:
                del self._lock_users[session_id]
                del self._locks[session_id]

    def create_session(self) -> str:
        session_id = uuid.uuid4().hex
        self.metrics.incr("start_session")
        logger.info("session_created", session_id=session_id)
        return session_id

    async def handle_chat_turn(self, session_id: str, user_text: str, code_context: Optional[str] = None) -> str:
        if not session_id or not session_id.strip() or not user_text or not user_text.strip():
            raise InvalidInput("Session ID and message are required")

        async with self._session_lock(session_id):
            previous = await run_in_threadpool(self.sessions.list, session_id)

            turns: List[ChatTurn] = []
            if code_context:
                turns.append(build_code_context(code_context))
            turns += [ChatTurn(role=record.role, content=record.content) for record in previous]
            turns.append(ChatTurn(role="user", content=user_text))

            # nothing is stored unless the reasoning service answers
            reply = await self.gateway.converse(turns)

            model = self.gateway.model_version
            await run_in_threadpool(self.sessions.append, session_id, "user", user_text, model)
            await run_in_threadpool(self.sessions.append, session_id, "assistant", reply, model)

        self.metrics.incr("continue_session" if previous else "first_turn")
        logger.info("chat_turn_completed", session_id=session_id, prior_turns=len(previous), with_code=bool(code_context))
        return reply

    async def handle_analysis_request(self, code: str, language_hint: Optional[str] = None) -> AnalysisRecord:
        # the hint is accepted for API compatibility; the stored language is the detected one
        if not code or not code.strip():
            raise InvalidInput("Code is required")

        analysis = await self.gateway.analyze(code)
        record = await run_in_threadpool(self.analyses.put, code, analysis.language, analysis.model_dump())

        logger.info(
            "analysis_stored",
            analysis_id=record.id,
            language=analysis.language,
            language_hint=language_hint,
            issues=len(analysis.issues),
        )
        return record

    async def detect_language(self, code: str) -> LanguageGuess:
        if not code or not code.strip():
            raise InvalidInput("Code is required")
        return await self.gateway.detect_language(code)

    async def history(self, session_id: str) -> List[ChatRecord]:
        return await run_in_threadpool(self.sessions.list, session_id)

    async def get_analysis(self, analysis_id: int) -> AnalysisRecord:
        record = await run_in_threadpool(self.analyses.get, analysis_id)
        if record is None:
            raise NotFound(f"Analysis {analysis_id} not found")
        return record
