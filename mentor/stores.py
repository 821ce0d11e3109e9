from typing import List, Optional
import time

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine, SQLModel, Session, select

from mentor.errors import StorageError
from mentor.log import get_logger
from mentor.models import ChatRecord, AnalysisRecord

logger = get_logger(__name__)


def get_time_millis():
    return round(time.time() * 1000)


def make_engine(database_url: str):
    kwargs = {}
    if database_url.startswith("sqlite"):
        # store calls run in the threadpool, so the connection hops threads
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, **kwargs)

    # create all tables
    SQLModel.metadata.create_all(engine)
    return engine


class SessionStore:
    """Append-only chat transcripts keyed by session id."""

    def __init__(self, engine):
        self.engine = engine

    def append(self, session_id: str, role: str, content: str, model: Optional[str] = None) -> ChatRecord:
        record = ChatRecord(
            session_id=session_id,
            model=model,
            role=role,
            content=content,
            timestamp=get_time_millis(),
        )
        try:
            with Session(self.engine) as session:
                session.add(record)
                session.commit()
                session.refresh(record)
        except SQLAlchemyError as e:
            logger.error("chat_record_append_failed", session_id=session_id, role=role, error=str(e))
            raise StorageError(f"Failed to store chat message: {e}") from e
        return record

    def list(self, session_id: str) -> List[ChatRecord]:
        # ties on the millisecond fall back to insertion order
        try:
            with Session(self.engine) as session:
                return list(session.exec(
                    select(ChatRecord)
                    .where(ChatRecord.session_id == session_id)
                    .order_by(ChatRecord.timestamp, ChatRecord.id)
                ).all())
        except SQLAlchemyError as e:
            logger.error("chat_history_load_failed", session_id=session_id, error=str(e))
            raise StorageError(f"Failed to load chat history: {e}") from e


class AnalysisStore:
    def __init__(self, engine):
        self.engine = engine

    def put(self, code: str, language: Optional[str], analysis_result: dict) -> AnalysisRecord:
        record = AnalysisRecord(
            code=code,
            language=language,
            analysis_result=analysis_result,
            timestamp=get_time_millis(),
        )
        try:
            with Session(self.engine) as session:
                session.add(record)
                session.commit()
                session.refresh(record)
        except SQLAlchemyError as e:
            logger.error("analysis_record_put_failed", error=str(e))
            raise StorageError(f"Failed to store code analysis: {e}") from e
        return record

    def get(self, analysis_id: int) -> Optional[AnalysisRecord]:
        try:
            with Session(self.engine) as session:
                return session.get(AnalysisRecord, analysis_id)
        except SQLAlchemyError as e:
            logger.error("analysis_record_get_failed", analysis_id=analysis_id, error=str(e))
            raise StorageError(f"Failed to load code analysis: {e}") from e
