import pytest
from sqlmodel import SQLModel

from mentor.errors import StorageError
from mentor.models import CodeAnalysis
from mentor.stores import SessionStore

from conftest import SAMPLE_ANALYSIS


def test_sequential_appends_keep_call_order(session_store):
    session_store.append("s1", "user", "first")
    session_store.append("s1", "assistant", "second")
    session_store.append("s1", "user", "third")

    records = session_store.list("s1")

    assert [r.content for r in records] == ["first", "second", "third"]
    assert [r.timestamp for r in records] == sorted(r.timestamp for r in records)


def test_sessions_are_isolated(session_store):
    session_store.append("a", "user", "for a")
    session_store.append("b", "user", "for b")

    assert [r.content for r in session_store.list("a")] == ["for a"]
    assert [r.content for r in session_store.list("b")] == ["for b"]


def test_unknown_session_has_no_turns(session_store):
    assert session_store.list("nope") == []


def test_append_returns_stored_record(session_store):
    record = session_store.append("s1", "user", "hello", model="test-model")

    assert record.id is not None
    assert record.session_id == "s1"
    assert record.model == "test-model"


def test_analysis_round_trip_is_lossless(analysis_store):
    analysis = CodeAnalysis.model_validate(SAMPLE_ANALYSIS)

    stored = analysis_store.put("def f(): pass", analysis.language, analysis.model_dump())
    fetched = analysis_store.get(stored.id)

    assert fetched.code == "def f(): pass"
    assert fetched.language == "python"
    again = CodeAnalysis.model_validate(fetched.analysis_result)
    assert again.issues == analysis.issues
    assert again.optimizations == analysis.optimizations
    assert again.metrics == analysis.metrics


def test_missing_analysis_is_none(analysis_store):
    assert analysis_store.get(12345) is None


def test_database_failure_is_a_storage_error(engine):
    store = SessionStore(engine)
    SQLModel.metadata.drop_all(engine)

    with pytest.raises(StorageError):
        store.list("s1")
    with pytest.raises(StorageError):
        store.append("s1", "user", "hello")
