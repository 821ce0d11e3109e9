import asyncio
import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from mentor.config import Settings
from mentor.gateway import ReasoningGateway
from mentor.orchestrator import SessionOrchestrator
from mentor.stores import SessionStore, AnalysisStore, make_engine

COMPLETIONS_URL = "https://api.example.test/v1/chat/completions"

SAMPLE_ANALYSIS = {
    "language": "python",
    "confidence": 97,
    "overview": "A small helper that sums a list in a loop.",
    "issues": [
        {
            "type": "performance",
            "severity": "low",
            "title": "Manual summation",
            "description": "The loop re-implements sum().",
            "suggestion": "Use the built-in sum().",
            "line": 3,
        },
        {
            "type": "style",
            "severity": "medium",
            "title": "Unclear name",
            "description": "The function name does not say what it returns.",
            "suggestion": "Rename it to total().",
            "line": None,
        },
    ],
    "optimizations": [
        {"title": "Use sum()", "description": "Replace the loop.", "impact": "Shorter and faster"},
    ],
    "metrics": {"qualityScore": 72, "complexity": "low", "maintainability": 80},
}


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def status_error(status: int):
    response = httpx.Response(status, request=httpx.Request("POST", COMPLETIONS_URL))
    return openai.APIStatusError(f"Error code: {status}", response=response, body=None)


class FakeCompletions:
    """Stands in for client.chat.completions; replies are consumed in order."""

    def __init__(self, replies=None, delay: float = 0):
        self.replies = list(replies or [])
        self.calls = []
        self.delay = delay

    def queue(self, *replies):
        self.replies.extend(replies)

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(kwargs)
        if isinstance(reply, str):
            return completion(reply)
        return reply


class FakeClient:
    def __init__(self, completions: FakeCompletions):
        self.chat = SimpleNamespace(completions=completions)


class FakeMetrics:
    def __init__(self):
        self.counters = []
        self.timings = []

    def incr(self, stat, count=1, rate=1):
        self.counters.append(stat)

    def timing(self, stat, delta, rate=1):
        self.timings.append(stat)


@pytest.fixture
def settings():
    return Settings(api_key="test-key", base_url="https://api.example.test/v1", model="test-model", request_timeout=5)


@pytest.fixture
def metrics():
    return FakeMetrics()


@pytest.fixture
def completions():
    return FakeCompletions()


@pytest.fixture
def gateway(settings, metrics, completions):
    return ReasoningGateway(settings, metrics, client=FakeClient(completions))


@pytest.fixture
def engine():
    return make_engine("sqlite://")


@pytest.fixture
def session_store(engine):
    return SessionStore(engine)


@pytest.fixture
def analysis_store(engine):
    return AnalysisStore(engine)


@pytest.fixture
def orchestrator(gateway, session_store, analysis_store, metrics):
    return SessionOrchestrator(gateway=gateway, sessions=session_store, analyses=analysis_store, metrics=metrics)


@pytest.fixture
def analysis_json():
    return json.dumps(SAMPLE_ANALYSIS)
