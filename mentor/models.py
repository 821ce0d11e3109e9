from sqlmodel import SQLModel, Field, Column, JSON
from pydantic import conint, confloat
from typing import List, Literal, Optional, Union

Level = Literal["low", "medium", "high"]
# kept as sent: integer scores stay integers
Score = Union[conint(ge=0, le=100), confloat(ge=0, le=100)]


class ChatRecord(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: str = Field(index=True)
    model: Optional[str] = Field(default=None)
    content: str
    role: str # user | assistant
    timestamp: float # utc timestamp of chat message, in millis


class AnalysisRecord(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    code: str
    language: Optional[str] = Field(default=None)
    analysis_result: dict = Field(default_factory=dict, sa_column=Column(JSON))
    timestamp: float


# the shapes below are what we ask the reasoning service to produce.
# field names follow the wire format, hence the camelCase in CodeMetrics

class ChatTurn(SQLModel):
    role: Literal["system", "user", "assistant"]
    content: str


class CodeIssue(SQLModel):
    type: Literal["performance", "security", "bug", "style"]
    severity: Level
    title: str
    description: str
    suggestion: str
    line: Optional[int] = None


class Optimization(SQLModel):
    title: str
    description: str
    impact: str


class CodeMetrics(SQLModel):
    qualityScore: Score
    complexity: Level
    maintainability: Score


class CodeAnalysis(SQLModel):
    language: str
    confidence: Score
    overview: str
    issues: List[CodeIssue] = Field(default_factory=list)
    optimizations: List[Optimization] = Field(default_factory=list)
    metrics: CodeMetrics


class LanguageGuess(SQLModel):
    language: str
    confidence: Score
