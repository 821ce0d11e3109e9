from openai import AsyncOpenAI, APIStatusError, APITimeoutError, APIConnectionError
from pydantic import ValidationError
from typing import List, Sequence
import json
import statsd

from mentor.config import Settings
from mentor.errors import InvalidInput, UpstreamError, UpstreamContractViolation
from mentor.log import get_logger
from mentor.models import ChatTurn, CodeAnalysis, LanguageGuess

logger = get_logger(__name__)

ANALYSIS_PROMPT = """You are an expert code reviewer and software engineer. Analyze the provided code and return a comprehensive analysis in JSON format. Include:
1. Language detection with confidence
2. Code overview
3. Issues found (performance, security, bugs, style)
4. Optimization suggestions
5. Quality metrics

Return your response as valid JSON with this structure:
{
  "language": "string",
  "confidence": number (0-100),
  "overview": "string",
  "issues": [
    {
      "type": "performance|security|bug|style",
      "severity": "low|medium|high",
      "title": "string",
      "description": "string",
      "suggestion": "string",
      "line": number (optional)
    }
  ],
  "optimizations": [
    {
      "title": "string",
      "description": "string",
      "impact": "string"
    }
  ],
  "metrics": {
    "qualityScore": number (0-100),
    "complexity": "low|medium|high",
    "maintainability": number (0-100)
  }
}"""

LANGUAGE_PROMPT = (
    "You are a programming language detection expert. Analyze the provided code and identify the programming language. "
    'Return your response as JSON with this format: {"language": "string", "confidence": number (0-100)}'
)

MENTOR_PROMPT = """You are an experienced software engineering mentor and code review expert. You help developers understand their code, learn best practices, and improve their programming skills.

Your responses should be:
- Educational and explanatory
- Practical with actionable advice
- Encouraging and supportive
- Include code examples when helpful
- Reference best practices and modern patterns
- Written in plain text format (no markdown, headers, or special formatting)
- Use simple paragraphs and bullet points with • symbol for lists

When discussing code issues, always explain the "why" behind your suggestions. Keep your responses conversational and easy to read."""


class ReasoningGateway:
    """The only place that speaks the chat-completion wire format.

    Every call is a single attempt: the client is built with retries disabled, and
    failures come back as UpstreamError (transport/status) or
    UpstreamContractViolation (a 200 whose body is not what we asked for).
    """

    def __init__(self, settings: Settings, metrics: statsd.StatsClient, client=None):
        self.metrics = metrics
        self.model_version = settings.model
        self.timeout = settings.request_timeout
        self.client = client or AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.request_timeout,
            max_retries=0,
        )

    @staticmethod
    def build_code_prompt(code: str) -> str:
        return f"Please analyze this code:\n\n{code}"

    @staticmethod
    def build_detect_prompt(code: str) -> str:
        return f"Detect the programming language of this code:\n\n{code}"

    async def analyze(self, code: str) -> CodeAnalysis:
        self._require_code(code)
        content = await self.get_completion(
            "analyze",
            [
                {"role": "system", "content": ANALYSIS_PROMPT},
                {"role": "user", "content": self.build_code_prompt(code)},
            ],
            response_format={"type": "json_object"},
            temperature=0.1,
        )
        return self._parse(content, CodeAnalysis, "analyze")

    async def detect_language(self, code: str) -> LanguageGuess:
        self._require_code(code)
        content = await self.get_completion(
            "detect_language",
            [
                {"role": "system", "content": LANGUAGE_PROMPT},
                {"role": "user", "content": self.build_detect_prompt(code)},
            ],
            response_format={"type": "json_object"},
            temperature=0.1,
        )
        return self._parse(content, LanguageGuess, "detect_language")

    async def converse(self, turns: Sequence[ChatTurn]) -> str:
        messages = [{"role": "system", "content": MENTOR_PROMPT}]
        messages += [{"role": turn.role, "content": turn.content} for turn in turns]

        return await self.get_completion("converse", messages, temperature=0.7, max_tokens=1000)

    async def get_completion(self, operation: str, messages: List[dict], **options) -> str:
        """Send one chat-completion request and return the text of the first choice."""
        logger.debug("completion_request", operation=operation, model=self.model_version, message_count=len(messages))
        try:
            response = await self.client.chat.completions.create(
                model=self.model_version, messages=messages, **options
            )
        except APIStatusError as e:
            self.metrics.incr(f"errors.{operation}")
            reason = e.response.reason_phrase or e.message
            logger.error("completion_status_error", operation=operation, status=e.status_code, reason=reason)
            raise UpstreamError(e.status_code, reason) from e
        except APITimeoutError as e:
            self.metrics.incr(f"errors.{operation}")
            logger.error("completion_timeout", operation=operation, timeout=self.timeout)
            raise UpstreamError(None, f"timed out after {self.timeout}s") from e
        except APIConnectionError as e:
            self.metrics.incr(f"errors.{operation}")
            logger.error("completion_connection_error", operation=operation, error=str(e))
            raise UpstreamError(None, f"connection failed: {e}") from e

        choices = getattr(response, "choices", None)
        if not choices:
            self.metrics.incr(f"errors.{operation}")
            logger.error("completion_missing_choices", operation=operation)
            raise UpstreamContractViolation("No choices in reasoning service response")

        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if not content:
            self.metrics.incr(f"errors.{operation}")
            logger.error("completion_empty_content", operation=operation)
            raise UpstreamContractViolation("No response content from reasoning service")

        self.metrics.incr(f"success.{operation}")
        return content

    def _parse(self, content: str, shape, operation: str):
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            self.metrics.incr(f"errors.{operation}.contract")
            logger.error("completion_not_json", operation=operation, error=str(e), content=content[:200])
            raise UpstreamContractViolation(f"Reasoning service returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            self.metrics.incr(f"errors.{operation}.contract")
            logger.error("completion_not_object", operation=operation, content=content[:200])
            raise UpstreamContractViolation("Reasoning service returned JSON that is not an object")

        try:
            return shape.model_validate(data)
        except ValidationError as e:
            self.metrics.incr(f"errors.{operation}.contract")
            logger.error("completion_shape_mismatch", operation=operation, errors=e.error_count())
            raise UpstreamContractViolation(f"Reasoning service response does not match {shape.__name__}: {e}") from e

    @staticmethod
    def _require_code(code: str):
        if not code or not code.strip():
            raise InvalidInput("Code is required")
