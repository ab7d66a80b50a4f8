"""Tests for the Groq generation client and structured output handling."""

from unittest.mock import AsyncMock, MagicMock

import groq
import httpx
import pytest

from recollect.llm import (
    DEFAULT_MODEL,
    GenerationError,
    GenerationErrorKind,
    GroqGenerationClient,
    OutputSchema,
    SchemaField,
    parse_json_output,
)

SCHEMA = OutputSchema(
    name="Example",
    fields=(
        SchemaField("title", "A title"),
        SchemaField("has_fact", "Whether there is a fact", type="boolean"),
    ),
)

REQUEST = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")


def _groq_returning(content: str | None) -> MagicMock:
    mock_response = MagicMock()
    mock_response.choices = [MagicMock()]
    mock_response.choices[0].message.content = content

    mock_groq = MagicMock()
    mock_groq.chat.completions.create = AsyncMock(return_value=mock_response)
    return mock_groq


def _groq_raising(error: Exception) -> MagicMock:
    mock_groq = MagicMock()
    mock_groq.chat.completions.create = AsyncMock(side_effect=error)
    return mock_groq


def _status_error(cls: type[groq.APIStatusError], status: int, message: str) -> Exception:
    return cls(message, response=httpx.Response(status, request=REQUEST), body=None)


class TestOutputSchema:
    """Tests for schema instructions and coercion."""

    def test_instructions_list_fields(self):
        text = SCHEMA.instructions()

        assert "JSON object" in text
        assert '"title" (string): A title' in text
        assert '"has_fact" (boolean)' in text

    def test_coerce_drops_unknown_and_fills_missing(self):
        assert SCHEMA.coerce({"extra": 1}) == {"title": "", "has_fact": False}

    @pytest.mark.parametrize(
        "value,expected",
        [(True, True), (False, False), ("true", True), ("True ", True), ("false", False), (None, False)],
    )
    def test_coerce_booleans(self, value, expected):
        assert SCHEMA.coerce({"has_fact": value})["has_fact"] is expected

    def test_coerce_strings(self):
        assert SCHEMA.coerce({"title": 42})["title"] == "42"


class TestParseJsonOutput:
    """Tests for parsing model JSON output."""

    def test_plain_object(self):
        assert parse_json_output('{"title": "Hi"}') == {"title": "Hi"}

    def test_code_fence(self):
        assert parse_json_output('```json\n{"title": "Hi"}\n```') == {"title": "Hi"}

    def test_invalid_json(self):
        with pytest.raises(GenerationError) as exc_info:
            parse_json_output("not json")
        assert exc_info.value.kind is GenerationErrorKind.MALFORMED_OUTPUT

    def test_not_an_object(self):
        with pytest.raises(GenerationError) as exc_info:
            parse_json_output("[1, 2]")
        assert exc_info.value.kind is GenerationErrorKind.MALFORMED_OUTPUT


class TestGroqGenerationClient:
    """Tests for the AsyncGroq wrapper."""

    def test_default_model(self):
        assert GroqGenerationClient(MagicMock()).model == DEFAULT_MODEL

    @pytest.mark.asyncio
    async def test_free_text(self):
        mock_groq = _groq_returning("Hello!")
        client = GroqGenerationClient(mock_groq, model="test-model")

        result = await client.complete("Be brief.", "Hi")

        assert result == "Hello!"
        mock_groq.chat.completions.create.assert_called_once_with(
            model="test-model",
            messages=[
                {"role": "system", "content": "Be brief."},
                {"role": "user", "content": "Hi"},
            ],
        )

    @pytest.mark.asyncio
    async def test_empty_system_omitted(self):
        mock_groq = _groq_returning("Hello!")

        await GroqGenerationClient(mock_groq).complete("", "Hi")

        messages = mock_groq.chat.completions.create.call_args.kwargs["messages"]
        assert messages == [{"role": "user", "content": "Hi"}]

    @pytest.mark.asyncio
    async def test_none_content(self):
        result = await GroqGenerationClient(_groq_returning(None)).complete("", "Hi")
        assert result == ""

    @pytest.mark.asyncio
    async def test_structured(self):
        mock_groq = _groq_returning('{"title": "Pasta", "has_fact": "true", "other": 1}')
        client = GroqGenerationClient(mock_groq, temperature=0.2)

        result = await client.complete("Summarize.", "chat", SCHEMA)

        assert result == {"title": "Pasta", "has_fact": True}
        kwargs = mock_groq.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["temperature"] == 0.2
        assert kwargs["messages"][0]["content"].startswith("Summarize.\n\nRespond ONLY")

    @pytest.mark.asyncio
    async def test_structured_malformed(self):
        client = GroqGenerationClient(_groq_returning("Sorry, I can't."))

        with pytest.raises(GenerationError) as exc_info:
            await client.complete("Summarize.", "chat", SCHEMA)
        assert exc_info.value.kind is GenerationErrorKind.MALFORMED_OUTPUT

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,kind",
        [
            (groq.APITimeoutError(request=REQUEST), GenerationErrorKind.TIMEOUT),
            (
                _status_error(groq.RateLimitError, 429, "Rate limit reached"),
                GenerationErrorKind.RATE_LIMITED,
            ),
            (
                groq.APIConnectionError(request=REQUEST),
                GenerationErrorKind.UNAVAILABLE,
            ),
            (
                _status_error(groq.InternalServerError, 500, "Internal error"),
                GenerationErrorKind.UNAVAILABLE,
            ),
            (
                _status_error(
                    groq.BadRequestError, 400,
                    "Please reduce the length of the messages: context_length_exceeded",
                ),
                GenerationErrorKind.CONTEXT_WINDOW_EXCEEDED,
            ),
            (
                _status_error(groq.BadRequestError, 400, "Request violates content policy"),
                GenerationErrorKind.GUARDRAIL_VIOLATION,
            ),
            (
                _status_error(groq.BadRequestError, 400, "Invalid model"),
                GenerationErrorKind.FAILED,
            ),
            (
                _status_error(groq.AuthenticationError, 401, "Invalid API key"),
                GenerationErrorKind.FAILED,
            ),
        ],
    )
    async def test_errors_mapped(self, error: Exception, kind: GenerationErrorKind):
        client = GroqGenerationClient(_groq_raising(error))

        with pytest.raises(GenerationError) as exc_info:
            await client.complete("", "Hi")

        assert exc_info.value.kind is kind
        assert exc_info.value.__cause__ is error
