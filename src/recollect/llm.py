"""Generation collaborator: the text completion boundary used by the engine.

The engine only depends on the ``GenerationClient`` protocol. The Groq
implementation wraps ``AsyncGroq`` and maps SDK failures onto a closed set
of error kinds so callers can decide how to present them.

Example:
    from groq import AsyncGroq
    from recollect.llm import GroqGenerationClient

    llm = GroqGenerationClient(AsyncGroq(api_key="..."))
    reply = await llm.complete("Be brief.", "Hello")
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

import groq
from groq import AsyncGroq

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "llama-3.1-70b-versatile"


class GenerationErrorKind(Enum):
    """Why a generation call failed."""

    TIMEOUT = "timeout"
    GUARDRAIL_VIOLATION = "guardrail_violation"
    CONTEXT_WINDOW_EXCEEDED = "context_window_exceeded"
    RATE_LIMITED = "rate_limited"
    MALFORMED_OUTPUT = "malformed_output"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


class GenerationError(Exception):
    """A generation call failed. Recoverable by retrying later."""

    def __init__(self, kind: GenerationErrorKind, message: str = "") -> None:
        self.kind = kind
        super().__init__(message or kind.value)


@dataclass(frozen=True)
class SchemaField:
    """One field of a structured output."""

    name: str
    description: str
    type: str = "string"


@dataclass(frozen=True)
class OutputSchema:
    """Shape of a structured generation result.

    Supported field types are ``string`` and ``boolean``.
    """

    name: str
    fields: tuple[SchemaField, ...]

    def instructions(self) -> str:
        """Render the schema as output instructions for the model."""
        lines = [f"Respond ONLY with a JSON object ({self.name}) with these fields:"]
        for f in self.fields:
            lines.append(f'- "{f.name}" ({f.type}): {f.description}')
        return "\n".join(lines)

    def coerce(self, data: dict[str, Any]) -> dict[str, Any]:
        """Keep only declared fields, defaulting missing ones to empty values."""
        result: dict[str, Any] = {}
        for f in self.fields:
            value = data.get(f.name)
            if f.type == "boolean":
                if isinstance(value, str):
                    value = value.strip().lower() == "true"
                result[f.name] = bool(value)
            else:
                result[f.name] = "" if value is None else str(value)
        return result


class GenerationClient(Protocol):
    """Protocol for the text generation collaborator.

    Returns a dict matching ``schema`` when one is given, free text otherwise.
    Implementations raise ``GenerationError`` on failure.
    """

    async def complete(
        self,
        system: str,
        prompt: str,
        schema: OutputSchema | None = None,
    ) -> Any:
        """Complete a prompt."""
        ...


def parse_json_output(content: str) -> dict[str, Any]:
    """Parse a JSON object from model output.

    The model might wrap it in a markdown code block.

    Raises:
        GenerationError: If no JSON object can be parsed.
    """
    json_str = content.strip()
    if json_str.startswith("```"):
        lines = [line for line in json_str.split("\n") if not line.startswith("```")]
        json_str = "\n".join(lines)

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise GenerationError(
            GenerationErrorKind.MALFORMED_OUTPUT, f"Invalid JSON output: {e}"
        ) from e

    if not isinstance(data, dict):
        raise GenerationError(
            GenerationErrorKind.MALFORMED_OUTPUT, "Expected a JSON object"
        )
    return data


def _classify(error: Exception) -> GenerationErrorKind:
    """Map a Groq SDK exception onto an error kind."""
    if isinstance(error, groq.APITimeoutError):
        return GenerationErrorKind.TIMEOUT
    if isinstance(error, groq.RateLimitError):
        return GenerationErrorKind.RATE_LIMITED
    if isinstance(error, (groq.APIConnectionError, groq.InternalServerError)):
        return GenerationErrorKind.UNAVAILABLE
    if isinstance(error, groq.BadRequestError):
        text = str(error).lower()
        if "context" in text and ("length" in text or "window" in text):
            return GenerationErrorKind.CONTEXT_WINDOW_EXCEEDED
        if "content" in text and ("policy" in text or "safety" in text):
            return GenerationErrorKind.GUARDRAIL_VIOLATION
    return GenerationErrorKind.FAILED


class GroqGenerationClient:
    """GenerationClient implementation that wraps AsyncGroq."""

    def __init__(
        self,
        client: AsyncGroq,
        model: str = DEFAULT_MODEL,
        temperature: float | None = None,
    ) -> None:
        """Initialize the Groq client wrapper.

        Args:
            client: The AsyncGroq client instance to wrap.
            model: The model to use for completions.
            temperature: Optional sampling temperature.
        """
        self._client = client
        self._model = model
        self._temperature = temperature

    @property
    def model(self) -> str:
        """Return the model being used."""
        return self._model

    async def complete(
        self,
        system: str,
        prompt: str,
        schema: OutputSchema | None = None,
    ) -> Any:
        """Complete a prompt.

        Args:
            system: System instructions.
            prompt: The user prompt.
            schema: Optional structured output schema.

        Returns:
            A dict of the schema's fields, or the response text.

        Raises:
            GenerationError: If the call fails or structured output is unparseable.
        """
        if schema is not None:
            system = f"{system}\n\n{schema.instructions()}" if system else schema.instructions()

        messages: list[dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict[str, Any] = {"model": self._model, "messages": messages}
        if self._temperature is not None:
            kwargs["temperature"] = self._temperature
        if schema is not None:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except groq.APIError as e:
            kind = _classify(e)
            logger.warning("Generation call failed (%s): %s", kind.value, e)
            raise GenerationError(kind, str(e)) from e

        content = response.choices[0].message.content or ""
        if schema is None:
            return content
        return schema.coerce(parse_json_output(content))
