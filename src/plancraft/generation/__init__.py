"""Content generation via Ollama LLM inference.

The :class:`OllamaGenerationService` satisfies the
:class:`~plancraft.core.protocols.GenerationService` protocol, opening an
:class:`OllamaClient` per request.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Any

import httpx

from plancraft.errors import EmptyGenerationError, MalformedGenerationError
from plancraft.generation.ollama import GenerateOptions, OllamaClient
from plancraft.generation.prompts import build_solutions_prompt
from plancraft.models.results import Solution

if TYPE_CHECKING:
    from plancraft.config import GenerationConfig, OllamaConfig

logger = logging.getLogger(__name__)

__all__ = ["OllamaGenerationService", "parse_solutions", "strip_code_fences"]

_FENCE_RE = re.compile(r"^\s*(```|~~~)[\w-]*[ \t]*\n(?P<body>.*?)\n?\1\s*$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Remove one fence wrapping the whole completion, if present."""
    match = _FENCE_RE.match(text)
    if match:
        return match.group("body").strip()
    return text.strip()


def parse_solutions(raw: str, count: int) -> list[Solution | None]:
    """Parse a JSON solutions payload into ``count`` positional entries.

    Accepts either a bare array or an object with a ``solutions`` array.
    Entries that are null or fail validation become ``None``; the list is
    padded with ``None`` or truncated to ``count``.

    Raises:
        MalformedGenerationError: Payload is not JSON or has no array.
    """
    try:
        data: Any = json.loads(strip_code_fences(raw))
    except json.JSONDecodeError as exc:
        raise MalformedGenerationError(f"Solutions payload is not JSON: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("solutions")
    if not isinstance(data, list):
        raise MalformedGenerationError("Solutions payload has no array of solutions")

    solutions: list[Solution | None] = []
    for entry in data[:count]:
        if not isinstance(entry, dict):
            solutions.append(None)
            continue
        try:
            solutions.append(Solution.from_dict(entry))
        except ValueError as exc:
            logger.debug("Discarding invalid solution entry %r: %s", entry, exc)
            solutions.append(None)
    solutions.extend([None] * (count - len(solutions)))
    return solutions


class OllamaGenerationService:
    """Generation service backed by a local Ollama server.

    Args:
        ollama_config: Ollama connection and model settings.
        generation_config: Retry and sampling settings.
        profile: Quality profile (``"fast"``, ``"balanced"``, ``"quality"``).
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        ollama_config: OllamaConfig,
        generation_config: GenerationConfig,
        profile: str = "balanced",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._ollama_config = ollama_config
        self._config = generation_config
        self._transport = transport
        self._model: str = getattr(ollama_config.models, profile)
        self._model_resolved = False
        self._options = GenerateOptions(
            temperature=getattr(generation_config.temperature, profile),
            num_predict=generation_config.num_predict,
            num_ctx=generation_config.num_ctx,
        )

    @property
    def model(self) -> str:
        return self._model

    def _client(self) -> OllamaClient:
        return OllamaClient(
            host=self._ollama_config.host,
            timeout=float(self._ollama_config.timeout_seconds),
            transport=self._transport,
        )

    async def _resolve_model(self, client: OllamaClient) -> None:
        """Resolve the configured model tag to an available model (once)."""
        if self._model_resolved:
            return
        resolved = await client.resolve_model(self._model)
        if resolved != self._model:
            logger.warning(
                "Configured model %r not found; resolved to %r", self._model, resolved
            )
            self._model = resolved
        self._model_resolved = True

    async def generate(self, prompt: str) -> str:
        """Return the completion for ``prompt`` with any wrapping fence removed.

        Raises:
            GenerationError: On connection, timeout, empty or malformed output.
        """
        async with self._client() as client:
            await self._resolve_model(client)
            result = await client.generate(
                prompt, self._model, options=self._options, max_retries=self._config.max_retries
            )
        text = strip_code_fences(result.text)
        if not text:
            raise EmptyGenerationError("Completion was empty after removing code fences")
        logger.debug("Generated %d characters with %s", len(text), result.model)
        return text

    async def generate_solutions(self, problems: list[str]) -> list[Solution | None]:
        """Solve every problem in one JSON-mode request, preserving order."""
        if not problems:
            return []
        prompt = build_solutions_prompt(problems)
        async with self._client() as client:
            await self._resolve_model(client)
            result = await client.generate(
                prompt,
                self._model,
                options=self._options,
                max_retries=self._config.max_retries,
                json_mode=True,
            )
        solutions = parse_solutions(result.text, len(problems))
        missing = sum(1 for s in solutions if s is None)
        if missing:
            logger.warning("No usable solution for %d of %d problems", missing, len(problems))
        return solutions
