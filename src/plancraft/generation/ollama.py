"""Thin async wrapper over the Ollama ``/api`` endpoints used for lesson rewrites."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Self

import httpx

from plancraft.errors import (
    EmptyGenerationError,
    GenerationConnectionError,
    GenerationError,
    GenerationTimeoutError,
    MalformedGenerationError,
    ModelNotFoundError,
)

logger = logging.getLogger(__name__)

_FAMILY_RE = re.compile(r"^([a-zA-Z]+-?[a-zA-Z]*\d*)(?:\.\d+)*$")
_MAX_TEMPERATURE = 2.0


@dataclass(frozen=True, slots=True)
class GenerateOptions:
    """Sampling options sent with every completion request."""

    temperature: float = 0.5
    top_p: float = 0.9
    num_predict: int = 4096
    num_ctx: int = 8192

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class ModelInfo:
    """A model pulled on the server, as reported by ``/api/tags``."""

    name: str
    size: int


@dataclass(frozen=True, slots=True)
class GenerateResult:
    """One completed ``/api/generate`` call."""

    text: str
    model: str
    eval_count: int


def _model_family(tag: str) -> str:
    """Reduce an Ollama tag to its family: ``llama3.1:8b`` -> ``llama3``."""
    name = tag.partition(":")[0]
    match = _FAMILY_RE.match(name)
    return match.group(1) if match else name


class OllamaClient:
    """Async client for a local Ollama server.

    Must be entered as an async context manager; the underlying
    ``httpx.AsyncClient`` only lives for the duration of the ``async with``.

    Args:
        host: Server base URL.
        timeout: Read timeout in seconds. Connecting is capped at 10s.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        timeout: float = 90.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._host = host.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> Self:
        self._client = httpx.AsyncClient(
            base_url=self._host,
            timeout=httpx.Timeout(self._timeout, connect=10.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *_: Any) -> None:
        if self._client is not None:
            await self._client.aclose()
        self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("OllamaClient must be used as an async context manager")
        return self._client

    async def health_check(self) -> bool:
        """Return True when the server answers its root endpoint."""
        try:
            resp = await self.client.get("/")
        except httpx.RequestError:
            return False
        return resp.status_code == 200

    async def list_models(self) -> list[ModelInfo]:
        """List the models pulled on the server.

        Raises:
            GenerationConnectionError: Transport failure.
            GenerationTimeoutError: The server did not answer in time.
            MalformedGenerationError: Non-2xx status or an unreadable body.
        """
        resp = await self._request("GET", "/api/tags", "Timed out listing models")
        if resp.is_error:
            raise MalformedGenerationError(f"Ollama returned HTTP {resp.status_code}")
        data = _json_body(resp)
        entries = data.get("models", [])
        if not isinstance(entries, list):
            raise MalformedGenerationError(f"Unexpected model listing: {entries!r}")
        try:
            return [ModelInfo(name=entry["name"], size=entry.get("size", 0)) for entry in entries]
        except (KeyError, TypeError, AttributeError) as exc:
            raise MalformedGenerationError(f"Unexpected model listing: {exc}") from exc

    async def resolve_model(self, requested: str) -> str:
        """Map a configured tag onto a pulled model.

        Tries the exact tag, then ``<tag>:latest``, then the largest pulled
        model of the same family.

        Raises:
            ModelNotFoundError: Nothing suitable is pulled.
        """
        models = await self.list_models()
        pulled = {m.name for m in models}
        if requested in pulled:
            return requested
        latest = f"{requested}:latest"
        if ":" not in requested and latest in pulled:
            return latest

        family = _model_family(requested)
        same_family = [m for m in models if _model_family(m.name) == family]
        if same_family:
            return max(same_family, key=lambda m: m.size).name
        raise ModelNotFoundError(requested, sorted(pulled))

    async def generate(
        self,
        prompt: str,
        model: str,
        options: GenerateOptions | None = None,
        max_retries: int = 3,
        json_mode: bool = False,
    ) -> GenerateResult:
        """Request one non-streaming completion.

        Connection failures and timeouts are retried up to ``max_retries``
        attempts with 1s, 2s, 4s... pauses. An empty completion is retried
        with the temperature raised by 0.1.

        Args:
            json_mode: Constrain the completion to a JSON value.

        Raises:
            GenerationConnectionError: Server unreachable on every attempt.
            GenerationTimeoutError: Every attempt timed out.
            ModelNotFoundError: The server does not have ``model``.
            EmptyGenerationError: Every attempt came back empty.
            MalformedGenerationError: Non-2xx status or a non-JSON body.
        """
        sampling = (options or GenerateOptions()).to_dict()
        payload: dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": sampling,
        }
        if json_mode:
            payload["format"] = "json"

        failure: GenerationError = GenerationConnectionError("No generation attempt was made")
        for attempt in range(1, max_retries + 1):
            try:
                data = await self._post_generate(payload, model)
            except (GenerationConnectionError, GenerationTimeoutError) as exc:
                failure = exc
                logger.warning("%s (attempt %d/%d)", exc, attempt, max_retries)
                if attempt < max_retries:
                    await asyncio.sleep(2 ** (attempt - 1))
                continue

            text = str(data.get("response", "")).strip()
            if text:
                return GenerateResult(
                    text=text,
                    model=data.get("model", model),
                    eval_count=data.get("eval_count", 0),
                )
            if attempt == max_retries:
                raise EmptyGenerationError("Empty completion after all retries")
            failure = EmptyGenerationError("Empty completion received")
            sampling["temperature"] = min(sampling["temperature"] + 0.1, _MAX_TEMPERATURE)
            logger.warning(
                "Empty completion; retrying at temperature %.1f", sampling["temperature"]
            )

        raise failure

    async def _request(
        self, method: str, path: str, timeout_message: str, **kwargs: Any
    ) -> httpx.Response:
        try:
            return await self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise GenerationTimeoutError(timeout_message) from exc
        except httpx.RequestError as exc:
            raise GenerationConnectionError(f"Cannot connect to {self._host}: {exc}") from exc

    async def _post_generate(self, payload: dict[str, Any], model: str) -> dict[str, Any]:
        resp = await self._request(
            "POST",
            "/api/generate",
            f"Generation request to {self._host} timed out",
            json=payload,
        )
        if resp.status_code == 404:
            pulled = await self.list_models()
            raise ModelNotFoundError(model, [m.name for m in pulled])
        if resp.is_error:
            raise MalformedGenerationError(f"Ollama returned HTTP {resp.status_code}")
        return _json_body(resp)


def _json_body(resp: httpx.Response) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError as exc:
        raise MalformedGenerationError(f"Invalid response from Ollama: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedGenerationError(f"Unexpected response payload: {data!r}")
    return data
