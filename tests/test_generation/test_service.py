"""Tests for the Ollama-backed generation service and its output parsing."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from plancraft.config import PlancraftConfig
from plancraft.core.protocols import GenerationService
from plancraft.document.model import Document
from plancraft.errors import EmptyGenerationError, GenerationError, MalformedGenerationError
from plancraft.generation import OllamaGenerationService, parse_solutions, strip_code_fences
from plancraft.models.results import Solution, UpdateFailure
from plancraft.update import UpdateOrchestrator


def _service(
    transport: httpx.MockTransport | None = None,
    profile: str = "balanced",
) -> OllamaGenerationService:
    config = PlancraftConfig()
    return OllamaGenerationService(config.ollama, config.generation, profile, transport=transport)


class OllamaStub:
    """MockTransport handler serving /api/tags and scripted completions."""

    def __init__(self, completions: list[str], models: tuple[str, ...] = ("qwen2.5:7b",)) -> None:
        self.completions = list(completions)
        self.models = models
        self.requests: list[dict[str, object]] = []
        self.tag_requests = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            self.tag_requests += 1
            return httpx.Response(
                200, json={"models": [{"name": m, "size": 1} for m in self.models]}
            )
        body = json.loads(request.content)
        self.requests.append(body)
        return httpx.Response(
            200, json={"response": self.completions.pop(0), "model": body["model"]}
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


class TestStripCodeFences:
    """strip_code_fences."""

    def test_markdown_fence(self) -> None:
        assert strip_code_fences("```markdown\n# Lesson\n\nBody\n```") == "# Lesson\n\nBody"

    def test_bare_fence(self) -> None:
        assert strip_code_fences("```\n{}\n```\n") == "{}"

    def test_no_fence(self) -> None:
        assert strip_code_fences("  # Lesson\n") == "# Lesson"

    def test_inner_fence_untouched(self) -> None:
        text = "# Lesson\n\n```python\nx = 1\n```"
        assert strip_code_fences(text) == text


class TestParseSolutions:
    """parse_solutions."""

    def test_object_payload(self) -> None:
        raw = json.dumps(
            {"solutions": [{"steps": ["Add 2 and 3."], "answer": "5"}, {"steps": [], "answer": 7}]}
        )
        assert parse_solutions(raw, 2) == [
            Solution(steps=("Add 2 and 3.",), answer="5"),
            Solution(steps=(), answer="7"),
        ]

    def test_bare_array(self) -> None:
        raw = '[{"steps": ["a"], "answer": "b"}]'
        assert parse_solutions(raw, 1) == [Solution(steps=("a",), answer="b")]

    def test_invalid_entries_become_none(self) -> None:
        raw = json.dumps(
            {
                "solutions": [
                    None,
                    {"steps": "not a list", "answer": "x"},
                    {"steps": ["ok"], "answer": ""},
                    {"steps": ["ok"], "answer": "y"},
                ]
            }
        )
        assert parse_solutions(raw, 4) == [None, None, None, Solution(steps=("ok",), answer="y")]

    def test_padded_and_truncated(self) -> None:
        raw = '[{"steps": [], "answer": "1"}, {"steps": [], "answer": "2"}]'
        assert parse_solutions(raw, 3)[2] is None
        assert len(parse_solutions(raw, 1)) == 1

    def test_fenced_json(self) -> None:
        raw = '```json\n{"solutions": [{"steps": [], "answer": "4"}]}\n```'
        assert parse_solutions(raw, 1) == [Solution(steps=(), answer="4")]

    def test_not_json(self) -> None:
        with pytest.raises(MalformedGenerationError, match="not JSON"):
            parse_solutions("The answer is 4.", 1)

    def test_missing_array(self) -> None:
        with pytest.raises(MalformedGenerationError, match="no array"):
            parse_solutions('{"answers": []}', 1)


class TestOllamaGenerationService:
    """OllamaGenerationService over a mock transport."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(_service(), GenerationService)

    @pytest.mark.parametrize(
        ("profile", "model"),
        [("fast", "phi3:3.8b"), ("balanced", "qwen2.5:7b"), ("quality", "llama3.1:8b")],
    )
    def test_profile_model(self, profile: str, model: str) -> None:
        assert _service(profile=profile).model == model

    async def test_generate_strips_fence(self) -> None:
        stub = OllamaStub(["```markdown\n# Lesson\n```"])
        text = await _service(stub.transport).generate("prompt")
        assert text == "# Lesson"
        assert stub.requests[0]["options"]["temperature"] == 0.5  # type: ignore[index]
        assert "format" not in stub.requests[0]

    async def test_generate_empty_after_fence(self) -> None:
        stub = OllamaStub(["```\n\n```"])
        with pytest.raises(EmptyGenerationError):
            await _service(stub.transport).generate("prompt")

    async def test_model_resolved_once(self) -> None:
        stub = OllamaStub(["one", "two"], models=("qwen2.5:14b",))
        service = _service(stub.transport)
        await service.generate("a")
        await service.generate("b")
        assert stub.tag_requests == 1
        assert service.model == "qwen2.5:14b"
        assert [r["model"] for r in stub.requests] == ["qwen2.5:14b", "qwen2.5:14b"]

    async def test_generate_solutions(self) -> None:
        payload = {"solutions": [{"steps": ["Multiply."], "answer": "12"}, None]}
        stub = OllamaStub([json.dumps(payload)])
        result = await _service(stub.transport).generate_solutions(["What is 3 x 4?", "???"])
        assert result == [Solution(steps=("Multiply.",), answer="12"), None]
        (request,) = stub.requests
        assert request["format"] == "json"
        assert "What is 3 x 4?" in str(request["prompt"])

    async def test_generate_solutions_empty_input(self) -> None:
        stub = OllamaStub([])
        assert await _service(stub.transport).generate_solutions([]) == []
        assert stub.requests == []


def _tags_error(request: httpx.Request) -> httpx.Response:
    return httpx.Response(500, text="Internal Server Error")


def _tags_not_json(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text="<html>proxy login</html>")


def _read_error(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadError("connection reset", request=request)


def _protocol_error(request: httpx.Request) -> httpx.Response:
    raise httpx.RemoteProtocolError("server disconnected", request=request)


def _generate_read_error(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/api/tags":
        return httpx.Response(200, json={"models": [{"name": "qwen2.5:7b", "size": 1}]})
    raise httpx.ReadError("connection reset", request=request)


class TestServerFailuresBecomeUpdateFailures:
    """Server-side failures surface as GenerationError and end the update cleanly."""

    @pytest.mark.parametrize(
        "handler",
        [_tags_error, _tags_not_json, _read_error, _protocol_error, _generate_read_error],
    )
    async def test_generate_raises_generation_error(self, handler: Any) -> None:
        service = _service(httpx.MockTransport(handler))
        with patch("plancraft.generation.ollama.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(GenerationError):
                await service.generate("prompt")

    @pytest.mark.parametrize("handler", [_tags_error, _tags_not_json, _protocol_error])
    async def test_orchestrator_returns_failure(self, handler: Any, lesson: Document) -> None:
        service = _service(httpx.MockTransport(handler))
        outcome = await UpdateOrchestrator(service).run("Add 5 practice problems", lesson)
        assert isinstance(outcome, UpdateFailure)
        assert outcome.reason.startswith("Could not update the lesson plan")
