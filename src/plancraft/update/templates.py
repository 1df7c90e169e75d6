"""Deterministic filler problems used to pad a short practice section."""

from __future__ import annotations

from collections.abc import Callable


def _recipe(n: int) -> str:
    cups = n + 2
    return (
        f"A recipe needs 3/4 cup of sugar for each batch. "
        f"How many cups of sugar are needed for {cups} batches?"
    )


def _linear(n: int) -> str:
    a = n + 2
    b = 2 * n + 1
    c = a * (n + 3) + b
    return f"Solve for x: {a}x + {b} = {c}."


def _compare(n: int) -> str:
    return f"Which fraction is greater, {n}/{n + 2} or {n + 1}/{n + 3}? Explain how you know."


def _rectangle(n: int) -> str:
    width = n + 3
    length = 2 * n + 5
    return (
        f"A rectangle is {length} cm long and {width} cm wide. "
        f"What are its area and its perimeter?"
    )


TEMPLATES: tuple[Callable[[int], str], ...] = (_recipe, _linear, _compare, _rectangle)


def template_problem(index: int) -> str:
    """Return the filler problem for zero-based position ``index``."""
    return TEMPLATES[index % len(TEMPLATES)](index + 1)
