"""Configuration for plancraft, read from layered TOML files.

Later layers win:

- dataclass defaults
- the bundled ``config/default.toml``
- ``config/profiles/<profile>.toml``
- the user file at ``~/.config/plancraft/config.toml``
- ``--set section.key value`` pairs from the command line
"""

from __future__ import annotations

import tomllib
from dataclasses import asdict, dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any


@dataclass(frozen=True, slots=True)
class GeneralConfig:
    """Active profile and log verbosity."""

    profile: str = "balanced"
    log_level: str = "info"


@dataclass(frozen=True, slots=True)
class OllamaModelsConfig:
    """Ollama tag to use for each profile."""

    fast: str = "phi3:3.8b"
    balanced: str = "qwen2.5:7b"
    quality: str = "llama3.1:8b"


@dataclass(frozen=True, slots=True)
class OllamaConfig:
    """Where the Ollama server lives and how long to wait for it."""

    host: str = "http://localhost:11434"
    timeout_seconds: int = 90
    health_check_on_start: bool = True
    models: OllamaModelsConfig = field(default_factory=OllamaModelsConfig)


@dataclass(frozen=True, slots=True)
class TemperatureProfileConfig:
    """Sampling temperature for each profile."""

    fast: float = 0.6
    balanced: float = 0.5
    quality: float = 0.4


@dataclass(frozen=True, slots=True)
class GenerationConfig:
    """Content generation settings."""

    max_retries: int = 3
    num_predict: int = 4096
    num_ctx: int = 8192
    temperature: TemperatureProfileConfig = field(default_factory=TemperatureProfileConfig)


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Update pipeline settings.

    ``section_pattern`` and ``anchor_pattern`` are case-insensitive regular
    expressions matched against heading text.
    """

    section_pattern: str = r"practice\s*problems"
    section_title: str = "Practice Problems"
    anchor_pattern: str = r"^notes$"


@dataclass(frozen=True, slots=True)
class AutoSaveConfig:
    """Debounced auto-save settings."""

    enabled: bool = True
    delay_seconds: float = 2.0
    max_retries: int = 3
    retry_delay_seconds: float = 1.0


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Lesson persistence backend settings."""

    backend: str = "file"
    directory: str = "./lessons"
    rest_url: str = ""
    rest_api_key: str = ""
    table: str = "lesson_plans"


@dataclass(frozen=True, slots=True)
class PlancraftConfig:
    """Every configuration section, fully resolved."""

    general: GeneralConfig = field(default_factory=GeneralConfig)
    ollama: OllamaConfig = field(default_factory=OllamaConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    autosave: AutoSaveConfig = field(default_factory=AutoSaveConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    def to_dict(self) -> dict[str, Any]:
        """Return the resolved configuration as plain nested dicts."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

_BUNDLED_DIR = "config"
_USER_CONFIG = Path.home() / ".config" / "plancraft" / "config.toml"
_SEARCH_DEPTH = 5


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict with ``override`` layered on ``base``.

    Tables merge key by key; every other value, lists included, is replaced.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            value = _deep_merge(current, value)
        merged[key] = value
    return merged


def _coerce_value(text: str) -> bool | int | float | str:
    """Interpret a ``--set`` value as bool, int, float or plain string."""
    lowered = text.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for kind in (int, float):
        try:
            return kind(text)
        except ValueError:
            continue
    return text


def _apply_dot_override(raw: dict[str, Any], dot_key: str, str_value: str) -> None:
    """Write ``str_value`` at a dotted path such as ``autosave.delay_seconds``.

    Intermediate tables are created when absent.
    """
    *tables, leaf = dot_key.split(".")
    node = raw
    for name in tables:
        node = node.setdefault(name, {})
    node[leaf] = _coerce_value(str_value)


def _read_toml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    return tomllib.loads(path.read_text(encoding="utf-8"))


def _load_toml_file(path: Path) -> dict[str, Any]:
    """Parse a user TOML file; a missing file contributes nothing."""
    return _read_toml(path)


def _load_bundled_toml(filename: str) -> dict[str, Any]:
    """Find ``config/<filename>`` in the source checkout or the installed package."""
    for parent in list(Path(__file__).resolve().parents)[:_SEARCH_DEPTH]:
        candidate = parent / _BUNDLED_DIR / filename
        if candidate.is_file():
            return _read_toml(candidate)

    # Wheel installs ship config/ outside the import package
    bundled = resources.files("plancraft").joinpath(f"../../../{_BUNDLED_DIR}/{filename}")
    try:
        return tomllib.loads(bundled.read_text(encoding="utf-8"))
    except (FileNotFoundError, NotADirectoryError, TypeError):
        return {}


def _build_config(raw: dict[str, Any]) -> PlancraftConfig:
    """Instantiate the typed tree; unknown keys raise TypeError."""
    ollama = dict(raw.get("ollama", {}))
    generation = dict(raw.get("generation", {}))
    return PlancraftConfig(
        general=GeneralConfig(**raw.get("general", {})),
        ollama=OllamaConfig(models=OllamaModelsConfig(**ollama.pop("models", {})), **ollama),
        generation=GenerationConfig(
            temperature=TemperatureProfileConfig(**generation.pop("temperature", {})),
            **generation,
        ),
        pipeline=PipelineConfig(**raw.get("pipeline", {})),
        autosave=AutoSaveConfig(**raw.get("autosave", {})),
        storage=StorageConfig(**raw.get("storage", {})),
    )


def load_config(
    profile: str | None = None,
    user_config_path: Path | None = None,
    cli_overrides: dict[str, str] | None = None,
) -> PlancraftConfig:
    """Resolve the effective configuration.

    Args:
        profile: ``fast``, ``balanced`` or ``quality``. Falls back to
            ``general.profile`` from the bundled defaults.
        user_config_path: User TOML file, ``~/.config/plancraft/config.toml``
            when omitted.
        cli_overrides: ``--set`` pairs keyed by dotted path.
    """
    raw = _load_bundled_toml("default.toml")
    chosen = profile or raw.get("general", {}).get("profile", "balanced")
    layers = (
        _load_bundled_toml(f"profiles/{chosen}.toml"),
        _load_toml_file(user_config_path or _USER_CONFIG),
    )
    for layer in layers:
        raw = _deep_merge(raw, layer)

    for dot_key, str_value in (cli_overrides or {}).items():
        _apply_dot_override(raw, dot_key, str_value)

    return _build_config(raw)
