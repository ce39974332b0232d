"""deepdocs configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (DEEPDOCS_EMBEDDING_MODEL, DEEPDOCS_GENERATION_MODEL, DEEPDOCS_DB)
  3. Per-library deepdocs.yaml  (in the working directory)
  4. Global ~/.deepdocs/config.yaml  (defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from deepdocs.errors import InvalidConfiguration
from deepdocs.ingest.chunker import validate_window
from deepdocs.ingest.embedder import DEFAULT_MODEL as _DEFAULT_EMBEDDING_MODEL

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".deepdocs"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "deepdocs.yaml"

# Fields that suggest an API key — forbidden in global config.
# Does NOT match legitimate config keys like max_tokens or top_k.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"  # api_key, api-key, api_secret, apikey
    r"|_token$"                  # github_token, access_token (suffix)
    r"|^token$"                  # exactly "token"
    r"|_secret$"                 # client_secret (suffix)
    r"|^secret$"                 # exactly "secret"
    r"|passw(?:ord|d)"           # password, passwd
    r"|credential",              # credential, credentials
    re.IGNORECASE,
)

# Known top-level sections — unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "chunking", "extraction", "retrieval", "generation", "database"]
)

# Environment variable → (section, field); string values only.
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "DEEPDOCS_GENERATION_MODEL": ("generation", "model"),
    "DEEPDOCS_EMBEDDING_MODEL": ("embedding", "model"),
    "DEEPDOCS_DB": ("database", "path"),
}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(InvalidConfiguration):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Local embedding model (deepdocs.yaml: embedding:)."""

    model: str = _DEFAULT_EMBEDDING_MODEL
    batch_size: int = 32


@dataclass
class ChunkingCfg:
    """Chunk window in characters (deepdocs.yaml: chunking:)."""

    size: int = 1000
    overlap: int = 100


@dataclass
class ExtractionCfg:
    """Text extraction limits and OCR (deepdocs.yaml: extraction:).

    Attributes:
        max_chars: Extracted text is truncated to this many characters.
        min_text_chars: PDFs with less text than this go through OCR.
        ocr: Enable the OCR fallback.
        ocr_zoom: Page render scale for OCR.
    """

    max_chars: int = 20_000
    min_text_chars: int = 50
    ocr: bool = True
    ocr_zoom: float = 2.0


@dataclass
class RetrievalCfg:
    """Search settings (deepdocs.yaml: retrieval:)."""

    top_k: int = 5
    snippet_chars: int = 200


@dataclass
class GenerationCfg:
    """LLM used by `deepdocs ask` (deepdocs.yaml: generation:)."""

    model: str = "openai/gpt-4o-mini"
    max_tokens: int = 1024


@dataclass
class DatabaseCfg:
    path: str = ".deepdocs.db"


@dataclass
class DeepDocsConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    extraction: ExtractionCfg = field(default_factory=ExtractionCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    database: DatabaseCfg = field(default_factory=DatabaseCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"'{full}' in {source} looks like a secret (forbidden key).\n"
                        f"  The answer model reads its key from the environment, e.g.\n"
                        f"    export OPENAI_API_KEY=<value>\n"
                        f"  Delete '{full}' from {source.name}."
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=3,
            )


def _validate(cfg: DeepDocsConfig) -> None:
    try:
        validate_window(cfg.chunking.size, cfg.chunking.overlap)
    except InvalidConfiguration as exc:
        raise ConfigError(f"chunking: {exc}") from exc
    if cfg.retrieval.top_k < 1:
        raise ConfigError(f"retrieval.top_k must be >= 1, got {cfg.retrieval.top_k}")
    if cfg.extraction.max_chars < 1:
        raise ConfigError(
            f"extraction.max_chars must be >= 1, got {cfg.extraction.max_chars}"
        )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> DeepDocsConfig:
    """Build a *DeepDocsConfig* from a merged raw YAML dict."""
    cfg = DeepDocsConfig()

    try:
        if "embedding" in data:
            e = data["embedding"] or {}
            cfg.embedding = EmbeddingCfg(
                model=str(e.get("model", cfg.embedding.model)),
                batch_size=int(e.get("batch_size", cfg.embedding.batch_size)),
            )

        if "chunking" in data:
            c = data["chunking"] or {}
            cfg.chunking = ChunkingCfg(
                size=int(c.get("size", cfg.chunking.size)),
                overlap=int(c.get("overlap", cfg.chunking.overlap)),
            )

        if "extraction" in data:
            x = data["extraction"] or {}
            cfg.extraction = ExtractionCfg(
                max_chars=int(x.get("max_chars", cfg.extraction.max_chars)),
                min_text_chars=int(x.get("min_text_chars", cfg.extraction.min_text_chars)),
                ocr=bool(x.get("ocr", cfg.extraction.ocr)),
                ocr_zoom=float(x.get("ocr_zoom", cfg.extraction.ocr_zoom)),
            )

        if "retrieval" in data:
            r = data["retrieval"] or {}
            cfg.retrieval = RetrievalCfg(
                top_k=int(r.get("top_k", cfg.retrieval.top_k)),
                snippet_chars=int(r.get("snippet_chars", cfg.retrieval.snippet_chars)),
            )

        if "generation" in data:
            g = data["generation"] or {}
            cfg.generation = GenerationCfg(
                model=str(g.get("model", cfg.generation.model)),
                max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
            )

        if "database" in data:
            d = data["database"] or {}
            cfg.database = DatabaseCfg(path=str(d.get("path", cfg.database.path)))
    except (TypeError, ValueError, AttributeError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    return cfg


def _apply_env_overrides(cfg: DeepDocsConfig) -> DeepDocsConfig:
    """Apply non-empty DEEPDOCS_* environment variables on top of the files."""
    for var, (section, attr) in _ENV_OVERRIDES.items():
        if value := os.environ.get(var):
            setattr(getattr(cfg, section), attr, value)
    return cfg


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse '{path}': {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"'{path}' must contain a YAML mapping at the top level")
    return raw


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> DeepDocsConfig:
    """Load and return a merged *DeepDocsConfig*.

    Layers are merged global first, then the per-library file, then the
    environment. CLI flags are applied by the caller afterwards.

    Args:
        project_dir: Directory holding *deepdocs.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If a file is malformed, global config contains API-key-like
            fields, or a value is out of range (e.g. chunk overlap >= size).
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    library_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}
    for path, is_global in ((global_path, True), (library_dir / _PROJECT_CONFIG_NAME, False)):
        if not path.exists():
            continue
        raw = _read_yaml(path)
        if is_global:
            _check_no_api_keys(raw, path)
        _warn_unknown_keys(raw, path)
        merged = _deep_merge(merged, raw)

    cfg = _apply_env_overrides(_cfg_from_dict(merged))
    _validate(cfg)
    return cfg
