"""Shared CLI plumbing: config loading, database opening, pipeline wiring."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import typer
from rich.console import Console

from deepdocs.cli.errors import err_invalid_config, err_no_db
from deepdocs.config import ConfigError, DeepDocsConfig, load_config
from deepdocs.db.repository import Repository
from deepdocs.db.schema import open_db
from deepdocs.ingest.embedder import EmbeddingProvider, get_embedding_provider
from deepdocs.ingest.extract import TextExtractor
from deepdocs.ingest.ocr import PageRasterizer
from deepdocs.ingest.pipeline import IndexingPipeline

console = Console()


def load_cli_config() -> DeepDocsConfig:
    """load_config() with errors rendered for the terminal (exit code 1)."""
    try:
        return load_config()
    except ConfigError as exc:
        console.print(err_invalid_config(str(exc)))
        raise typer.Exit(1)


def resolve_db(db: Path | None, cfg: DeepDocsConfig) -> Path:
    return db if db is not None else Path(cfg.database.path)


def open_repo(db_path: Path, must_exist: bool = True) -> tuple[sqlite3.Connection, Repository]:
    """Open the library database; exit 1 if it is required but missing."""
    if must_exist and not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    conn = open_db(db_path)
    return conn, Repository(conn)


def make_embedder(cfg: DeepDocsConfig) -> EmbeddingProvider:
    return get_embedding_provider(cfg.embedding.model, batch_size=cfg.embedding.batch_size)


def make_extractor(cfg: DeepDocsConfig) -> TextExtractor:
    return TextExtractor(
        max_chars=cfg.extraction.max_chars,
        min_text_chars=cfg.extraction.min_text_chars,
        ocr=cfg.extraction.ocr,
        rasterizer=PageRasterizer(zoom=cfg.extraction.ocr_zoom),
    )


def make_pipeline(repo: Repository, cfg: DeepDocsConfig) -> IndexingPipeline:
    return IndexingPipeline(
        repo,
        make_embedder(cfg),
        extractor=make_extractor(cfg),
        chunk_size=cfg.chunking.size,
        overlap=cfg.chunking.overlap,
    )
