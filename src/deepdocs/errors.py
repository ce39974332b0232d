"""Exception taxonomy shared by the deepdocs core.

  ExtractionFailure     unreadable / corrupt file — recovered as empty text
  EmbeddingFailure      model unavailable or bad input — aborts the document
  GenerationFailure     answer LLM unreachable or rejected the request
  InvalidBackup         restore source is not a deepdocs library
  InvalidConfiguration  bad parameters, rejected before any work
  NotFound              unknown document or collection id
"""

from __future__ import annotations


class DeepDocsError(Exception):
    """Base class for all deepdocs errors."""


class ExtractionFailure(DeepDocsError):
    """A file could not be read or parsed.

    Never escapes the text extractor: it is logged and turned into an empty
    ``ExtractionResult``.
    """


class EmbeddingFailure(DeepDocsError):
    """The embedding model could not be loaded or rejected its input."""


class GenerationFailure(DeepDocsError):
    """The LLM behind ``deepdocs ask`` failed after retries."""


class InvalidBackup(DeepDocsError):
    """A file offered for restore is not a usable deepdocs library."""


class InvalidConfiguration(DeepDocsError, ValueError):
    """A parameter or config value is out of range (e.g. overlap >= size)."""


class NotFound(DeepDocsError, LookupError):
    """An operation referenced a document or collection id that does not exist."""

    def __init__(self, kind: str, ident: object) -> None:
        super().__init__(f"{kind} {ident!r} not found")
        self.kind = kind
        self.ident = ident
