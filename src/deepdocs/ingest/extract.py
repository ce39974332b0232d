"""Text extraction — file path to plain text, with an OCR fallback for scans.

Dispatch by extension:
  .txt .md .markdown .csv .json .log  → read as UTF-8
  .pdf                                → pypdf text layer, OCR if it is too short
  anything else                       → unsupported (empty text)

``extract()`` never raises. Failures are logged and reported through
``ExtractionResult.status`` so callers can tell "no content" from "crashed".
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import pypdf

from deepdocs.errors import ExtractionFailure
from deepdocs.ingest.ocr import PageRasterizer, Rasterizer, Recognizer, TextRecognizer

logger = logging.getLogger(__name__)

TEXT_EXTS = {".txt", ".md", ".markdown", ".csv", ".json", ".log"}
PDF_EXTS = {".pdf"}
SUPPORTED_EXTS = TEXT_EXTS | PDF_EXTS

DEFAULT_MAX_CHARS = 20_000
DEFAULT_MIN_TEXT_CHARS = 50
PREVIEW_CHARS = 5_000


class ExtractionStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    UNSUPPORTED = "unsupported"
    MISSING = "missing"
    FAILED = "failed"


@dataclass
class ExtractionResult:
    """Outcome of extracting one file.

    Attributes:
        status: What happened; only OK carries non-blank text.
        text: Extracted text, truncated to the extractor's ``max_chars``.
        error: Failure description for FAILED, else None.
        used_ocr: True if the OCR fallback ran.
        truncated: True if the text was cut to fit a character limit.
    """

    status: ExtractionStatus
    text: str = ""
    error: str | None = None
    used_ocr: bool = False
    truncated: bool = False

    @property
    def has_content(self) -> bool:
        return self.status is ExtractionStatus.OK


class TextExtractor:
    """Convert a file on disk into plain text.

    Args:
        max_chars: Hard cap on returned text length (bounds embedding cost).
        min_text_chars: A PDF text layer shorter than this is treated as a
            scanned document and sent through OCR.
        ocr: Enable the OCR fallback.
        rasterizer: Page renderer for OCR (default: PyMuPDF).
        recognizer: OCR engine (default: RapidOCR).
    """

    def __init__(
        self,
        max_chars: int = DEFAULT_MAX_CHARS,
        min_text_chars: int = DEFAULT_MIN_TEXT_CHARS,
        ocr: bool = True,
        rasterizer: Rasterizer | None = None,
        recognizer: TextRecognizer | None = None,
    ) -> None:
        self.max_chars = max_chars
        self.min_text_chars = min_text_chars
        self.ocr = ocr
        self._rasterizer = rasterizer or PageRasterizer()
        self._recognizer = recognizer or Recognizer()

    def extract(self, path: str | Path) -> str:
        """Return the text of *path*, or "" if there is none or reading failed."""
        return self.extract_result(path).text

    def extract_result(self, path: str | Path) -> ExtractionResult:
        """Extract *path* and describe the outcome. Never raises."""
        p = Path(path)
        ext = p.suffix.lower()
        if ext not in SUPPORTED_EXTS:
            return ExtractionResult(ExtractionStatus.UNSUPPORTED)
        if not p.is_file():
            logger.warning("Cannot extract %s: file not found", p)
            return ExtractionResult(ExtractionStatus.MISSING)

        used_ocr = False
        try:
            if ext in PDF_EXTS:
                text, used_ocr = self._extract_pdf(p)
            else:
                text = self._read_text(p)
        except ExtractionFailure as exc:
            logger.warning("Extraction failed for %s: %s", p, exc)
            return ExtractionResult(ExtractionStatus.FAILED, error=str(exc))

        truncated = len(text) > self.max_chars
        text = text[: self.max_chars]
        if not text.strip():
            return ExtractionResult(ExtractionStatus.EMPTY, used_ocr=used_ocr)
        return ExtractionResult(
            ExtractionStatus.OK, text=text, used_ocr=used_ocr, truncated=truncated
        )

    def preview(self, path: str | Path, limit: int = PREVIEW_CHARS) -> ExtractionResult:
        """Like ``extract_result()`` but with the text cut to *limit* characters."""
        result = self.extract_result(path)
        if len(result.text) > limit:
            result.text = result.text[:limit]
            result.truncated = True
        return result

    # ------------------------------------------------------------------
    # Plain text
    # ------------------------------------------------------------------

    def _read_text(self, path: Path) -> str:
        try:
            with path.open("r", encoding="utf-8", errors="replace") as fh:
                # Read one char past the cap; truncation happens in extract_result().
                return fh.read(self.max_chars + 1)
        except OSError as exc:
            raise ExtractionFailure(str(exc)) from exc

    # ------------------------------------------------------------------
    # PDF
    # ------------------------------------------------------------------

    def _extract_pdf(self, path: Path) -> tuple[str, bool]:
        text = self._pdf_text_layer(path).strip()
        if len(text) >= self.min_text_chars or not self.ocr:
            return text, False

        logger.info("OCR fallback for %s (text layer: %d chars)", path, len(text))
        ocr_text = self._ocr_pdf(path)
        if ocr_text:
            text = f"{text}\n{ocr_text}" if text else ocr_text
        return text, True

    @staticmethod
    def _pdf_text_layer(path: Path) -> str:
        """Concatenate the text layer of every page, pages in order."""
        try:
            reader = pypdf.PdfReader(str(path))
            parts = [(page.extract_text() or "").strip() for page in reader.pages]
        except Exception as exc:  # pypdf raises many types on corrupt input
            raise ExtractionFailure(f"unreadable PDF: {exc}") from exc
        return "\n\n".join(p for p in parts if p)

    def _ocr_pdf(self, path: Path) -> str:
        """Rasterise + recognise each page inside a scratch directory.

        The directory and any page images left in it are removed when the block
        exits, also when rendering or recognition fails part-way.
        """
        pages: list[str] = []
        try:
            with tempfile.TemporaryDirectory(prefix="deepdocs-ocr-") as tmp:
                for image in self._rasterizer.rasterize(path, Path(tmp)):
                    try:
                        page_text = self._recognizer.recognize(image)
                    finally:
                        image.unlink(missing_ok=True)
                    if page_text.strip():
                        pages.append(page_text.strip())
                    if sum(len(p) for p in pages) >= self.max_chars:
                        break
        except Exception as exc:  # OCR backends raise arbitrary types
            logger.warning("OCR failed for %s: %s", path, exc)
        return "\n".join(pages)
