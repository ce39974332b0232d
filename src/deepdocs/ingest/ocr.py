"""OCR fallback for image-only PDFs: rasterise pages, recognise text.

Both engines are loaded lazily because they are heavy (PyMuPDF render, ONNX
runtime) and only needed for scanned documents.

  PageRasterizer  PDF path → PNG file per page (PyMuPDF)
  Recognizer      PNG path → recognised text (RapidOCR, ONNX runtime)
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class Rasterizer(Protocol):
    def rasterize(self, pdf_path: Path, out_dir: Path) -> Iterator[Path]: ...


class TextRecognizer(Protocol):
    def recognize(self, image_path: Path) -> str: ...


class PageRasterizer:
    """Render every page of a PDF to ``out_dir/page-NNNN.png`` in page order.

    Args:
        zoom: Render scale; 2.0 doubles the 72 dpi default which noticeably
            improves recognition of small print.
    """

    def __init__(self, zoom: float = 2.0) -> None:
        self.zoom = zoom

    def rasterize(self, pdf_path: Path, out_dir: Path) -> Iterator[Path]:
        import fitz  # PyMuPDF

        with fitz.open(str(pdf_path)) as doc:
            matrix = fitz.Matrix(self.zoom, self.zoom)
            for number, page in enumerate(doc, start=1):
                target = out_dir / f"page-{number:04d}.png"
                page.get_pixmap(matrix=matrix).save(str(target))
                yield target


class Recognizer:
    """RapidOCR wrapper; the engine is created on first use."""

    def __init__(self) -> None:
        self._engine = None
        self._lock = threading.Lock()

    def _get_engine(self):
        if self._engine is None:
            with self._lock:
                if self._engine is None:
                    from rapidocr_onnxruntime import RapidOCR

                    logger.info("Loading RapidOCR engine")
                    self._engine = RapidOCR()
        return self._engine

    def recognize(self, image_path: Path) -> str:
        """Return the text lines found in *image_path*, newline separated."""
        # RapidOCR returns (result, elapsed); result is [[box, text, score], ...] or None
        result, _ = self._get_engine()(str(image_path))
        if not result:
            return ""
        lines = [str(item[1]) for item in result if item and len(item) >= 2 and item[1]]
        return "\n".join(lines).strip()
