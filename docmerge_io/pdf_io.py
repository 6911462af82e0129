"""PDF template reading helpers."""

# Module responsibilities:
# - Parse template bytes with PyPDF2 and surface TemplateUnreadable on bad input.
# - Report page count and base page geometry for previews and diagnostics.
# - Geometry follows the visible CropBox; rotated base pages are rejected.

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Dict, Union

from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from docmerge.core.errors import TemplateUnreadable

from .utils.log import get_logger

logger = get_logger("pdf_io")


@dataclass(frozen=True)
class PageBox:
    """Visible area (CropBox) of the base page in PDF points, origin bottom-left."""

    left: float
    bottom: float
    width: float
    height: float

    @property
    def top(self) -> float:
        return self.bottom + self.height


@dataclass(frozen=True)
class PdfInfo:
    """Metadata summary for a PDF template."""

    page_count: int
    page: PageBox
    metadata: Dict[str, str]


def open_template(data: bytes) -> PdfReader:
    """Parse template bytes, rejecting empty, encrypted or page-less input."""

    if not data:
        raise TemplateUnreadable("template is empty")
    try:
        reader = PdfReader(BytesIO(data), strict=False)
        if reader.is_encrypted:
            raise TemplateUnreadable("encrypted templates are not supported")
        page_count = len(reader.pages)
    except TemplateUnreadable:
        raise
    except PdfReadError as exc:
        raise TemplateUnreadable(f"failed to parse template: {exc}") from exc
    except Exception as exc:  # noqa: BLE001 - PyPDF2 raises assorted errors on garbage input
        raise TemplateUnreadable(f"failed to parse template: {exc}") from exc
    if page_count == 0:
        raise TemplateUnreadable("template has no pages")
    return reader


def base_page_box(reader: PdfReader) -> PageBox:
    """Return the CropBox of the first page, which PyPDF2 defaults to the MediaBox.

    Box coordinates are measured on the unrotated page, so a /Rotate other
    than a multiple of 360 raises TemplateUnreadable.
    """

    first = reader.pages[0]
    rotation = int(first.rotation or 0) % 360
    if rotation:
        raise TemplateUnreadable(f"rotated templates are not supported (/Rotate {rotation})")
    box = first.cropbox
    left = float(box.left)
    bottom = float(box.bottom)
    return PageBox(
        left=left,
        bottom=bottom,
        width=float(box.right) - left,
        height=float(box.top) - bottom,
    )


def read_info(source: Union[bytes, Path]) -> PdfInfo:
    """Read page count, base page geometry and metadata."""

    if isinstance(source, Path):
        if not source.exists():
            raise FileNotFoundError(f"PDF file not found: {source}")
        source = source.read_bytes()
    reader = open_template(source)
    metadata = {k.lstrip("/"): str(v) for k, v in (reader.metadata or {}).items()}
    info = PdfInfo(page_count=len(reader.pages), page=base_page_box(reader), metadata=metadata)
    logger.info(
        "PDF info read",
        extra={"page_count": info.page_count, "width": info.page.width, "height": info.page.height},
    )
    return info
