"""Overlay formatted record values onto a PDF template page."""

# Module responsibilities:
# - Convert mapping boxes (top-left origin, authoring pixels) into PDF points.
# - Draw each field clipped to its box with reportlab, in mapping order.
# - Merge the overlay onto the untouched template page with PyPDF2.

from __future__ import annotations

import re
from io import BytesIO
from pathlib import Path
from typing import List, Optional

from PyPDF2 import PdfReader, PdfWriter
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from docmerge.core.errors import CompositionError, RenderFailure

from .formatter import ValueFormatter
from .pdf_io import PageBox, base_page_box, open_template
from .records import Record
from .schema import Align, FieldMapping, MappingSet
from .utils.log import get_logger

logger = get_logger("compositor")

DEFAULT_DPI = 96.0
DEFAULT_FONT = "Helvetica"
LINE_SPACING = 1.2

_CONTROL_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")


def register_font(name: str, path: Path) -> str:
    """Register a TrueType font so mappings can render non-Latin text."""

    if name not in pdfmetrics.getRegisteredFontNames():
        pdfmetrics.registerFont(TTFont(name, str(path)))
        logger.info("Registered font", extra={"font": name, "path": str(path)})
    return name


def _clean_text(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n").replace("\t", " ")
    return _CONTROL_RE.sub("", text)


def _wrap(text: str, font_name: str, font_size: float, width: float) -> List[str]:
    lines: List[str] = []
    for paragraph in text.split("\n"):
        if not paragraph.strip():
            lines.append("")
            continue
        lines.extend(simpleSplit(paragraph, font_name, font_size, width) or [""])
    return lines


def _draw_field(
    canv: canvas.Canvas,
    page: PageBox,
    mapping: FieldMapping,
    text: str,
    *,
    scale: float,
    font_name: str,
) -> None:
    left = page.left + mapping.position.x * scale
    top = page.top - mapping.position.y * scale
    width = mapping.size.width * scale
    height = mapping.size.height * scale
    bottom = top - height
    font_size = mapping.font_size * scale
    leading = font_size * LINE_SPACING

    canv.saveState()
    clip = canv.beginPath()
    clip.rect(left, bottom, width, height)
    canv.clipPath(clip, stroke=0, fill=0)
    canv.setFont(font_name, font_size)

    for index, line in enumerate(_wrap(text, font_name, font_size, width)):
        line_top = top - index * leading
        if line_top <= bottom:
            break
        if not line:
            continue
        baseline = line_top - font_size
        if mapping.align is Align.CENTER:
            canv.drawCentredString(left + width / 2, baseline, line)
        elif mapping.align is Align.RIGHT:
            canv.drawRightString(left + width, baseline, line)
        else:
            canv.drawString(left, baseline, line)
    canv.restoreState()


def render_overlay(
    page: PageBox,
    record: Record,
    mapping_set: MappingSet,
    *,
    formatter: Optional[ValueFormatter] = None,
    dpi: float = DEFAULT_DPI,
    font_name: Optional[str] = None,
) -> Optional[bytes]:
    """Draw the record's fields on a transparent page.

    Returns the overlay PDF bytes, or None when no field produced text.
    Box geometry depends only on the mapping set, ``page`` and ``dpi``.
    """

    formatter = formatter or ValueFormatter()
    font = mapping_set.output_settings.font_name or font_name or DEFAULT_FONT
    scale = 72.0 / dpi

    buffer = BytesIO()
    canv = canvas.Canvas(buffer, pagesize=(page.left + page.width, page.bottom + page.height), invariant=1)
    drawn = 0
    for mapping in mapping_set.mappings:
        if mapping.field not in record:
            continue
        text = _clean_text(formatter.format(record.get(mapping.field), mapping))
        if not text.strip():
            continue
        _draw_field(canv, page, mapping, text, scale=scale, font_name=font)
        drawn += 1

    if not drawn:
        return None
    canv.showPage()
    canv.save()
    return buffer.getvalue()


def compose(
    template_bytes: bytes,
    record: Record,
    mapping_set: MappingSet,
    *,
    formatter: Optional[ValueFormatter] = None,
    dpi: float = DEFAULT_DPI,
    font_name: Optional[str] = None,
) -> bytes:
    """Produce the filled document for one record.

    Raises:
        TemplateUnreadable: When ``template_bytes`` is not a usable PDF.
        RenderFailure: When the overlay cannot be drawn, merged or written.
    """

    reader = open_template(template_bytes)
    try:
        page = base_page_box(reader)
        overlay = render_overlay(
            page, record, mapping_set, formatter=formatter, dpi=dpi, font_name=font_name
        )
        writer = PdfWriter()
        for index, template_page in enumerate(reader.pages):
            if index == 0 and overlay is not None:
                template_page.merge_page(PdfReader(BytesIO(overlay)).pages[0])
            writer.add_page(template_page)
        if reader.metadata:
            writer.add_metadata({key: str(value) for key, value in reader.metadata.items()})
        output = BytesIO()
        writer.write(output)
    except CompositionError:
        raise
    except Exception as exc:  # noqa: BLE001 - reportlab/PyPDF2 failures become per-record errors
        raise RenderFailure(f"failed to render document for row {record.row_id}: {exc}") from exc

    logger.info(
        "Document composed",
        extra={"row_id": record.row_id, "fields": len(mapping_set.mappings), "overlay": overlay is not None},
    )
    return output.getvalue()
