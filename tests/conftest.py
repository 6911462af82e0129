from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from typing import Callable

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Loggers are configured on first import; keep their files out of the real home.
os.environ.setdefault("DOCMERGE_HOME", tempfile.mkdtemp(prefix="docmerge-tests-"))

from docmerge.core.logger import get_logger  # noqa: E402
from docmerge_io.records import Record  # noqa: E402
from docmerge_io.schema import MappingSet  # noqa: E402

get_logger()


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", r"\(").replace(")", r"\)")


def build_pdf(
    texts: list[str] | None = None,
    *,
    width: int = 612,
    height: int = 792,
    crop_box: tuple[int, int, int, int] | None = None,
    rotate: int = 0,
) -> bytes:
    """Hand-assemble a small PDF with one page per entry in ``texts``."""

    texts = texts or ["Template Page"]
    count = len(texts)
    extra = ""
    if crop_box is not None:
        extra += " /CropBox [" + " ".join(str(v) for v in crop_box) + "]"
    if rotate:
        extra += f" /Rotate {rotate}"
    # objects: 1 catalog, 2 pages, 3 font, then (page, contents) pairs
    page_ids = [4 + 2 * i for i in range(count)]
    objects: list[bytes] = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{' '.join(f'{p} 0 R' for p in page_ids)}] /Count {count} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for index, text in enumerate(texts):
        stream = f"BT\n/F1 14 Tf\n72 720 Td\n({_escape(text)}) Tj\nET\n".encode("utf-8")
        objects.append(
            (
                f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 {width} {height}]{extra}"
                f" /Contents {page_ids[index] + 1} 0 R /Resources << /Font << /F1 3 0 R >> >> >>"
            ).encode()
        )
        objects.append(f"<< /Length {len(stream)} >>\nstream\n".encode() + stream + b"endstream")

    data = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(data))
        data.extend(f"{number} 0 obj\n".encode() + body + b"\nendobj\n")
    xref_offset = len(data)
    data.extend(f"xref\n0 {len(objects) + 1}\n".encode())
    data.extend(b"0000000000 65535 f \n")
    for offset in offsets:
        data.extend(f"{offset:010d} 00000 n \n".encode())
    data.extend(f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n".encode())
    data.extend(f"startxref\n{xref_offset}\n%%EOF\n".encode())
    return bytes(data)


@pytest.fixture()
def pdf_factory() -> Callable[..., bytes]:
    return build_pdf


@pytest.fixture()
def template_pdf() -> bytes:
    return build_pdf(["Invoice Template"])


@pytest.fixture()
def invoice_set() -> MappingSet:
    return MappingSet.model_validate(
        {
            "name": "invoice",
            "pdfTemplateId": "invoice.pdf",
            "mappings": [
                {"field": "Number", "position": {"x": 400, "y": 40}, "size": {"width": 200, "height": 30}},
                {"field": "Customer", "position": {"x": 40, "y": 120}, "size": {"width": 400, "height": 30}},
                {
                    "field": "Total",
                    "position": {"x": 400, "y": 600},
                    "size": {"width": 200, "height": 30},
                    "numberFormat": True,
                    "decimalPlaces": 2,
                    "align": "right",
                },
            ],
            "outputSettings": {"documentNumberField": "Number"},
            "deliverySettings": {"enabled": True, "recipientField": "Email"},
        }
    )


@pytest.fixture()
def make_record() -> Callable[..., Record]:
    def _make(row_id: str = "Sheet1!2", **values: object) -> Record:
        return Record.from_raw(row_id, values)

    return _make
