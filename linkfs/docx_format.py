"""Conversion between Markdown-ish text and ``.docx`` containers.

The mapping is line oriented and lossy: ``#``/``##``/``###`` lines become
headings, blank lines become empty paragraphs, everything else becomes a plain
paragraph. Inline formatting (bold, italics, links) is not carried across.
"""

from __future__ import annotations

import io
import logging

import docx

from .errors import FormatDecodeError

logger = logging.getLogger(__name__)

HEADING_PREFIXES: tuple[tuple[str, int], ...] = (("### ", 3), ("## ", 2), ("# ", 1))


def _decode_plain(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise FormatDecodeError("file is neither a readable document nor UTF-8 text") from exc


def decode(data: bytes) -> str:
    """Extract paragraph text, falling back to plain UTF-8 for non-containers."""
    try:
        document = docx.Document(io.BytesIO(data))
    except Exception as exc:
        # python-docx raises a mix of zipfile, KeyError and its own errors here.
        logger.warning("Structured decode failed (%s); reading as plain text", exc)
        return _decode_plain(data)
    return "\n".join(paragraph.text for paragraph in document.paragraphs)


def encode(markdown_text: str, title: str) -> bytes:
    """Serialize ``markdown_text`` as a ``.docx`` container titled ``title``."""
    document = docx.Document()
    document.core_properties.title = title
    for line in markdown_text.split("\n"):
        if line.strip() == "":
            document.add_paragraph()
            continue
        for prefix, level in HEADING_PREFIXES:
            if line.startswith(prefix):
                document.add_heading(line[len(prefix):], level=level)
                break
        else:
            document.add_paragraph(line)

    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


__all__ = ["decode", "encode"]
