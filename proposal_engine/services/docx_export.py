# proposal_engine/services/docx_export.py
from __future__ import annotations

import logging
from typing import Iterable, Optional

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt

from proposal_engine.models.sections import DocumentSection, Slot
from proposal_engine.utils.doc_helpers import Bookmarks, add_chapter_heading, add_letterhead_band, safe_save_doc, set_base_style
from proposal_engine.utils.text import sanitize_bm_name, sanitize_filename, split_paragraphs
from proposal_engine.utils.timeit import timeit

logger = logging.getLogger("docx_export")

EXPORT_SLOW_MS = 2000.0

_ALIGN = {
    Slot.DATE: WD_ALIGN_PARAGRAPH.RIGHT,
    Slot.SIGNATURE: WD_ALIGN_PARAGRAPH.CENTER,
}


def bookmark_name(section: DocumentSection) -> str:
    return sanitize_bm_name(section.key, prefix="sec")


def _add_paragraph(doc, lines, align=None):
    p = doc.add_paragraph()
    p.paragraph_format.space_after = Pt(8)
    if align is not None:
        p.alignment = align
    for i, line in enumerate(lines):
        run = p.add_run(line)
        if i < len(lines) - 1:
            run.add_break()
    return p


def build_document(sections: Iterable[DocumentSection]):
    """
    Word version of an assembled proposal.
    Every section gets exactly one bookmark (sec_<section id>) on its first paragraph.
    """
    doc = Document()
    set_base_style(doc)
    bookmarks = Bookmarks()
    for section in sections:
        if section.heading:
            add_chapter_heading(doc, section.heading)
        paragraphs = split_paragraphs(section.display_text)
        if section.section_id.slot == Slot.LETTERHEAD:
            first = add_letterhead_band(doc, [ln for para in paragraphs for ln in para], logger=logger)
        else:
            align = _ALIGN.get(section.section_id.slot)
            first = None
            for lines in paragraphs:
                p = _add_paragraph(doc, lines, align)
                if first is None:
                    first = p
        if first is None:
            first = doc.add_paragraph()
        bookmarks.add(first, bookmark_name(section))
    return doc


def export_docx(sections: Iterable[DocumentSection], title: str, outdir: Optional[str] = None) -> str:
    """Write the .docx and return its path."""
    sections = list(sections)
    with timeit(f"docx export {len(sections)} sections", slow_ms=EXPORT_SLOW_MS) as timing:
        doc = build_document(sections)
        filename = f"{sanitize_filename(title)}_propuesta.docx"
        path = safe_save_doc(doc, filename, outdir)
    logger.info("exported %s in %.0f ms", path, timing.ms)
    return path
