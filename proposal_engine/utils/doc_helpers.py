# proposal_engine/utils/doc_helpers.py
from __future__ import annotations
import os
from typing import Optional
from docx import Document
from docx.shared import Pt, RGBColor
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.enum.table import WD_TABLE_ALIGNMENT as _WD_TABLE_ALIGNMENT
from docx.oxml import OxmlElement
from docx.oxml.ns import qn

from proposal_engine.config import get_settings
from proposal_engine.utils.text import BOOKMARK_MAX

ACCENT = "1f3a5f"
BODY_FONT = "Calibri"


def safe_save_doc(document: Document, filename: str, outdir: Optional[str] = None) -> str:
    outdir = outdir or get_settings().output_dir
    os.makedirs(outdir, exist_ok=True)
    path = os.path.join(outdir, filename)
    document.save(path)
    return path

def set_base_style(doc) -> None:
    style = doc.styles["Normal"]
    style.font.name = BODY_FONT
    style.font.size = Pt(11)

def add_letterhead_band(doc, lines, logger=None):
    """
    Firm letterhead: one shaded full-width cell, firm name large, contact lines below.
    Styling failures are logged and the plain text still goes in.
    """
    if not lines:
        return None
    band = doc.add_table(rows=1, cols=1)
    band.alignment = _WD_TABLE_ALIGNMENT.CENTER
    cell = band.rows[0].cells[0]
    try:
        tcPr = cell._tc.get_or_add_tcPr()
        shd = OxmlElement("w:shd"); shd.set(qn("w:val"), "clear"); shd.set(qn("w:fill"), ACCENT); tcPr.append(shd)
        tcMar = OxmlElement("w:tcMar")
        for k, v in {"top": "160", "left": "200", "bottom": "160", "right": "200"}.items():
            node = OxmlElement(f"w:{k}"); node.set(qn("w:w"), v); node.set(qn("w:type"), "dxa"); tcMar.append(node)
        tcPr.append(tcMar)
    except Exception as ex:
        if logger: logger.warning(f"Failed to style letterhead: {ex}")

    p = cell.paragraphs[0]
    p.alignment = WD_ALIGN_PARAGRAPH.LEFT
    r = p.add_run(lines[0]); r.bold = True; r.font.size = Pt(18); r.font.name = BODY_FONT; r.font.color.rgb = RGBColor(255, 255, 255)
    for extra in lines[1:]:
        r = p.add_run("\n" + extra); r.font.size = Pt(9); r.font.name = BODY_FONT; r.font.color.rgb = RGBColor(220, 228, 240)
    doc.add_paragraph().paragraph_format.space_after = Pt(6)
    return p

def add_chapter_heading(doc, text: str):
    p = doc.add_paragraph()
    p.paragraph_format.space_before = Pt(14)
    p.paragraph_format.space_after = Pt(6)
    r = p.add_run(text); r.bold = True; r.font.size = Pt(12); r.font.name = BODY_FONT
    r.font.color.rgb = RGBColor(0x1f, 0x3a, 0x5f)
    return p

class Bookmarks:
    """
    Word bookmarks for one document. Ids count up from 1; a name already used gets its
    id appended, Word keeps only one bookmark per name.
    """

    def __init__(self):
        self.next_id = 1
        self.names = set()

    def add(self, paragraph, name: str) -> str:
        bid = self.next_id
        self.next_id += 1
        if name in self.names:
            suffix = f"_{bid}"
            name = name[:BOOKMARK_MAX - len(suffix)] + suffix
        self.names.add(name)

        # empty sections still need a run to hang the bookmark on
        if not paragraph.runs:
            paragraph.add_run("")
        start = OxmlElement("w:bookmarkStart")
        start.set(qn("w:id"), str(bid))
        start.set(qn("w:name"), name)
        end = OxmlElement("w:bookmarkEnd")
        end.set(qn("w:id"), str(bid))
        paragraph.runs[0]._r.addprevious(start)
        paragraph.runs[-1]._r.addnext(end)
        return name
