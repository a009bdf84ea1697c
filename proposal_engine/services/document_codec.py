# proposal_engine/services/document_codec.py
from __future__ import annotations

import html
import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

import lxml.html

from proposal_engine.models.sections import DocumentSection, SectionId
from proposal_engine.utils.text import normalize_whitespace, split_paragraphs
from proposal_engine.utils.timeit import timeit

logger = logging.getLogger("document_codec")

# Tags whose boundaries are paragraph breaks when text is extracted back out.
BLOCK_TAGS = {
    "p", "div", "section", "article", "blockquote", "pre", "ul", "ol", "table", "tr",
    "h1", "h2", "h3", "h4", "h5", "h6",
}
# Elements that never have a closing tag, so they cannot hold a section.
VOID_TAGS = {"br", "hr", "img", "input", "meta", "link", "col", "wbr", "source", "area", "base"}

RENDER_SLOW_MS = 250.0

_ws = re.compile(r"\s+")
_open_tag = re.compile(r"<([a-zA-Z][\w:-]*)(\s[^>]*)?>")
_anchor_attr = re.compile(r"""\bdata-section\s*=\s*(?:"([^"]*)"|'([^']*)')""", re.IGNORECASE)
_heading_before = re.compile(r"<h2\b[^>]*>(?:(?!</h2>).)*</h2>\s*$", re.IGNORECASE | re.DOTALL)


# -------------------------
# render
# -------------------------
def render_inner(text: str) -> str:
    """Paragraphs -> <p>, line breaks -> <br>, everything escaped."""
    paragraphs = split_paragraphs(text)
    return "".join("<p>" + "<br>".join(html.escape(line) for line in lines) + "</p>" for lines in paragraphs)


def render_section(section: DocumentSection) -> str:
    attrs = [f'data-section="{html.escape(section.key)}"', f'data-kind="{section.kind.value}"']
    if section.provenance:
        attrs.append(f'data-override="{html.escape(section.provenance)}"')
    if section.warning:
        attrs.append(f'data-warning="{html.escape(section.warning)}"')
    block = f"<section {' '.join(attrs)}>{render_inner(section.display_text)}</section>"
    if section.heading:
        return f"<h2>{html.escape(section.heading)}</h2>\n{block}"
    return block


def render(sections: Iterable[DocumentSection]) -> str:
    """One anchored <section> per DocumentSection, in the given order, newline separated."""
    sections = list(sections)
    with timeit(f"render {len(sections)} sections", slow_ms=RENDER_SLOW_MS):
        return "\n".join(render_section(s) for s in sections)


# -------------------------
# parse
# -------------------------
def _collect(el, out: List[str]) -> None:
    tag = el.tag if isinstance(el.tag, str) else None  # comments / PIs have callable tags
    if tag is not None:
        tag = tag.lower()
        if tag == "br":
            out.append("\n")
        else:
            if tag in BLOCK_TAGS:
                out.append("\n\n")
            elif tag == "li":
                out.append("\n")
            if el.text:
                out.append(_ws.sub(" ", el.text))
            for child in el:
                _collect(child, out)
            if tag in BLOCK_TAGS:
                out.append("\n\n")
    if el.tail:
        out.append(_ws.sub(" ", el.tail))


def section_text(el) -> str:
    """Visible text of one anchor element, in canonical whitespace form."""
    out: List[str] = []
    if el.text:
        out.append(_ws.sub(" ", el.text))
    for child in el:
        _collect(child, out)
    return normalize_whitespace("".join(out))


def parse(markup: str) -> Dict[str, str]:
    """
    Extract {section id: text} from edited markup.
    - sections without a recognizable anchor are absent, never an error
    - unknown data-section values are ignored
    - duplicated anchors: first one wins (logged)
    """
    if not markup or not markup.strip():
        return {}
    root = lxml.html.fragment_fromstring(markup, create_parent="div")
    result: Dict[str, str] = {}
    for el in root.xpath(".//*[@data-section]"):
        sid = SectionId.parse(el.get("data-section"))
        if sid is None:
            logger.debug("ignoring unknown section anchor %r", el.get("data-section"))
            continue
        key = str(sid)
        if key in result:
            logger.warning("duplicate section anchor %s; keeping the first one", key)
            continue
        result[key] = section_text(el)
    return result


# -------------------------
# insert
# -------------------------
def _closing_tag(markup: str, tag: str, pos: int) -> Optional[Tuple[int, int]]:
    """(start, end) of the tag that closes an element opened just before pos, by same-name depth."""
    depth = 1
    same_name = re.compile(rf"<(/?){re.escape(tag)}(?=[\s/>])[^>]*>", re.IGNORECASE)
    for m in same_name.finditer(markup, pos):
        if m.group(1):
            depth -= 1
            if depth == 0:
                return m.start(), m.end()
        elif not m.group(0).endswith("/>"):
            depth += 1
    return None


def _anchors(markup: str) -> List[Tuple[SectionId, int, int, int, int]]:
    """
    (section id, open tag start, open tag end, close tag start, close tag end) for each known anchor.
    Any element carrying data-section is an anchor, the same rule parse() uses.
    """
    found: List[Tuple[SectionId, int, int, int, int]] = []
    for m in _open_tag.finditer(markup):
        tag = m.group(1).lower()
        attr = _anchor_attr.search(m.group(2) or "")
        if not attr or tag in VOID_TAGS or m.group(0).endswith("/>"):
            continue
        sid = SectionId.parse(html.unescape(attr.group(1) if attr.group(1) is not None else attr.group(2)))
        if sid is None:
            continue
        close = _closing_tag(markup, tag, m.end())
        if close is None:
            logger.debug("unclosed <%s> anchor for %s", tag, sid)
            continue
        found.append((sid, m.start(), m.end(), close[0], close[1]))
    return found


def insert_into_section(markup: str, section_id: "str | SectionId", new_text: str) -> str:
    """
    Replace the inner content of one anchored section; every other byte stays as it was.
    A missing anchor is created at the position its slot has in the fixed document order.
    """
    sid = SectionId.parse(section_id)
    if sid is None:
        raise ValueError(f"unknown section id: {section_id!r}")
    markup = markup or ""
    anchors = _anchors(markup)

    for found_id, _start, open_end, close_start, _close_end in anchors:
        if found_id == sid:
            return markup[:open_end] + render_inner(new_text) + markup[close_start:]

    block = render_section(DocumentSection(section_id=sid, kind=sid.default_kind, display_text=new_text))
    if not anchors:
        return f"{markup}\n{block}" if markup else block

    before = [a for a in anchors if a[0].order <= sid.order]
    if before:
        pos = max(a[4] for a in before)
        return markup[:pos] + "\n" + block + markup[pos:]

    pos = anchors[0][1]
    heading = _heading_before.search(markup, 0, pos)
    if heading:
        pos = heading.start()
    return markup[:pos] + block + "\n" + markup[pos:]
