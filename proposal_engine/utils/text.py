# proposal_engine/utils/text.py
import hashlib
import re
from typing import List

_blank_line = re.compile(r"\n\s*\n")

def normalize_whitespace(text: str) -> str:
    """
    Canonical text form shared by the renderer and the markup parser.
    - runs of whitespace inside a line collapse to one space
    - single newlines are kept as line breaks, blank lines as paragraph breaks
    - empty lines/paragraphs and outer whitespace are dropped
    Example: "  a   b \n c\n\n\n d " -> "a b\nc\n\nd"
    """
    if not text:
        return ""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    paragraphs: List[str] = []
    for block in _blank_line.split(text):
        lines = [" ".join(line.split()) for line in block.split("\n")]
        lines = [ln for ln in lines if ln]
        if lines:
            paragraphs.append("\n".join(lines))
    return "\n\n".join(paragraphs)

def split_paragraphs(text: str) -> List[List[str]]:
    """normalize_whitespace, then paragraphs as lists of lines."""
    norm = normalize_whitespace(text)
    if not norm:
        return []
    return [p.split("\n") for p in norm.split("\n\n")]

def letter_for(index: int) -> str:
    # a, b, c ... z, aa, ab ... (proposals rarely pass 26 services, but don't crash)
    letters = ""
    n = index
    while True:
        letters = chr(97 + n % 26) + letters
        n = n // 26 - 1
        if n < 0:
            return letters

def natural_join(items: List[str], conjunction: str = "y") -> str:
    """["a"] -> "a"; ["a","b"] -> "a y b"; ["a","b","c"] -> "a, b y c"."""
    items = [i for i in items if i]
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    return ", ".join(items[:-1]) + f" {conjunction} " + items[-1]

def last_name(full_name: str) -> str:
    """
    Paternal surname for the salutation line.
    Mexican names usually end with two surnames, so the second to last token is used.
    """
    parts = (full_name or "").split()
    if len(parts) >= 3:
        return parts[-2]
    if len(parts) == 2:
        return parts[1]
    return parts[0] if parts else ""

_invalid_filename_chars = re.compile(r'[^A-Za-z0-9\-\_\(\)\[\]\s]')

def sanitize_filename(name: str) -> str:
    """
    Remove characters unsafe for filenames and collapse spaces.
    Example: "ACME Propuesta (v1)" -> "ACME_Propuesta_v1"
    """
    if not name:
        return "document"
    cleaned = _invalid_filename_chars.sub("", name)
    cleaned = re.sub(r"[\s\(\)\[\]]+", "_", cleaned).strip("_")
    return cleaned or "document"

BOOKMARK_MAX = 40

def sanitize_bm_name(name: str, prefix: str = "bm") -> str:
    """
    Sanitize a string for use as a Word bookmark name.
    Keeps alphanumerics and underscores only, prepends prefix.
    Word caps bookmark names at 40 characters; longer names keep their first 33
    characters plus a short hash of the full name, so distinct ids stay distinct.
    """
    if not name:
        return f"{prefix}_auto"
    n = re.sub(r"[^A-Za-z0-9_]", "_", name)
    n = re.sub(r"_+", "_", n).strip("_")
    if not n:
        n = "auto"
    full = f"{prefix}_{n}"
    if len(full) <= BOOKMARK_MAX:
        return full
    digest = hashlib.sha1(name.encode("utf-8")).hexdigest()[:6]
    return f"{full[:BOOKMARK_MAX - 7]}_{digest}"
