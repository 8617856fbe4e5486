"""
Purpose:
- Render the final training caption (prefix + caption + suffix) and package
  captions as .txt files or a single captions.zip.
"""

from __future__ import annotations
from io import BytesIO
from typing import Dict, Iterable, List, Tuple
import zipfile

ZIP_NAME = "captions.zip"


def final_caption(body: str, prefix: str = "", suffix: str = "") -> str:
    """
    Join prefix, caption and suffix with single spaces. Each part is trimmed
    and blank parts are skipped, so "tok, " + "a cat" + ", bg" -> "tok, a cat , bg".
    """
    parts = [(p or "").strip() for p in (prefix, body, suffix)]
    return " ".join(p for p in parts if p)


def txt_name(filename: str) -> str:
    """photo.final.png -> photo.final.txt; names without an extension keep the full name."""
    base = filename.rsplit("/", 1)[-1]
    stem = base[: base.rfind(".")] if "." in base else base
    if not stem:
        stem = base
    return f"{stem}.txt"


def unique_txt_names(filenames: Iterable[str]) -> List[str]:
    """
    .txt names for a batch; repeats get _1, _2 ... so nothing overwrites.
    """
    used: Dict[str, int] = {}
    taken: set[str] = set()
    out: List[str] = []
    for fn in filenames:
        name = txt_name(fn)
        stem = name[: -len(".txt")]
        if name in taken:
            n = used.get(name, 0)
            while True:
                n += 1
                candidate = f"{stem}_{n}.txt"
                if candidate not in taken:
                    break
            used[name] = n
            name = candidate
        taken.add(name)
        out.append(name)
    return out


def build_zip(entries: Iterable[Tuple[str, str]]) -> bytes:
    """entries: (original image filename, caption text). Returns zip bytes."""
    entries = list(entries)
    names = unique_txt_names(fn for fn, _ in entries)
    buf = BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, (_fn, content) in zip(names, entries):
            zf.writestr(name, content)
    return buf.getvalue()
