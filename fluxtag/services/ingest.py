"""
Purpose:
- Turn uploaded files and .zip archives into a flat list of decodable images.
- Infer a MIME type when the browser/archive gives none.
- Build small JPEG previews (EXIF-corrected) for the UI.

Notes:
- Zip members: directories, __MACOSX junk, dot-files and non-image extensions are skipped;
  member paths are stripped to the base name.
- Every image is opened with Pillow first; anything that does not decode is
  reported in `skipped` instead of becoming a work item.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from io import BytesIO
from typing import Iterable, List, Optional, Sequence, Tuple
import zipfile

from PIL import Image, ImageOps, UnidentifiedImageError

from ..core.logging_config import get_logger
from ..jobs.models import ImagePayload, PreviewHandle

logger = get_logger("Ingest")

DEFAULT_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp", ".bmp")

_MIME_BY_EXT = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
}

@dataclass
class IngestReport:
    images: List[ImagePayload] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"added": len(self.images), "skipped": self.skipped, "errors": self.errors}


def infer_mime(filename: str, declared: Optional[str] = None) -> str:
    """Declared type if it is a real one, else by extension, else image/jpeg."""
    if declared and declared.strip() and declared != "application/octet-stream":
        return declared
    name = (filename or "").lower()
    for ext, mime in _MIME_BY_EXT.items():
        if name.endswith(ext):
            return mime
    return "image/jpeg"


def is_image_name(filename: str, extensions: Sequence[str] = DEFAULT_EXTENSIONS) -> bool:
    return (filename or "").lower().endswith(tuple(e.lower() for e in extensions))


def is_zip_upload(filename: str, content_type: Optional[str]) -> bool:
    return content_type in ("application/zip", "application/x-zip-compressed") or (filename or "").lower().endswith(".zip")


def is_decodable(data: bytes) -> bool:
    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
        return True
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        return False


def make_preview(data: bytes, max_px: int = 384) -> PreviewHandle:
    with Image.open(BytesIO(data)) as img:
        thumb = ImageOps.exif_transpose(img).convert("RGB")
        thumb.thumbnail((max_px, max_px))
        buf = BytesIO()
        thumb.save(buf, format="JPEG", quality=85)
    return PreviewHandle(data=buf.getvalue(), mime_type="image/jpeg")


def extract_images_from_zip(data: bytes, extensions: Sequence[str] = DEFAULT_EXTENSIONS) -> List[Tuple[str, bytes, str]]:
    """
    Return (clean_name, bytes, mime) for every image member of a zip archive.
    Raises zipfile.BadZipFile for archives that cannot be read.
    """
    out: List[Tuple[str, bytes, str]] = []
    with zipfile.ZipFile(BytesIO(data)) as zf:
        for info in zf.infolist():
            if info.is_dir():
                continue
            name = info.filename
            lower = name.lower()
            if "__macosx" in lower or name.startswith("."):
                continue
            if not is_image_name(lower, extensions):
                continue
            clean = name.rsplit("/", 1)[-1] or name
            if clean.startswith("."):
                continue
            out.append((clean, zf.read(info), infer_mime(clean)))
    return out


def ingest_uploads(files: Iterable[Tuple[str, Optional[str], bytes]],
                   extensions: Sequence[str] = DEFAULT_EXTENSIONS) -> IngestReport:
    """
    files: (filename, content_type, raw bytes). A bad archive or image is
    reported and skipped; it never aborts the rest of the upload.
    """
    report = IngestReport()
    for filename, content_type, raw in files:
        candidates: List[Tuple[str, bytes, str]] = []
        if is_zip_upload(filename, content_type):
            try:
                candidates = extract_images_from_zip(raw, extensions)
            except zipfile.BadZipFile as e:
                logger.warning(f"Failed to unzip {filename}: {e}")
                report.errors.append(f"无法解压文件 {filename}")
                continue
        elif (content_type or "").startswith("image/") or is_image_name(filename, extensions):
            candidates = [(filename, raw, infer_mime(filename, content_type))]
        else:
            report.skipped.append(filename)
            continue

        for name, data, mime in candidates:
            if not is_decodable(data):
                report.skipped.append(name)
                continue
            report.images.append(ImagePayload(filename=name, data=data, mime_type=mime))

    logger.info(f"Ingested {len(report.images)} images ({len(report.skipped)} skipped, {len(report.errors)} errors)")
    return report
