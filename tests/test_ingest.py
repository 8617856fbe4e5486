import zipfile
from io import BytesIO

from PIL import Image

from fluxtag.services.ingest import (
    extract_images_from_zip,
    infer_mime,
    ingest_uploads,
    is_decodable,
    make_preview,
)

from conftest import png_bytes


def zip_of(members):
    buf = BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in members:
            zf.writestr(name, data)
    return buf.getvalue()


def test_infer_mime():
    assert infer_mime("a.PNG") == "image/png"
    assert infer_mime("b.jpeg") == "image/jpeg"
    assert infer_mime("c.webp", "") == "image/webp"
    assert infer_mime("d.bmp", "application/octet-stream") == "image/bmp"
    assert infer_mime("e.png", "image/x-custom") == "image/x-custom"
    assert infer_mime("noext") == "image/jpeg"


def test_zip_members_are_filtered_and_flattened():
    archive = zip_of([
        ("set/cat.png", png_bytes()),
        ("set/dog.JPG", png_bytes(fmt="JPEG")),
        ("__MACOSX/set/._cat.png", b"junk"),
        (".hidden.png", png_bytes()),
        ("set/.DS_Store", b"junk"),
        ("set/readme.txt", b"hello"),
        ("set/sub/", b""),
    ])
    out = extract_images_from_zip(archive)
    assert [(name, mime) for name, _data, mime in out] == [
        ("cat.png", "image/png"),
        ("dog.JPG", "image/jpeg"),
    ]


def test_ingest_mixes_files_and_archives():
    archive = zip_of([("a/one.png", png_bytes()), ("a/two.webp", png_bytes(fmt="WEBP"))])
    report = ingest_uploads([
        ("single.png", "image/png", png_bytes()),
        ("batch.zip", "application/zip", archive),
        ("notes.txt", "text/plain", b"not an image"),
    ])
    assert [p.filename for p in report.images] == ["single.png", "one.png", "two.webp"]
    assert report.images[2].mime_type == "image/webp"
    assert report.skipped == ["notes.txt"]
    assert report.errors == []


def test_bad_archive_is_reported_not_raised():
    report = ingest_uploads([
        ("broken.zip", "application/zip", b"PK not really a zip"),
        ("ok.png", "image/png", png_bytes()),
    ])
    assert report.errors == ["无法解压文件 broken.zip"]
    assert [p.filename for p in report.images] == ["ok.png"]
    assert report.to_dict() == {"added": 1, "skipped": [], "errors": ["无法解压文件 broken.zip"]}


def test_undecodable_image_is_skipped():
    assert not is_decodable(b"\x89PNG garbage")
    report = ingest_uploads([("fake.png", "image/png", b"\x89PNG garbage")])
    assert report.images == []
    assert report.skipped == ["fake.png"]


def test_preview_is_small_jpeg():
    handle = make_preview(png_bytes(size=(1000, 500)), max_px=100)
    assert handle.mime_type == "image/jpeg"
    with Image.open(BytesIO(handle.data)) as img:
        assert img.format == "JPEG"
        assert img.size == (100, 50)
