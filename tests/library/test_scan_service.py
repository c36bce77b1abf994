"""目录扫描：图片识别、隐藏文件跳过与尺寸读取。"""

import io

from PIL import Image

from app.packages.library.services.image_probe import probe_image
from app.packages.library.services.scan_service import scan_directory


def _write_png(path, size=(5, 7)):
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size).save(path, format="PNG")


def test_scan_builds_consistent_tree(tmp_path):
    _write_png(tmp_path / "Products" / "Electronics" / "laptop.png", (12, 8))
    (tmp_path / "Products" / "logo.svg").write_text("<svg xmlns='http://www.w3.org/2000/svg'/>")
    (tmp_path / "Products" / "notes.txt").write_text("not an image")
    (tmp_path / ".cache").mkdir()
    _write_png(tmp_path / ".cache" / "thumb.png")

    result = scan_directory(tmp_path)
    tree = result.tree

    assert tree.check_invariants() == []
    assert [n.path for n in tree.flatten()] == [
        "/Products",
        "/Products/Electronics",
        "/Products/Electronics/laptop.png",
        "/Products/logo.svg",
    ]
    assert result.scanned == 2

    laptop = tree.find_by_path("/Products/Electronics/laptop.png")
    assert (laptop.width, laptop.height) == (12, 8)
    assert laptop.mime_type == "image/png"
    assert result.source_of(laptop) == tmp_path.resolve() / "Products" / "Electronics" / "laptop.png"

    svg = tree.find_by_path("/Products/logo.svg")
    assert (svg.width, svg.height) == (None, None)


def test_scan_missing_root_yields_empty_tree(tmp_path):
    result = scan_directory(tmp_path / "absent")
    assert len(result.tree) == 0
    assert result.scanned == 0


def test_probe_image_ignores_unreadable_bytes():
    assert probe_image(b"not really a png", "broken.png") == (None, None)
    assert probe_image(b"<svg/>", "vector.svg") == (None, None)

    buf = io.BytesIO()
    Image.new("L", (3, 9)).save(buf, format="GIF")
    assert probe_image(buf.getvalue(), "anim.gif") == (3, 9)
