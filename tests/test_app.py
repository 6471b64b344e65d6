import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
pytest.importorskip(
    "PySide6.QtWidgets",
    reason="PySide6 GUI bindings unavailable in headless test env",
    exc_type=ImportError,
)

from PySide6.QtWidgets import QApplication

from imgfit.app import CompressWorker, format_item
from imgfit.errors import DecodeError, ReadError
from imgfit.models import CompressionOptions, CompressionResult, ItemResult

from conftest import encode, make_noise


@pytest.fixture(scope="module")
def qapp():
    return QApplication.instance() or QApplication([])


def make_result(**overrides):
    values = dict(
        data=b"x",
        final_width=100,
        final_height=80,
        quality_used=0.4,
        output_format="image/jpeg",
        original_size_kb=200.0,
        compressed_size_kb=40.0,
        compression_ratio=80.0,
        original_width=400,
        original_height=320,
        target_size_kb=50,
    )
    values.update(overrides)
    return CompressionResult(**values)


def test_format_item_lines():
    assert "节省 80.00%" in format_item("a.jpg", ItemResult("a.jpg", result=make_result()))
    over = make_result(compressed_size_kb=60.0)
    assert "未达到目标大小" in format_item("a.jpg", ItemResult("a.jpg", result=over))
    kept = make_result(quality_used="original", compressed_size_kb=200.0, compression_ratio=0.0)
    assert "保留原图" in format_item("a.jpg", ItemResult("a.jpg", result=kept))
    failed = ItemResult("a.jpg", error=DecodeError("bad data"))
    assert format_item("a.jpg", failed) == "a.jpg 压缩失败：bad data"


def test_worker_writes_outputs_and_reports_progress(qapp, tmp_path):
    source_dir = tmp_path / "in"
    source_dir.mkdir()
    good = source_dir / "good.png"
    good.write_bytes(encode(make_noise(300, 200), "PNG"))
    bad = source_dir / "bad.jpg"
    bad.write_bytes(b"nope")
    out_dir = tmp_path / "out"
    worker = CompressWorker([good, bad], source_dir, out_dir, CompressionOptions(target_size_kb=30))
    progress = []
    finished = []
    worker.progress.connect(lambda percent, name, item: progress.append((percent, name, item.success)))
    worker.finished.connect(finished.append)

    worker.run()

    assert progress == [(50, "good.png", True), (100, "bad.jpg", False)]
    assert len(finished) == 1 and len(finished[0]) == 2
    assert (out_dir / "good.jpg").exists()
    assert not (out_dir / "bad.jpg").exists()


def test_worker_reports_unreadable_file(qapp, tmp_path):
    missing = tmp_path / "gone.jpg"
    worker = CompressWorker([missing], tmp_path, tmp_path / "out", CompressionOptions())
    finished = []
    worker.finished.connect(finished.append)

    worker.run()

    assert len(finished) == 1
    assert isinstance(finished[0][0].error, ReadError)


def test_worker_always_emits_finished(qapp, tmp_path):
    image = tmp_path / "a.png"
    image.write_bytes(encode(make_noise(300, 200), "PNG"))
    blocked = tmp_path / "blocked"
    blocked.write_text("not a directory")
    worker = CompressWorker([image], tmp_path, blocked, CompressionOptions(target_size_kb=30))
    finished = []
    worker.finished.connect(finished.append)

    with pytest.raises(OSError):
        worker.run()

    assert len(finished) == 1
