from __future__ import annotations

import os
from pathlib import Path

import pytest

from image_actions import tempfiles as tf
from image_actions.errors import ArtifactWriteError, NameExhaustedError, NoTempDirError
from image_actions.formats import GIF, JPEG, PNG, TGA
from image_actions.tempfiles import TempFileManager


def test_temp_base_prefers_environment_order(tmp_path: Path) -> None:
    m = TempFileManager(environ={"TMP": "/b", "TMPDIR": "/a", "TEMP": "/c"}, windows=False)
    assert m.temp_base() == "/a"
    m = TempFileManager(environ={"TMP": "", "TEMP": "/c"}, windows=False)
    assert m.temp_base() == "/c"


def test_temp_base_defaults() -> None:
    assert TempFileManager(environ={}, windows=False).temp_base() == "/tmp"
    assert TempFileManager(environ={}, windows=True).temp_base() == "\\"


def test_overlong_candidate_is_rejected() -> None:
    m = TempFileManager(environ={"TMPDIR": "/" + "x" * tf.PATH_MAX}, windows=False)
    assert m.temp_base() == "/tmp"


def test_temp_dir_is_created_once_and_private(temp_files: TempFileManager, tmp_path: Path) -> None:
    assert temp_files.temp_dir is None
    first = temp_files.ensure_temp_dir()
    assert temp_files.ensure_temp_dir() == first
    assert Path(first).parent == tmp_path
    assert os.path.basename(first).startswith(tf.TEMP_DIR_PREFIX)
    if os.name != "nt":
        assert os.stat(first).st_mode & 0o077 == 0


def test_no_temp_dir_error(tmp_path: Path) -> None:
    m = TempFileManager(environ={"TMPDIR": str(tmp_path / "missing" / "deeper")})
    with pytest.raises(NoTempDirError) as exc:
        m.ensure_temp_dir()
    assert exc.value.error_code == "NO_TEMP_DIR"
    assert m.temp_dir is None


def test_allocate_creates_unique_files(temp_files: TempFileManager) -> None:
    names = [temp_files.allocate_temp_name("/photos/holiday.jpg", "png") for _ in range(3)]
    assert [os.path.basename(n) for n in names] == ["holiday.png", "holiday1.png", "holiday2.png"]
    assert all(os.path.getsize(n) == 0 for n in names)


def test_allocate_unusable_hint_uses_tmp(temp_files: TempFileManager) -> None:
    assert os.path.basename(temp_files.allocate_temp_name(".hidden", "gif")) == "tmp.gif"
    assert os.path.basename(temp_files.allocate_temp_name(None, "gif")) == "tmp1.gif"


def test_allocate_skips_existing_names(temp_files: TempFileManager) -> None:
    d = temp_files.ensure_temp_dir()
    Path(d, "pic.png").write_bytes(b"x")
    Path(d, "pic1.png").write_bytes(b"x")
    assert os.path.basename(temp_files.allocate_temp_name("pic.bmp", "png")) == "pic2.png"


def test_allocate_falls_back_to_tmp_stub_then_exhausts(
    temp_files: TempFileManager, monkeypatch: pytest.MonkeyPatch
) -> None:
    temp_files.ensure_temp_dir()
    tried: list[str] = []

    def always_exists(path, flags, mode=0o777):
        tried.append(os.path.basename(path))
        raise FileExistsError(path)

    monkeypatch.setattr(tf.os, "open", always_exists)
    with pytest.raises(NameExhaustedError):
        temp_files.allocate_temp_name("photo.jpg", "png")

    assert len(tried) == 2 * tf.SCAN_WINDOW
    assert tried[0] == "photo.png"
    assert tried[tf.SCAN_WINDOW].startswith("tmp")


def test_recall_returns_original_when_unmodified(temp_files, make_document, producer, tmp_path: Path) -> None:
    src = tmp_path / "orig.png"
    src.write_bytes(b"\x89PNG\r\n\x1a\n" + b"\0" * 16)
    doc = make_document(filename=str(src))

    assert temp_files.recall_or_create(doc, None, True, producer) == str(src)
    assert temp_files.recall_or_create(doc, PNG, True, producer) == str(src)
    assert producer.calls == []
    assert temp_files.temp_dir is None


def test_recall_writes_when_format_differs(temp_files, make_document, producer, tmp_path: Path) -> None:
    src = tmp_path / "orig.png"
    src.write_bytes(b"\x89PNG\r\n\x1a\n" + b"\0" * 16)
    doc = make_document(filename=str(src))

    path = temp_files.recall_or_create(doc, JPEG, True, producer)
    assert path != str(src)
    assert os.path.basename(path) == "tmp.jpg"
    assert Path(path).read_bytes() == b"jpeg:3"


def test_recall_reuses_matching_record(temp_files, make_document, producer) -> None:
    doc = make_document(modified=True, filename="/pics/cat.png")
    a = temp_files.recall_or_create(doc, None, True, producer)
    b = temp_files.recall_or_create(doc, None, True, producer)
    assert a == b
    assert len(producer.calls) == 1
    assert os.path.basename(a) == "cat.png"


def test_recall_indexed_to_rgb_makes_separate_artifacts(temp_files, make_document, producer) -> None:
    doc = make_document(bpp=1, modified=True)
    indexed = temp_files.recall_or_create(doc, GIF, False, producer)
    rgb = temp_files.recall_or_create(doc, PNG, True, producer)
    assert indexed != rgb
    assert producer.calls[0][1:] == ("gif", 1)
    # Converted through the palette before saving
    assert producer.calls[1][1:] == ("png", 3)
    assert [r.rgb for r in temp_files.records] == [False, True]


def test_recall_same_format_differs_by_colour_mode(temp_files, make_document, producer) -> None:
    doc = make_document(bpp=1, modified=True)
    indexed = temp_files.recall_or_create(doc, PNG, False, producer)
    rgb = temp_files.recall_or_create(doc, PNG, True, producer)
    assert indexed != rgb
    assert [c[1:] for c in producer.calls] == [("png", 1), ("png", 3)]
    assert temp_files.recall_or_create(doc, PNG, False, producer) == indexed
    assert len(producer.calls) == 2


def test_recall_extension_without_saver_falls_back_to_png(temp_files, make_document, make_producer) -> None:
    producer = make_producer(unsupported=("bmp",))
    doc = make_document(modified=True, filename="/pics/scan.bmp")
    path = temp_files.recall_or_create(doc, None, True, producer)
    assert os.path.basename(path) == "scan.png"
    assert producer.calls == [(path, "png", 3)]


def test_recall_requested_format_without_saver(temp_files, make_document, make_producer) -> None:
    producer = make_producer(unsupported=("tga",))
    doc = make_document(modified=True, filename="/pics/scan.jpg")
    path = temp_files.recall_or_create(doc, TGA, True, producer)
    assert os.path.basename(path) == "scan.jpg"
    assert producer.calls == [(path, "jpeg", 3)]


def test_new_revision_starts_new_group(temp_files, make_document, producer) -> None:
    doc = make_document(modified=True, revision=1)
    first = temp_files.recall_or_create(doc, PNG, True, producer)
    edited = make_document(modified=True, revision=2)
    second = temp_files.recall_or_create(edited, PNG, True, producer)
    assert first != second
    # Newest group first; old files stay until shutdown
    assert [r.name for r in temp_files.records] == [second, first]
    assert os.path.exists(first)


def test_records_insert_after_anchor(temp_files, make_document, producer) -> None:
    old = temp_files.recall_or_create(make_document(modified=True, revision=1), PNG, True, producer)
    doc = make_document(modified=True, revision=2)
    anchor = temp_files.recall_or_create(doc, PNG, True, producer)
    jpg = temp_files.recall_or_create(doc, JPEG, True, producer)
    gif = temp_files.recall_or_create(doc, GIF, True, producer)
    assert [r.name for r in temp_files.records] == [anchor, gif, jpg, old]


def test_producer_failure_leaves_no_record(temp_files, make_document, failing_producer) -> None:
    doc = make_document(modified=True)
    with pytest.raises(ArtifactWriteError):
        temp_files.recall_or_create(doc, PNG, True, failing_producer)
    assert temp_files.records == ()
    assert os.listdir(temp_files.temp_dir) == []


def test_shutdown_removes_everything_and_is_idempotent(temp_files, make_document, producer) -> None:
    doc = make_document(modified=True)
    a = temp_files.recall_or_create(doc, PNG, True, producer)
    b = temp_files.recall_or_create(doc, JPEG, True, producer)
    os.unlink(b)  # consumed by an external program
    d = temp_files.temp_dir

    temp_files.shutdown()
    temp_files.shutdown()

    assert not os.path.exists(a)
    assert d is not None and not os.path.exists(d)
    assert temp_files.records == ()
    assert temp_files.temp_dir is None


def test_context_manager_shuts_down(tmp_path: Path) -> None:
    with TempFileManager(environ={"TMPDIR": str(tmp_path)}) as m:
        d = m.ensure_temp_dir()
    assert not os.path.exists(d)
