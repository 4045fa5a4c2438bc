from __future__ import annotations

import os
import shlex

import pytest

from image_actions.escaper import POSIX_POLICY, WINDOWS_POLICY
from image_actions.formats import GIF, JPEG, PNG
from image_actions.interpolate import (
    ActionSettings,
    interpolate_action,
    interpolate_line,
    parse_directives,
    reconcile_format,
)

posix_only = pytest.mark.skipif(os.name == "nt", reason="POSIX quoting")


# ---- %-placeholders ----


def test_template_without_file_is_returned_as_is(make_document, temp_files) -> None:
    pattern = "sleep 10; echo 50%W"
    assert interpolate_line(pattern, make_document(), temp_files) is pattern
    assert temp_files.temp_dir is None


@posix_only
def test_unmodified_file_is_used_directly(make_document, temp_files, producer) -> None:
    doc = make_document(filename="/pics/my cat.png")
    out = interpolate_line("gimp %f", doc, temp_files, producer)
    assert out == "gimp '/pics/my cat.png'"
    assert shlex.split(out) == ["gimp", "/pics/my cat.png"]
    assert producer.calls == []


def test_file_placeholder_needs_temp_manager(make_document) -> None:
    with pytest.raises(ValueError):
        interpolate_line("view %f", make_document(modified=True))


def test_file_is_materialized_once_per_call(make_document, temp_files, producer) -> None:
    doc = make_document(modified=True)
    out = interpolate_line("cmp %f %f", doc, temp_files, producer)
    _, a, b = out.split(" ")
    assert a == b
    assert len(producer.calls) == 1
    assert os.path.basename(a) == "tmp.png"


def test_rgb_directive_converts_indexed_image(make_document, temp_files, producer) -> None:
    doc = make_document(bpp=1, filename="/pics/logo.gif")
    out = interpolate_line(">RGB %f", doc, temp_files, producer)
    assert not out.startswith(" ")
    assert os.path.basename(out) == "logo.png"
    assert producer.calls == [(out, "png", 3)]


def test_format_directive(make_document, temp_files, producer) -> None:
    out = interpolate_line(">jpg  >bogus  convert %f", make_document(modified=True), temp_files, producer)
    assert out.startswith("convert ")
    assert out.endswith("tmp.jpg")
    assert producer.calls[0][1] == "jpeg"


def test_format_directive_without_saver(make_document, temp_files, make_producer) -> None:
    producer = make_producer(unsupported=("bmp",))
    out = interpolate_line(">bmp convert %f", make_document(modified=True), temp_files, producer)
    assert out.endswith("tmp.png")
    assert producer.calls[0][1] == "png"


def test_rgb_only_format_switches_indexed_image_to_rgb(make_document, temp_files, producer) -> None:
    out = interpolate_line(">jpeg %f", make_document(bpp=1, modified=True), temp_files, producer)
    assert out.endswith(".jpg")
    assert producer.calls[0][1:] == ("jpeg", 3)


def test_extended_placeholders(make_document) -> None:
    doc = make_document(
        filename="/pics/a.png",
        selection=(1, 2, 3, 4),
        cursor=(5, 0),
        transparent_index=7,
    )
    out = interpolate_line(">% %N %x,%y %wx%h @%X,%Y %Wx%H C%C T%T B%B A%A S%S M%M 100%% %q", doc)
    assert out == "/pics/a.png 1,2 3x4 @5,0 6x4 C256 T7 B3 A0 S0 M0 100% %q"


def test_unextended_template_only_expands_file(make_document, temp_files, producer) -> None:
    out = interpolate_line("%W %f %%", make_document(modified=True), temp_files, producer)
    assert out.startswith("%W ")
    assert out.endswith(" %%")


def test_info_mode_expands_everything_but_the_file(make_document, temp_files, producer) -> None:
    doc = make_document(modified=True, filename="/pics/a.png")
    out = interpolate_line("[%f] %N is %Wx%H", doc, temp_files, producer, command=False)
    assert out == "[] /pics/a.png is 6x4"
    assert producer.calls == []
    assert temp_files.temp_dir is None


def test_info_mode_ignores_directives(make_document) -> None:
    assert interpolate_line(">RGB %B", make_document(bpp=1), command=False) == ">RGB 1"


def test_parse_directives(make_document) -> None:
    d = parse_directives("  >rgb >% >PNG  body >jpg", make_document(bpp=1))
    assert d.rgb and d.extend and d.fmt is PNG
    assert d.body_start == len("  >rgb >% >PNG  ")


def test_reconcile_format(make_document) -> None:
    rgb_doc = make_document()
    indexed = make_document(bpp=1)
    assert reconcile_format(None, True, rgb_doc) == (None, True)
    assert reconcile_format(GIF, True, rgb_doc) == (None, True)
    assert reconcile_format(GIF, False, indexed) == (GIF, False)
    assert reconcile_format(JPEG, False, indexed) == (JPEG, True)
    assert reconcile_format(PNG, True, indexed) == (PNG, True)


# ---- ((name)) placeholders ----


def test_action_source_and_dest() -> None:
    s = ActionSettings(src="/tmp/my anim.gif", dest="out.gif", delay=7)
    out = interpolate_action("gifview -d ((delay)) ((src)) -o ((dest))", s, POSIX_POLICY)
    assert out == "gifview -d 7 '/tmp/my anim.gif' -o out.gif"


def test_action_source_mask_leaves_wildcards_bare() -> None:
    s = ActionSettings(src="/tmp/my frames/anim*.png")
    out = interpolate_action("convert ((srcmask))", s, POSIX_POLICY)
    assert out == "convert '/tmp/my frames/anim'*.png"


def test_action_width_height_only_when_set() -> None:
    assert interpolate_action("((src)) ((w)) ((h))", ActionSettings(src="a.svg"), POSIX_POLICY) == "a.svg  "
    s = ActionSettings(src="a.svg", width=100)
    assert interpolate_action("((src)) ((w)) ((h))", s, POSIX_POLICY) == "a.svg -w 100 "
    s = ActionSettings(src="a.svg", width=100, height=50)
    assert interpolate_action("((w)) ((h))", s, POSIX_POLICY) == "-w 100 -h 50"


def test_action_unknown_and_malformed() -> None:
    s = ActionSettings(src="x")
    assert interpolate_action("a((bogus))b", s, POSIX_POLICY) == "ab"
    assert interpolate_action("(((src))", s, POSIX_POLICY) == "(x"
    assert interpolate_action("echo ((src", s, POSIX_POLICY) == "echo ((src"
    assert interpolate_action("(())", s, POSIX_POLICY) == ""


def test_action_windows_policy() -> None:
    s = ActionSettings(src="C:\\My Docs\\100%.gif")
    assert interpolate_action("((src))", s, WINDOWS_POLICY) == '"C:\\My Docs\\100%%.gif"'
