"""Unit tests for the splitter state machine.

WHY: The splitter decides where every segment and resource block starts
and ends. Mistakes here either lose content, merge tabs, or accept a
truncated cartridge as if it were complete.

HOW: Most tests drive split_lines() with an in-memory list of lines and
inspect the part files it writes to tmp_path. split_cartridge() is
exercised against the sample cartridge from conftest.py.

RULES:
- Part file content is always checked byte for byte.
- Truncation tests assert the state the tokenizer ended in.
"""

import json

import pytest

from picoeater.config import MANIFEST_FILENAME, RESOURCE_SUFFIX, SEGMENT_SUFFIX
from picoeater.core.splitter import (
    MalformedCartridgeError,
    sanitize_stem,
    split_cartridge,
    split_lines,
)

HEADER = ["pico-8 cartridge // http://www.pico-8.com", "version 41"]


def _read(path):
    return path.read_bytes().decode("utf-8")


class TestSampleCartridge:
    """split_cartridge on the shared sample produces the expected parts."""

    def test_segment_files(self, sample_cart, parts_dir):
        result = split_cartridge(sample_cart, parts_dir)

        assert [s.name for s in result.segments] == ["dr chaos", "splash screen", "tab2"]
        assert _read(parts_dir / "dr chaos.lua") == "-- dr chaos\nfunction _init()\n  t = 0\nend\n"
        assert _read(parts_dir / "splash screen.lua") == '-- splash screen\nprint("hi")\n'

    def test_unnamed_segment_gets_synthesized_comment(self, sample_cart, parts_dir):
        result = split_cartridge(sample_cart, parts_dir)

        assert result.segments[2].display_name is None
        assert _read(parts_dir / "tab2.lua") == "-- tab2\nx = 1\n"

    def test_resource_files_start_with_tag(self, sample_cart, parts_dir):
        result = split_cartridge(sample_cart, parts_dir)

        assert [r.kind for r in result.resources] == ["gfx", "gff", "sfx", "music"]
        assert _read(parts_dir / "gff.p8res") == "__gff__\n0001000000000000\n"
        assert _read(parts_dir / "music.p8res") == "__music__\n00 01424344\n"

    def test_manifest_written(self, sample_cart, parts_dir):
        result = split_cartridge(sample_cart, parts_dir)

        assert result.manifest_path == parts_dir / MANIFEST_FILENAME
        data = json.loads((parts_dir / MANIFEST_FILENAME).read_text(encoding="utf-8"))
        assert data["version"] == "41"
        assert data["segments"] == ["dr chaos", "splash screen", "tab2"]
        assert data["resources"] == ["gfx", "gff", "sfx", "music"]

    def test_creates_missing_output_directory(self, sample_cart, tmp_path):
        out = tmp_path / "deep" / "parts"
        split_cartridge(sample_cart, out)
        assert (out / "tab2.lua").is_file()

    def test_crlf_cartridge_gives_lf_parts(self, tmp_path, parts_dir, sample_lines, write_lines):
        cart = write_lines(tmp_path / "crlf.p8", sample_lines, newline="\r\n")
        result = split_cartridge(cart, parts_dir)
        for path in result.paths:
            assert b"\r" not in path.read_bytes()


class TestTruncation:
    """Ending in Init, LuaStart or ResourceStart is a malformed cartridge."""

    def test_ends_right_after_resource_tag(self, tmp_path):
        lines = HEADER + ["__lua__", "-- main", "x = 1", "__gfx__"]
        with pytest.raises(MalformedCartridgeError) as exc_info:
            split_lines(lines, tmp_path)
        assert exc_info.value.state == "ResourceStart"
        assert exc_info.value.line_number == 6

    def test_ends_after_scissor(self, tmp_path):
        lines = HEADER + ["__lua__", "-- main", "-->8"]
        with pytest.raises(MalformedCartridgeError) as exc_info:
            split_lines(lines, tmp_path)
        assert exc_info.value.state == "LuaStart"

    def test_ends_after_code_marker(self, tmp_path):
        with pytest.raises(MalformedCartridgeError) as exc_info:
            split_lines(HEADER + ["__lua__"], tmp_path)
        assert exc_info.value.state == "LuaStart"

    def test_not_a_cartridge(self, tmp_path):
        with pytest.raises(MalformedCartridgeError) as exc_info:
            split_lines(["hello", "world"], tmp_path)
        assert exc_info.value.state == "Init"

    def test_empty_input(self, tmp_path):
        with pytest.raises(MalformedCartridgeError) as exc_info:
            split_lines([], tmp_path)
        assert exc_info.value.line_number == 0

    def test_is_a_value_error(self, tmp_path):
        with pytest.raises(ValueError):
            split_lines(["nope"], tmp_path)

    def test_flushed_parts_stay_in_place(self, tmp_path):
        lines = HEADER + ["__lua__", "-- main", "x = 1", "__gfx__"]
        with pytest.raises(MalformedCartridgeError):
            split_lines(lines, tmp_path)
        assert _read(tmp_path / "main.lua") == "-- main\nx = 1\n"

    def test_empty_resource_followed_by_tag_is_fine(self, tmp_path):
        lines = HEADER + ["__lua__", "-- main", "__gff__", "__map__", "0000"]
        result = split_lines(lines, tmp_path)
        assert _read(tmp_path / "gff.p8res") == "__gff__\n"
        assert _read(tmp_path / "map.p8res") == "__map__\n0000\n"
        assert [r.kind for r in result.resources] == ["gff", "map"]


class TestBoundaries:
    def test_header_lines_are_dropped(self, tmp_path):
        result = split_lines(HEADER + ["extra", "__lua__", "-- a", "x"], tmp_path)
        assert result.manifest.version == "41"
        assert _read(tmp_path / "a.lua") == "-- a\nx\n"

    def test_no_version_line(self, tmp_path):
        result = split_lines(["__lua__", "-- a", "x"], tmp_path)
        assert result.manifest.version is None

    def test_scissor_right_after_code_marker(self, tmp_path):
        result = split_lines(["__lua__", "-->8", "-- b", "x"], tmp_path)
        assert [s.name for s in result.segments] == ["tab0", "b"]
        assert _read(tmp_path / "tab0.lua") == "-- tab0\n"

    def test_tag_right_after_scissor(self, tmp_path):
        result = split_lines(["__lua__", "-- a", "-->8", "__gfx__", "00"], tmp_path)
        assert [s.name for s in result.segments] == ["a", "tab1"]
        assert _read(tmp_path / "tab1.lua") == "-- tab1\n"
        assert _read(tmp_path / "gfx.p8res") == "__gfx__\n00\n"

    def test_non_tag_lookalikes_are_content(self, tmp_path):
        lines = ["__lua__", "-- a", "__a.b__", "__a b__", "__gfx__", "__x=y__"]
        split_lines(lines, tmp_path)
        assert _read(tmp_path / "a.lua") == "-- a\n__a.b__\n__a b__\n"
        assert _read(tmp_path / "gfx.p8res") == "__gfx__\n__x=y__\n"

    def test_unnamed_first_segment_keeps_its_first_line(self, tmp_path):
        split_lines(["__lua__", "x = 1", "y = 2"], tmp_path)
        assert _read(tmp_path / "tab0.lua") == "-- tab0\nx = 1\ny = 2\n"

    def test_only_expected_files_written(self, tmp_path):
        result = split_lines(["__lua__", "-- a", "x", "__sfx__", "0"], tmp_path)
        names = sorted(p.name for p in tmp_path.iterdir())
        assert names == ["a" + SEGMENT_SUFFIX, "sfx" + RESOURCE_SUFFIX]
        assert sorted(p.name for p in result.paths) == names


class TestNaming:
    def test_collisions_get_suffix(self, tmp_path):
        lines = ["__lua__", "-- foo", "a", "-->8", "-- foo", "b", "-->8", "-- FOO", "c"]
        result = split_lines(lines, tmp_path)

        assert [s.name for s in result.segments] == ["foo", "foo-2", "FOO-3"]
        # The original comment is kept; only the file name changes
        assert _read(tmp_path / "foo-2.lua") == "-- foo\nb\n"

    def test_placeholder_collision(self, tmp_path):
        result = split_lines(["__lua__", "-- tab1", "a", "-->8", "b"], tmp_path)

        assert [s.name for s in result.segments] == ["tab1", "tab1-2"]
        assert _read(tmp_path / "tab1-2.lua") == "-- tab1-2\nb\n"

    def test_unsafe_characters_replaced(self, tmp_path):
        result = split_lines(["__lua__", "-- enemies/ai: v2", "x"], tmp_path)
        assert result.segments[0].name == "enemies_ai_ v2"
        assert result.segments[0].display_name == "enemies/ai: v2"
        assert _read(tmp_path / "enemies_ai_ v2.lua") == "-- enemies/ai: v2\nx\n"

    def test_unusable_name_falls_back_to_placeholder(self, tmp_path):
        result = split_lines(["__lua__", "-- ...", "x"], tmp_path)
        assert result.segments[0].name == "tab0"
        assert _read(tmp_path / "tab0.lua") == "-- ...\nx\n"

    def test_sanitize_stem_caps_length(self):
        assert len(sanitize_stem("x" * 200)) == 64

    def test_sanitize_stem_trims_dots(self):
        assert sanitize_stem(" .hidden. ") == "hidden"


class TestDuplicateResources:
    LINES = ["__lua__", "-- a", "x", "__gfx__", "1", "__sfx__", "2", "__gfx__", "3"]

    def test_last_block_wins(self, tmp_path):
        result = split_lines(self.LINES, tmp_path)

        assert [r.key for r in result.resources] == ["gfx", "sfx"]
        assert result.manifest.order.resources == ["gfx", "sfx"]
        assert _read(tmp_path / "gfx.p8res") == "__gfx__\n3\n"

    def test_keep_duplicates(self, tmp_path):
        result = split_lines(self.LINES, tmp_path, keep_duplicates=True)

        assert [r.key for r in result.resources] == ["gfx", "sfx", "gfx-2"]
        assert [r.kind for r in result.resources] == ["gfx", "sfx", "gfx"]
        assert _read(tmp_path / "gfx.p8res") == "__gfx__\n1\n"
        assert _read(tmp_path / "gfx-2.p8res") == "__gfx__\n3\n"

    def test_kinds_differing_in_case_are_not_duplicates(self, tmp_path, caplog):
        lines = ["__lua__", "-- a", "x", "__GFX__", "1", "__gfx__", "2"]
        with caplog.at_level("WARNING", logger="picoeater.core.splitter"):
            result = split_lines(lines, tmp_path)

        assert [(r.kind, r.key) for r in result.resources] == [("GFX", "GFX"), ("gfx", "gfx-2")]
        assert _read(tmp_path / "GFX.p8res") == "__GFX__\n1\n"
        assert _read(tmp_path / "gfx-2.p8res") == "__gfx__\n2\n"
        assert "Duplicate" not in caplog.text

    def test_kinds_sanitizing_to_same_name_get_own_files(self, tmp_path):
        lines = ["__lua__", "-- a", "x", "__a:b__", "1", "__a/b__", "2"]
        result = split_lines(lines, tmp_path)

        assert [r.kind for r in result.resources] == ["a:b", "a/b"]
        assert [r.key for r in result.resources] == ["a_b", "a_b-2"]
        assert result.manifest.order.resources == ["a_b", "a_b-2"]
        assert _read(tmp_path / "a_b.p8res") == "__a:b__\n1\n"
        assert _read(tmp_path / "a_b-2.p8res") == "__a/b__\n2\n"
