#!/usr/bin/env python3
"""
Tests for the GUI helpers that do not need a display.
"""

from pathlib import Path

import pytest

pytest.importorskip("tkinter")

from video_flattener_core import VIDEO_EXTENSIONS, Match  # noqa: E402
from video_flattener_gui import SelectionModel, parse_args  # noqa: E402


def make_matches():
    return [
        Match(folder=Path("/videos/a"), video_count=1, total_bytes=10),
        Match(folder=Path("/videos/b"), video_count=2, total_bytes=20),
        Match(folder=Path("/videos/c"), video_count=3, total_bytes=30),
    ]


def test_new_scan_selects_everything():
    model = SelectionModel()
    matches = make_matches()

    model.reset(matches)

    assert model.chosen() == matches


def test_toggle_and_set_all():
    model = SelectionModel()
    matches = make_matches()
    model.reset(matches)

    assert model.toggle(Path("/videos/b")) is False
    assert model.chosen() == [matches[0], matches[2]]

    model.set_all(False)
    assert model.chosen() == []

    model.set_all(True)
    assert model.chosen() == matches


def test_toggle_leaves_match_records_untouched():
    model = SelectionModel()
    matches = make_matches()
    model.reset(matches)

    model.toggle(Path("/videos/a"))

    assert all(m.selected for m in matches)


def test_rescan_discards_previous_selection():
    model = SelectionModel()
    model.reset(make_matches())
    model.set_all(False)

    fresh = make_matches()
    model.reset(fresh)

    assert model.chosen() == fresh


def test_toggle_unknown_folder():
    model = SelectionModel()
    model.reset(make_matches())

    with pytest.raises(KeyError):
        model.toggle(Path("/videos/zzz"))
    assert not model.is_selected(Path("/videos/zzz"))


def test_parse_args_defaults_and_extensions():
    args = parse_args([])
    assert args.root is None
    assert args.extensions == VIDEO_EXTENSIONS

    args = parse_args(["/some/root", "--extensions", ".MP4,braw"])
    assert args.root == "/some/root"
    assert args.extensions == frozenset({"mp4", "braw"})
