"""
Tests for the WindowState model and WindowStateStore.
"""

import json

import pytest

from switchboard.src.domain.models.window_state import DEFAULT_WINDOW_STATE, WindowState
from switchboard.src.infrastructure.storage.window_state_store import WindowStateStore


@pytest.fixture
def store(tmp_path):
    return WindowStateStore(tmp_path / "configs" / "window_state.json")


class TestValidity:

    @pytest.mark.parametrize("width,height", [(400, 400), (4000, 3000), (800, 600)])
    def test_size_bounds_are_inclusive(self, width, height):
        assert WindowState(width=width, height=height).is_valid()

    @pytest.mark.parametrize("width,height", [(399, 600), (4001, 600), (800, 399), (800, 3001)])
    def test_size_outside_bounds_is_invalid(self, width, height):
        assert not WindowState(width=width, height=height).is_valid()

    @pytest.mark.parametrize("x,y", [(-32000, -32000), (-1000, 100), (100, 10000)])
    def test_offscreen_position_is_invalid(self, x, y):
        assert not WindowState(x=x, y=y).is_valid()

    def test_from_dict_rejects_missing_and_mistyped_fields(self):
        assert WindowState.from_dict({"x": 1, "y": 1, "width": 500}) is None
        assert WindowState.from_dict(
            {"x": True, "y": 1, "width": 500, "height": 500, "maximized": False}) is None
        assert WindowState.from_dict(
            {"x": 1, "y": 1, "width": 500, "height": 500, "maximized": "no"}) is None


class TestStore:

    def test_missing_file_loads_default(self, store):
        assert store.load() == DEFAULT_WINDOW_STATE

    def test_round_trip(self, store):
        state = WindowState(x=10, y=20, width=1024, height=768, maximized=True)
        assert store.save(state) is True
        assert store.load() == state

    def test_invalid_save_leaves_previous_file_untouched(self, store):
        valid = WindowState(x=10, y=20, width=1024, height=768)
        store.save(valid)
        before = store.state_file.read_bytes()

        assert store.save(WindowState(width=100, height=100)) is False

        assert store.state_file.read_bytes() == before

    def test_invalid_file_content_loads_default(self, store):
        store.state_file.parent.mkdir(parents=True)
        store.state_file.write_text(json.dumps(
            {"x": 0, "y": 0, "width": 50, "height": 50, "maximized": False}), encoding="utf-8")
        assert store.load() == DEFAULT_WINDOW_STATE

    def test_corrupt_file_loads_default(self, store):
        store.state_file.parent.mkdir(parents=True)
        store.state_file.write_text("not json", encoding="utf-8")
        assert store.load() == DEFAULT_WINDOW_STATE
