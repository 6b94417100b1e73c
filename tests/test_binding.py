"""
Tests the EditableBinding control surface
"""

import pytest

from CopilotSync.editing import EditableBinding


@pytest.fixture
def binding(manager) -> EditableBinding:
    return EditableBinding(manager, "user-42", "bio", initial_value="Original")


def test_focus_type_blur_saves(binding, manager, scheduler, persistence):
    starts, ends, values = [], [], []
    binding.on_edit_start = lambda: starts.append(True)
    binding.on_edit_end = lambda: ends.append(True)
    binding.on_value_change = values.append

    binding.on_focus()
    assert binding.is_editing
    assert binding.css_classes == {"editable", "editing"}
    binding.on_input("Originally")
    binding.on_input("Originally mine")
    assert values == ["Originally", "Originally mine"]
    assert "has-changes" in binding.css_classes

    binding.on_blur()
    assert not binding.is_editing
    assert persistence.get("form", "user-42", "bio") == "Originally mine"
    assert starts == [True] and ends == [True]
    assert manager.get_active_sessions() == []


def test_escape_restores_value(binding, manager, scheduler):
    values = []
    binding.on_value_change = values.append
    binding.on_focus()
    binding.on_input("oops")
    scheduler.advance(0.3)
    assert binding.on_key("Escape")
    assert binding.value == "Original"
    assert values[-1] == "Original"
    assert manager.buffers("form", "user-42").get("bio") == "Original"
    assert not binding.is_editing
    assert scheduler.pending() == 0


def test_ctrl_s_saves_immediately(binding, persistence):
    binding.on_focus()
    binding.on_input("quick save")
    assert binding.on_key("s", ctrl=True)
    assert persistence.get("form", "user-42", "bio") == "quick save"
    assert binding.is_editing
    assert not binding.has_changes
    assert binding.on_key("S", meta=True)
    assert not binding.on_key("s")
    assert not binding.on_key("Enter")


def test_input_without_focus_starts_session(binding):
    binding.on_input("typed")
    assert binding.is_editing


def test_destroy_ends_with_save(binding, manager, persistence):
    binding.on_focus()
    binding.on_input("before teardown")
    binding.destroy()
    assert persistence.get("form", "user-42", "bio") == "before teardown"
    assert manager.get_active_sessions() == []
    binding.destroy()


def test_failing_listener_is_contained(binding):
    def broken(value):
        raise RuntimeError("view detached")

    binding.on_value_change = broken
    binding.on_input("still recorded")
    assert binding.has_changes


def test_initial_value_seeds_code_field(manager):
    binding = EditableBinding(manager, "btn", "html", entity_type="component", initial_value="<p>loaded</p>")
    assert binding.value == "<p>loaded</p>"
    assert manager.buffers("component", "btn").get("html") == "<p>loaded</p>"
    binding.on_focus()
    assert manager.get_session(binding.session_id).original_value == "<p>loaded</p>"
