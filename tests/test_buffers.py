"""
Tests the BufferStore and EditorBuffers
"""

from CopilotSync.editing import BufferStore, EditorBuffers, CODE_BUFFERS


def test_code_buffers_read_empty_until_loaded():
    store = BufferStore()
    for name in CODE_BUFFERS:
        assert not store.has(name)
        assert store.get(name) == ""
    assert store.snapshot().to_dict() == {"typescript": "", "html": "", "scss": ""}
    assert not store.has("bio")
    assert store.get("bio") == ""
    assert store.version == 0


def test_version_only_moves_on_real_changes():
    store = BufferStore({"bio": "hi"})
    store.set("bio", "hi")
    assert store.version == 0
    store.set("bio", "hello")
    assert store.version == 1
    store.set_many({"html": "<p/>", "scss": ""})
    assert store.version == 2
    store.set_many({"html": "<p/>"})
    assert store.version == 2


def test_snapshot_is_a_copy():
    store = BufferStore({"typescript": "a", "title": "T"})
    snap = store.snapshot()
    snap.fields["title"] = "changed"
    snap.typescript = "changed"
    assert store.get("title") == "T"
    assert store.get("typescript") == "a"
    assert snap["title"] == "changed"
    assert store.snapshot()["title"] == "T"


def test_editor_buffers_mapping_access():
    buffers = EditorBuffers.from_dict({"html": "<b/>", "bio": "x"})
    assert buffers["html"] == "<b/>"
    assert buffers["bio"] == "x"
    assert buffers["missing"] == ""
    assert buffers.get("missing", "d") == "d"
    assert "bio" in buffers and "typescript" in buffers and "nope" not in buffers
    assert list(buffers) == ["typescript", "html", "scss", "bio"]
    assert buffers.to_dict() == {"typescript": "", "html": "<b/>", "scss": "", "bio": "x"}
    assert not buffers.is_empty
    assert EditorBuffers().is_empty


def test_writing_the_empty_value_marks_field_loaded():
    store = BufferStore()
    store.set("html", "")
    assert store.has("html")
    assert store.version == 0
    store.set_many({"scss": "", "typescript": "let a;"})
    assert store.has("scss") and store.has("typescript")
    assert store.version == 1
