"""
Tests the persistence backends
"""

import json

import pytest

from CopilotSync.editing import EditSessionManager
from CopilotSync.infrastructure import PersistenceError
from CopilotSync.storage import JsonFilePersistence, PersistRequest


def test_json_file_roundtrip(tmp_path):
    backend = JsonFilePersistence(tmp_path)
    assert backend.load("form", "user-42") == {}

    assert backend.persist(PersistRequest("form", "user-42", "bio", "Hello")) is True
    assert backend.persist(PersistRequest("form", "user-42", "title", "Dr")) is True
    assert backend.persist(PersistRequest("form", "user-42", "bio", "Hello again")) is True

    assert backend.load("form", "user-42") == {"bio": "Hello again", "title": "Dr"}
    data = json.loads((tmp_path / "form" / "user-42.json").read_text())
    assert data["fields"]["bio"] == "Hello again"
    assert "last_modified" in data


def test_entity_ids_are_sanitised(tmp_path):
    backend = JsonFilePersistence(tmp_path)
    path = backend.get_entity_path("component", "../../etc/passwd")
    assert path.parent == tmp_path / "component"
    assert path.name == ".._.._etc_passwd.json"

    backend.persist(PersistRequest("component", "a/b c", "html", "<p/>"))
    assert (tmp_path / "component" / "a_b_c.json").exists()
    assert backend.load("component", "a/b c") == {"html": "<p/>"}


def test_corrupt_file_raises_persistence_error(tmp_path):
    backend = JsonFilePersistence(tmp_path)
    path = backend.get_entity_path("form", "user-42")
    path.parent.mkdir(parents=True)
    path.write_text("{broken")

    with pytest.raises(PersistenceError) as info:
        backend.persist(PersistRequest("form", "user-42", "bio", "x"))
    assert info.value.context["path"] == str(path)
    assert isinstance(info.value.original_error, ValueError)


def test_manager_saves_to_json_files(tmp_path, scheduler, telemetry, config):
    backend = JsonFilePersistence(tmp_path)
    manager = EditSessionManager(scheduler=scheduler, persistence=backend, telemetry=telemetry, config=config)
    sid = manager.start_edit_session("version", "v1", auto_save=False)
    manager.record_change(sid, "scss", "", ".a { color: red; }")
    assert manager.save_session(sid)
    assert backend.load("version", "v1") == {"scss": ".a { color: red; }"}
    assert not manager.has_unsaved_changes(sid)


def test_rejected_json_write_reflags_session(tmp_path, scheduler, telemetry, config):
    backend = JsonFilePersistence(tmp_path)
    path = backend.get_entity_path("form", "user-42")
    path.parent.mkdir(parents=True)
    path.write_text("[]")

    manager = EditSessionManager(scheduler=scheduler, persistence=backend, telemetry=telemetry, config=config)
    sid = manager.start_edit_session("form", "user-42", field="bio", auto_save=False)
    manager.record_change(sid, "bio", "", "x")
    manager.save_session(sid)
    assert manager.has_unsaved_changes(sid)
    assert manager.get_session(sid).pending == {"bio": "x"}
