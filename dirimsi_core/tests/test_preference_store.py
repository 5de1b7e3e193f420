import json
import tempfile
from pathlib import Path

import pytest

from dirimsi_core.domain.exceptions import BusinessError
from dirimsi_core.infrastructure.storage.preference_store import InMemoryPreferenceStore, JsonPreferenceStore


def test_json_store_set_and_get():
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / ".storage" / "preferences.json"
        store = JsonPreferenceStore(path)
        assert store.get("dirimsi.first_visit_at") is None
        store.set("dirimsi.first_visit_at", "2026-10-18T10:00:00+00:00")
        # 新实例能读到同一份数据
        again = JsonPreferenceStore(path)
        assert again.get("dirimsi.first_visit_at") == "2026-10-18T10:00:00+00:00"
        assert json.loads(path.read_text(encoding="utf-8")) == {
            "dirimsi.first_visit_at": "2026-10-18T10:00:00+00:00"
        }
        assert not list(path.parent.glob("*.tmp"))


def test_json_store_corrupt_file():
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / "preferences.json"
        path.write_text("{not json", encoding="utf-8")
        store = JsonPreferenceStore(path)
        with pytest.raises(BusinessError) as exc:
            store.get("anything")
        assert exc.value.code == "STORE_READ_ERROR"


def test_in_memory_store():
    store = InMemoryPreferenceStore({"a": "1"})
    store.set("b", "2")
    assert store.get("a") == "1"
    assert store.get("b") == "2"
    assert store.get("c") is None


def test_json_store_failed_replace_removes_temp_file(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / "preferences.json"
        store = JsonPreferenceStore(path)

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("dirimsi_core.infrastructure.storage.preference_store.os.replace", broken_replace)
        with pytest.raises(BusinessError) as exc:
            store.set("dirimsi.last_greeting_at", "2026-10-18T10:00:00+00:00")
        assert exc.value.code == "STORE_WRITE_ERROR"
        assert not list(path.parent.glob("*.tmp"))
        assert not path.exists()
