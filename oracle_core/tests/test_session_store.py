import json
import tempfile
from pathlib import Path

import pytest

from oracle_core.domain.exceptions import StorageUnavailable
from oracle_core.infrastructure.storage.session_store import (
    DisabledSessionStorage,
    JsonFileSessionStorage,
    MemorySessionStorage,
    create_session_storage,
)


def test_json_file_storage_persists_across_instances():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        s1 = JsonFileSessionStorage("sess-1", root=root)
        s1.set_item("k", "v")
        s2 = JsonFileSessionStorage("sess-1", root=root)
        assert s2.get_item("k") == "v"
        assert s2.keys() == ["k"]
        s2.remove_item("k")
        assert json.loads(s1.path.read_text(encoding="utf-8")) == {}
        # 临时文件不会残留
        assert [p.name for p in (root / "sessions").iterdir()] == ["sess-1.json"]


def test_json_file_storage_corrupt_file_raises():
    with tempfile.TemporaryDirectory() as d:
        storage = JsonFileSessionStorage("bad", root=d)
        storage.path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(StorageUnavailable):
            storage.get_item("k")


def test_disabled_storage_raises():
    with pytest.raises(StorageUnavailable) as exc:
        DisabledSessionStorage().set_item("k", "v")
    assert exc.value.code == "STORAGE_DISABLED"


def test_create_session_storage_defaults_to_memory():
    assert isinstance(create_session_storage("memory"), MemorySessionStorage)
