import json
import pathlib
import tempfile
import unittest

from session_planner.models import SessionTimeEdit
from session_planner.state import JsonFileEditStore, MemoryEditStore


def _edit(**overrides):
    values = {
        "id": "edit-1",
        "plan_date": "2024-01-10",
        "task_id": "T1",
        "session_number": 1,
        "original_start_time": "09:00",
        "new_start_time": "14:00",
        "new_end_time": "15:00",
        "edited_at": "2024-01-09T12:00:00",
        "is_temporary": True,
    }
    values.update(overrides)
    return SessionTimeEdit(**values)


class TestJsonFileEditStore(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = pathlib.Path(self._tmp.name) / "edits.json"
        self.store = JsonFileEditStore(self.path)

    def tearDown(self):
        self._tmp.cleanup()

    def test_missing_file_loads_empty(self):
        self.assertEqual(self.store.load(), [])

    def test_save_writes_versioned_payload(self):
        self.store.save([_edit()])
        data = json.loads(self.path.read_text(encoding="utf-8"))
        self.assertEqual(data["version"], 1)
        self.assertEqual(data["edits"][0]["task_id"], "T1")
        self.assertEqual(self.store.load(), [_edit()])

    def test_malformed_file_is_discarded_with_warning(self):
        self.path.write_text("{not json", encoding="utf-8")
        with self.assertLogs("session_planner.state", level="WARNING"):
            self.assertEqual(self.store.load(), [])

    def test_wrong_shape_is_discarded_with_warning(self):
        self.path.write_text(json.dumps({"edits": "nope"}), encoding="utf-8")
        with self.assertLogs("session_planner.state", level="WARNING"):
            self.assertEqual(self.store.load(), [])

    def test_legacy_list_payload_and_bad_records(self):
        payload = [_edit().model_dump(), {"id": "broken"}, "junk"]
        self.path.write_text(json.dumps(payload), encoding="utf-8")
        loaded = self.store.load()
        self.assertEqual([e.id for e in loaded], ["edit-1"])

    def test_save_failure_is_logged_not_raised(self):
        store = JsonFileEditStore(pathlib.Path(self._tmp.name) / "missing" / "edits.json")
        with self.assertLogs("session_planner.state", level="WARNING"):
            store.save([_edit()])


class TestMemoryEditStore(unittest.TestCase):
    def test_load_returns_copies(self):
        store = MemoryEditStore([_edit()])
        loaded = store.load()
        loaded[0].new_start_time = "18:00"
        self.assertEqual(store.load()[0].new_start_time, "14:00")


if __name__ == '__main__':
    unittest.main()
