"""
Tests for the bounded coaching response log.

Covers: capacity/eviction order, full-file rewrite, reload, bad files.
"""

import json

from coaching.response_log import MAX_ENTRIES, ResponseLog


class TestResponseLog:

    def test_never_exceeds_cap_and_evicts_oldest_first(self, tmp_path):
        path = tmp_path / "responses.json"
        rlog = ResponseLog(str(path))

        for i in range(600):
            rlog.append(prompt=f"prompt {i}", message=f"message {i}", rateLimited=False)
            assert len(rlog) <= MAX_ENTRIES

        assert len(rlog) == 500
        records = rlog.all()
        assert records[0]["prompt"] == "prompt 100"
        assert records[-1]["prompt"] == "prompt 599"

        on_disk = json.loads(path.read_text(encoding="utf-8"))
        assert len(on_disk) == 500
        assert [r["message"] for r in on_disk] == [f"message {i}" for i in range(100, 600)]

    def test_record_shape(self, tmp_path):
        rlog = ResponseLog(str(tmp_path / "responses.json"))
        record = rlog.append(prompt="p", message="m", rateLimited=True, queuePosition=2)

        assert set(record) == {"timestamp", "prompt", "message", "flags"}
        assert record["flags"] == {"rateLimited": True, "queuePosition": 2}
        assert record["timestamp"].endswith("+00:00")

    def test_reload_keeps_existing_records(self, tmp_path):
        path = str(tmp_path / "responses.json")
        first = ResponseLog(path)
        first.append(prompt="a", message="1")
        first.append(prompt="b", message="2")

        second = ResponseLog(path)
        assert [r["prompt"] for r in second.all()] == ["a", "b"]

    def test_reload_trims_oversized_file(self, tmp_path):
        path = tmp_path / "responses.json"
        path.write_text(json.dumps([{"prompt": str(i)} for i in range(30)]), encoding="utf-8")

        rlog = ResponseLog(str(path), max_entries=10)
        assert [r["prompt"] for r in rlog.all()] == [str(i) for i in range(20, 30)]

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "responses.json"
        path.write_text("{not json", encoding="utf-8")

        rlog = ResponseLog(str(path))
        assert len(rlog) == 0
        rlog.append(prompt="p", message="m")
        assert len(json.loads(path.read_text(encoding="utf-8"))) == 1

    def test_recent_returns_newest_in_order(self, tmp_path):
        rlog = ResponseLog(str(tmp_path / "responses.json"))
        for i in range(60):
            rlog.append(prompt=str(i), message="m")

        recent = rlog.recent(50)
        assert len(recent) == 50
        assert recent[0]["prompt"] == "10"
        assert recent[-1]["prompt"] == "59"

    def test_memory_only_when_no_path(self):
        rlog = ResponseLog(None)
        rlog.append(prompt="p", message="m")
        assert len(rlog) == 1
