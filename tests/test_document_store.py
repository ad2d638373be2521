"""
Tests for storage: serializers, the JSON and in-memory document stores,
the YAML routine loader and the settings loader.
"""

import json
import os
import subprocess
import sys
import threading
from datetime import datetime
from pathlib import Path

import pytest

from move_tracker.core.config_loader import load_settings
from move_tracker.core.errors import NotFoundError, PersistenceError, ValidationError
from move_tracker.core.models import Exercise, MonthlyStatRecord, Routine
from move_tracker.io.document_store import InMemoryDocumentStore, JsonDocumentStore
from move_tracker.io.routine_loader import load_routines_from_yaml, slugify
from move_tracker.io.serializers import (
    dict_to_monthly_stat,
    dict_to_routine,
    monthly_stat_to_dict,
    routine_to_dict,
)

USER = "tester"

SRC_DIR = Path(__file__).resolve().parents[1] / "src"

# Run in separate interpreters; each merges into the same month file
MERGE_WORKER = """
import sys
from move_tracker.io.document_store import JsonDocumentStore

store = JsonDocumentStore(sys.argv[1])
for _ in range(int(sys.argv[2])):
    store.upsert_monthly_stat("tester", 2026, 3, {"workout": 1}, effort_append=[3], calories_delta=1)
"""


def _routine(routine_id: str = "legs", name: str = "Leg day") -> Routine:
    return Routine(
        id=routine_id,
        name=name,
        type="workout",
        series_count=3,
        exercises=(
            Exercise("Squat", repetitions_label="12 reps"),
            Exercise("Lunge", repetitions_label="10 each leg", image_ref="https://img/lunge.png"),
        ),
    )


@pytest.fixture(params=["memory", "json"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryDocumentStore()
    return JsonDocumentStore(tmp_path / "data")


# ===========================================================================
# Serializers
# ===========================================================================


class TestSerializers:
    """dict <-> model conversion."""

    def test_routine_dict_round_trip(self):
        routine = _routine()
        assert dict_to_routine(routine_to_dict(routine)) == routine

    def test_routine_accepts_document_keys(self):
        """series / repetitions / imageUrl from hosted documents are understood."""
        routine = dict_to_routine(
            {
                "name": "Morning run",
                "type": "running",
                "series": "2",
                "exercises": [{"name": "Run", "repetitions": 5, "imageUrl": ""}],
                "createdAt": "2025-11-02T08:00:00",
            },
            routine_id="abc",
        )
        assert routine.id == "abc"
        assert routine.series_count == 2
        assert routine.exercises[0].repetitions_label == "5"
        assert routine.exercises[0].image_ref is None
        assert routine.created_at == "2025-11-02T08:00:00"

    @pytest.mark.parametrize(
        "patch",
        [
            {"type": "yoga"},
            {"series_count": 0},
            {"series_count": "many"},
            {"exercises": []},
            {"name": "  "},
            {"exercises": [{"name": ""}]},
        ],
    )
    def test_invalid_routine_dicts(self, patch):
        data = routine_to_dict(_routine())
        data.update(patch)
        with pytest.raises(ValidationError):
            dict_to_routine(data)

    def test_monthly_stat_document_shape(self):
        record = MonthlyStatRecord(year=2026, month=4, workout=2, effort_samples=[3, 5], calories_total=410, distance_km_total=0)
        data = monthly_stat_to_dict(record)
        assert data["effort"] == [3, 5]
        assert data["calories"] == 410
        assert data["km"] == 0
        assert dict_to_monthly_stat(data, 2026, 4) == record

    def test_partial_stat_document_defaults_to_zero(self):
        record = dict_to_monthly_stat({"running": 1, "km": 4.2}, 2026, 9)
        assert record.running == 1
        assert record.workout == 0
        assert record.effort_samples == []
        assert record.distance_km_total == pytest.approx(4.2)

    def test_bad_stat_document(self):
        with pytest.raises(ValidationError):
            dict_to_monthly_stat({"workout": "lots"}, 2026, 1)
        with pytest.raises(ValidationError):
            dict_to_monthly_stat({"effort": [9]}, 2026, 1)
        with pytest.raises(ValidationError):
            dict_to_monthly_stat({"calories": float("nan")}, 2026, 1)

    def test_calories_and_km_read_back_as_floats(self):
        record = dict_to_monthly_stat({"calories": 300, "km": 2}, 2026, 1)
        assert isinstance(record.calories_total, float)
        assert isinstance(record.distance_km_total, float)


# ===========================================================================
# Document stores (both implementations)
# ===========================================================================


class TestDocumentStore:
    """Behaviour shared by every DocumentStore."""

    def test_save_and_get_routine(self, store):
        store.save_routine(USER, _routine())
        assert store.get_routine(USER, "legs") == _routine()

    def test_save_replaces_same_id(self, store):
        store.save_routine(USER, _routine())
        store.save_routine(USER, _routine(name="Leg day v2"))
        routines = store.list_routines(USER)
        assert [r.name for r in routines] == ["Leg day v2"]

    def test_list_keeps_order(self, store):
        store.save_routine(USER, _routine("b", "B"))
        store.save_routine(USER, _routine("a", "A"))
        assert [r.id for r in store.list_routines(USER)] == ["b", "a"]

    def test_unknown_routine(self, store):
        with pytest.raises(NotFoundError):
            store.get_routine(USER, "nope")

    def test_routines_are_per_user(self, store):
        store.save_routine(USER, _routine())
        with pytest.raises(NotFoundError):
            store.get_routine("other", "legs")

    def test_empty_user_id_is_rejected(self, store):
        with pytest.raises(ValidationError):
            store.list_routines("")

    def test_missing_month_is_none(self, store):
        assert store.get_monthly_stat(USER, 2026, 2) is None

    def test_upsert_creates_then_merges(self, store):
        store.upsert_monthly_stat(USER, 2026, 2, {"workout": 1}, effort_append=[3], calories_delta=100)
        store.upsert_monthly_stat(USER, 2026, 2, {"workout": 1}, effort_append=[5], distance_delta=2.5)

        record = store.get_monthly_stat(USER, 2026, 2)
        assert record.workout == 2
        assert record.effort_samples == [3, 5]
        assert record.calories_total == 100
        assert record.distance_km_total == pytest.approx(2.5)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"counter_deltas": {"yoga": 1}},
            {"counter_deltas": {"workout": -1}},
            {"counter_deltas": {"workout": 1}, "calories_delta": -5},
            {"counter_deltas": {"workout": 1}, "distance_delta": -1.0},
            {"counter_deltas": {"workout": 1}, "calories_delta": float("nan")},
            {"counter_deltas": {"workout": 1}, "distance_delta": float("inf")},
        ],
    )
    def test_invalid_deltas(self, store, kwargs):
        with pytest.raises(ValidationError):
            store.upsert_monthly_stat(USER, 2026, 2, **kwargs)
        assert store.get_monthly_stat(USER, 2026, 2) is None

    def test_returned_record_is_a_copy(self, store):
        store.upsert_monthly_stat(USER, 2026, 2, {"sports": 1})
        record = store.get_monthly_stat(USER, 2026, 2)
        record.sports = 99
        assert store.get_monthly_stat(USER, 2026, 2).sports == 1

    def test_concurrent_merges_lose_nothing(self, store):
        """Parallel completions for the same month all count."""
        threads_n, per_thread = 8, 20

        def worker():
            for _ in range(per_thread):
                store.upsert_monthly_stat(USER, 2026, 6, {"workout": 1}, effort_append=[4], calories_delta=1)

        threads = [threading.Thread(target=worker) for _ in range(threads_n)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        record = store.get_monthly_stat(USER, 2026, 6)
        assert record.workout == threads_n * per_thread
        assert len(record.effort_samples) == threads_n * per_thread
        assert record.calories_total == threads_n * per_thread


class TestJsonDocumentStore:
    """File layout and failure handling of the JSON store."""

    def test_layout(self, tmp_path):
        store = JsonDocumentStore(tmp_path)
        store.save_routine(USER, _routine())
        store.upsert_monthly_stat(USER, 2026, 3, {"stretch": 1})

        assert (tmp_path / USER / "routines.json").exists()
        stat_file = tmp_path / USER / "statistics" / "2026" / "3.json"
        data = json.loads(stat_file.read_text())
        assert data["stretch"] == 1
        assert data["effort"] == []

    def test_no_temp_files_left_behind(self, tmp_path):
        store = JsonDocumentStore(tmp_path)
        store.upsert_monthly_stat(USER, 2026, 3, {"stretch": 1})
        leftovers = [p.name for p in (tmp_path / USER / "statistics" / "2026").iterdir()]
        assert leftovers == ["3.json"]

    def test_corrupt_stat_file_is_a_persistence_error_on_write(self, tmp_path):
        store = JsonDocumentStore(tmp_path)
        path = store.stat_path(USER, 2026, 3)
        path.parent.mkdir(parents=True)
        path.write_text("{not json")

        with pytest.raises(PersistenceError):
            store.upsert_monthly_stat(USER, 2026, 3, {"workout": 1})
        with pytest.raises(ValidationError):
            store.get_monthly_stat(USER, 2026, 3)

    def test_unwritable_directory_is_a_persistence_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        # The data root is a file, so no user directory can be created under it
        store = JsonDocumentStore(blocker)
        with pytest.raises(PersistenceError):
            store.upsert_monthly_stat(USER, 2026, 3, {"workout": 1})

    @pytest.mark.skipif(sys.platform == "win32", reason="flock is POSIX only")
    def test_merges_from_separate_processes_lose_nothing(self, tmp_path):
        """Several interpreters merging into one month all count."""
        processes_n, per_process = 4, 100
        env = dict(os.environ)
        env["PYTHONPATH"] = os.pathsep.join(p for p in (str(SRC_DIR), env.get("PYTHONPATH")) if p)

        procs = [
            subprocess.Popen([sys.executable, "-c", MERGE_WORKER, str(tmp_path), str(per_process)], env=env)
            for _ in range(processes_n)
        ]
        for proc in procs:
            assert proc.wait(timeout=120) == 0

        record = JsonDocumentStore(tmp_path).get_monthly_stat(USER, 2026, 3)
        assert record.workout == processes_n * per_process
        assert len(record.effort_samples) == processes_n * per_process
        assert record.calories_total == processes_n * per_process

    def test_stored_document_is_strict_json(self, tmp_path):
        store = JsonDocumentStore(tmp_path)
        with pytest.raises(ValidationError):
            store.upsert_monthly_stat(USER, 2026, 3, {"running": 1}, distance_delta=float("nan"))
        store.upsert_monthly_stat(USER, 2026, 3, {"running": 1}, distance_delta=4.0)

        text = store.stat_path(USER, 2026, 3).read_text()
        assert "NaN" not in text
        assert json.loads(text)["km"] == 4.0

    def test_reads_documents_written_by_other_clients(self, tmp_path):
        store = JsonDocumentStore(tmp_path)
        path = store.stat_path(USER, 2025, 12)
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"workout": 2, "effort": [4, 4], "calories": 500}))

        record = store.get_monthly_stat(USER, 2025, 12)
        assert record.workout == 2
        assert record.calories_total == 500
        assert record.running == 0


# ===========================================================================
# YAML routine loader
# ===========================================================================


class TestRoutineLoader:
    """Importing routine definitions from YAML."""

    def test_slugify(self):
        assert slugify("Leg Day #2") == "leg-day-2"
        assert slugify("!!!") == "routine"

    def test_routines_list(self, tmp_path):
        path = tmp_path / "routines.yaml"
        path.write_text(
            "routines:\n"
            "  - name: Morning Stretch\n"
            "    type: stretch\n"
            "    series_count: 2\n"
            "    exercises:\n"
            "      - name: Neck roll\n"
            "        repetitions_label: 30 seconds\n"
            "  - id: run5\n"
            "    name: 5k\n"
            "    type: running\n"
            "    exercises:\n"
            "      - name: Run\n"
        )
        routines = load_routines_from_yaml(path, now=datetime(2026, 1, 2, 3, 4, 5))

        assert [r.id for r in routines] == ["morning-stretch", "run5"]
        assert routines[0].series_count == 2
        assert routines[0].exercises[0].repetitions_label == "30 seconds"
        assert routines[1].series_count == 1
        assert routines[1].created_at == "2026-01-02T03:04:05"

    def test_single_routine_mapping(self, tmp_path):
        path = tmp_path / "one.yaml"
        path.write_text("name: Solo\ntype: sports\nexercises:\n  - name: Match\n")
        assert load_routines_from_yaml(path)[0].id == "solo"

    def test_duplicate_ids_rejected(self, tmp_path):
        path = tmp_path / "dup.yaml"
        path.write_text(
            "- {name: A, type: workout, exercises: [{name: x}]}\n"
            "- {name: A, type: workout, exercises: [{name: y}]}\n"
        )
        with pytest.raises(ValidationError, match="duplicate"):
            load_routines_from_yaml(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("routines: [\n")
        with pytest.raises(ValidationError):
            load_routines_from_yaml(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationError):
            load_routines_from_yaml(tmp_path / "absent.yaml")


# ===========================================================================
# Settings
# ===========================================================================


class TestSettings:
    """YAML settings merged over defaults."""

    def test_defaults_without_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MOVE_TRACKER_HOME", str(tmp_path))
        settings = load_settings()
        assert settings["user_id"] == "local"
        assert settings["data_dir"] is None

    def test_user_file_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MOVE_TRACKER_HOME", str(tmp_path))
        (tmp_path / "settings.yaml").write_text("user_id: alice\nlog_level: info\n")
        settings = load_settings()
        assert settings["user_id"] == "alice"
        assert settings["log_level"] == "info"

    def test_broken_file_warns_and_uses_defaults(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("user_id: [unclosed\n")
        with pytest.warns(UserWarning):
            settings = load_settings(path)
        assert settings["user_id"] == "local"
