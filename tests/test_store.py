"""Comprehensive tests for the SessionStore."""

import json
from pathlib import Path

import pytest

from cubetimer.core.config import ConfigurationError
from cubetimer.core.solve import Penalty
from cubetimer.core.stats import RecordKind
from cubetimer.core.store import SessionNotFoundError, SessionStore, SolveNotFoundError

# ---------------------------------------------------------------------------
# Helper: read the persisted JSON state file
# ---------------------------------------------------------------------------


def _read_state(config_dir: Path) -> dict:
    """Read and return the cubetimer.json content as a dict."""
    return json.loads((config_dir / "cubetimer.json").read_text())


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class TestSessions:
    """Sessions group solves and carry their own timer settings."""

    def test_default_session_created_on_first_use(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        session = store.current_session()
        assert session.name == "Default Session"
        assert [s.id for s in store.sessions()] == [session.id]

    def test_create_session_becomes_current(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        store.current_session()
        created = store.create_session("OH practice")
        assert store.current_session() == created

    def test_create_without_switching(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        first = store.current_session()
        store.create_session("later", make_current=False)
        assert store.current_session() == first

    def test_switch_session(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        first = store.current_session()
        store.create_session("second")
        store.set_current_session(first.id)
        assert store.current_session() == first

    def test_unknown_session_raises(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        with pytest.raises(SessionNotFoundError):
            store.set_current_session("missing")

    def test_invalid_kind_raises(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        with pytest.raises(ValueError):
            store.create_session("bad", kind="relay")

    def test_invalid_inspection_time_raises(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        with pytest.raises(ConfigurationError):
            store.create_session("bad", inspection_time=20)
        assert store.sessions() == []

    def test_delete_session_removes_its_solves(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        keep = store.current_session()
        store.add_solve(9000)
        doomed = store.create_session("doomed")
        store.add_solve(8000)
        store.delete_session(doomed.id)
        assert [s.session_id for s in store.all_solves()] == [keep.id]


# ---------------------------------------------------------------------------
# Timer configuration per session
# ---------------------------------------------------------------------------


class TestSessionTimerConfig:
    """Session settings translate into a TimerConfig."""

    def test_defaults(self, tmp_path: Path) -> None:
        config = SessionStore(config_dir=tmp_path).current_session().timer_config()
        assert config.use_inspection is True
        assert config.inspection_time_sec == 15
        assert config.cooldown_ms == 500

    def test_session_overrides(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        session = store.create_session("fast", use_inspection=False, inspection_time=8)
        config = session.timer_config()
        assert config.use_inspection is False
        assert config.inspection_time_sec == 8

    def test_global_defaults_used_when_unset(self, tmp_path: Path) -> None:
        session = SessionStore(config_dir=tmp_path).current_session()
        config = session.timer_config(default_use_inspection=False, default_inspection_time=30)
        assert config.use_inspection is False
        assert config.inspection_time_sec == 30

    def test_case_session_uses_case_practice(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        session = store.create_session("T-perm", kind="case", case_id="pll-t")
        config = session.timer_config()
        assert config.use_inspection is False
        assert config.cooldown_ms == 0

    def test_update_inspection(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        session = store.current_session()
        updated = store.update_inspection(session.id, False, 30)
        assert updated.timer_config().use_inspection is False
        assert SessionStore(config_dir=tmp_path).session(session.id).inspection_time == 30


# ---------------------------------------------------------------------------
# Solves
# ---------------------------------------------------------------------------


class TestSolves:
    """Solves are kept oldest first with increasing ids."""

    def test_add_solve_assigns_ids(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        first = store.add_solve(9000, "R U R'")
        second = store.add_solve(8000)
        assert (first.id, second.id) == (1, 2)
        assert [s.time_ms for s in store.solves(first.session_id)] == [9000, 8000]

    def test_case_id_inherited_from_session(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        store.create_session("T-perm", kind="case", case_id="pll-t")
        assert store.add_solve(3000).case_id == "pll-t"

    def test_solves_filtered_by_session(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        first = store.current_session()
        store.add_solve(9000)
        second = store.create_session("second")
        store.add_solve(8000)
        assert [s.time_ms for s in store.solves(first.id)] == [9000]
        assert [s.time_ms for s in store.solves(second.id)] == [8000]
        assert len(store.all_solves()) == 2

    def test_update_penalty(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        solve = store.add_solve(9000)
        updated = store.update_penalty(solve.id, Penalty.PLUS_TWO)
        assert updated.penalty == Penalty.PLUS_TWO
        assert store.solve(solve.id).penalty == Penalty.PLUS_TWO

    def test_update_notes(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        solve = store.add_solve(9000)
        assert store.update_notes(solve.id, "lockup").notes == "lockup"

    def test_delete_solve(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        solve = store.add_solve(9000)
        store.delete_solve(solve.id)
        assert store.all_solves() == []

    def test_unknown_solve_raises(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        with pytest.raises(SolveNotFoundError):
            store.update_penalty(42, Penalty.DNF)


# ---------------------------------------------------------------------------
# record_solve()
# ---------------------------------------------------------------------------


class TestRecordSolve:
    """Recording a solve recomputes statistics and stores new records."""

    def test_first_solve_sets_single_record(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        solve, stats, events = store.record_solve(12000)
        assert stats.best_single == 12000
        assert [e.kind for e in events] == [RecordKind.SINGLE]
        assert store.personal_bests()[0].solve_ids == (solve.id,)

    def test_slower_solve_sets_no_record(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        store.record_solve(12000)
        _, _, events = store.record_solve(13000)
        assert events == []

    def test_fifth_solve_sets_ao5(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        for time_ms in (12000, 11000, 13000, 12500):
            store.record_solve(time_ms)
        _, stats, events = store.record_solve(14000)
        assert stats.ao5 == 12500
        assert [e.kind for e in events] == [RecordKind.AO5]

    def test_dnf_is_not_a_single_record(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        _, stats, events = store.record_solve(0, penalty=Penalty.DNF)
        assert stats.best_single is None
        assert events == []

    def test_penalty_change_keeps_earlier_records(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        solve, _, _ = store.record_solve(9000)
        store.update_penalty(solve.id, Penalty.DNF)
        records = store.personal_bests()
        assert [(r.kind, r.time_ms, r.solve_ids) for r in records] == [
            (RecordKind.SINGLE, 9000, (solve.id,))
        ]

    def test_delete_keeps_earlier_records(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        solve, _, _ = store.record_solve(9000)
        store.delete_solve(solve.id)
        assert [r.solve_ids for r in store.personal_bests()] == [(solve.id,)]


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestStorePersistence:
    """The store writes cubetimer.json after every mutation."""

    def test_add_solve_persists(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        store.add_solve(9000, "F R U", Penalty.PLUS_TWO, "nice")
        state = _read_state(tmp_path)
        assert state["solves"][0]["time_ms"] == 9000
        assert state["solves"][0]["penalty"] == "+2"
        assert state["solves"][0]["notes"] == "nice"
        assert state["next_solve_id"] == 2

    def test_round_trip(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        session = store.create_session("persisted", use_inspection=False)
        store.record_solve(9000, "R U")
        reloaded = SessionStore(config_dir=tmp_path)
        assert reloaded.current_session() == session
        assert reloaded.all_solves() == store.all_solves()
        assert reloaded.personal_bests() == store.personal_bests()

    def test_ids_continue_after_reload(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path)
        store.add_solve(9000)
        store.add_solve(9000)
        assert SessionStore(config_dir=tmp_path).add_solve(9000).id == 3

    def test_missing_file_is_empty_store(self, tmp_path: Path) -> None:
        store = SessionStore(config_dir=tmp_path / "nested")
        assert store.all_solves() == []
        assert not store.path.exists()
