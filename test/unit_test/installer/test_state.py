"""Unit tests for the resumable install state."""

from installer.state import InstallState, StateStore, new_run_id


def test_run_id_is_a_millisecond_timestamp():
    run_id = new_run_id()
    assert run_id.isdigit() and len(run_id) == 13


class TestInstallState:
    def test_steps_only_move_forward(self):
        state = InstallState()
        assert not state.completed(1)
        state.advance(2)
        state.advance(1)
        assert state.current_step == 2
        assert state.completed(1) and state.completed(2) and not state.completed(3)


class TestStateStore:
    def test_save_load_clear(self, tmp_path):
        store = StateStore(tmp_path / "nested" / "install.state.json")
        assert store.load() is None

        state = InstallState(provider="Kind", cluster_name="og", install_type=4, user_inputs={"Resume it?": "yes"})
        state.advance(2)
        store.save(state)

        loaded = store.load()
        assert loaded.model_dump() == state.model_dump()
        assert store.exists()

        store.clear()
        assert not store.exists()
        store.clear()

    def test_unreadable_file_is_ignored(self, tmp_path):
        path = tmp_path / "install.state.json"
        path.write_text("{not json")
        assert StateStore(path).load() is None
