from __future__ import annotations

import pytest

from zone_streaming.state import ZoneState, ZoneStateError, ZoneStatus, ZoneTransition
from zone_streaming.zones import ZoneConfig


def _state() -> ZoneState:
    return ZoneState(configuration=ZoneConfig(name="z", center=(0.0, 0.0, 0.0), address="zones/z"), index=3)


def _loaded_state() -> ZoneState:
    state = _state()
    state.request_load()
    state.begin_loading()
    state.mark_loaded("handle")
    state.mark_active()
    return state


def test_new_state_is_unloaded() -> None:
    state = _state()
    assert state.status is ZoneStatus.UNLOADED
    assert not state.is_loaded and not state.is_active
    assert not state.target_is_loaded and not state.target_is_active
    assert state.content_handle is None


def test_request_load_only_launches_from_unloaded() -> None:
    state = _state()
    assert state.request_load() is ZoneTransition.LOAD
    assert state.status is ZoneStatus.LOADING
    assert state.target_is_loaded and state.target_is_active
    assert state.request_load() is None


@pytest.mark.parametrize("status", [ZoneStatus.LOADING, ZoneStatus.LOADED, ZoneStatus.UNLOADING])
def test_request_load_sets_targets_without_launch(status: ZoneStatus) -> None:
    state = _state()
    state.status = status
    assert state.request_load() is None
    assert state.status is status
    assert state.target_is_loaded is True


def test_request_unload_on_unloaded_zone_is_a_noop() -> None:
    state = _state()
    state.target_is_loaded = True
    assert state.request_unload() is None
    # targets untouched for unloaded zones
    assert state.target_is_loaded is True


@pytest.mark.parametrize("status", [ZoneStatus.LOADING, ZoneStatus.UNLOADING])
def test_request_unload_in_flight_only_updates_targets(status: ZoneStatus) -> None:
    state = _state()
    state.status = status
    state.target_is_loaded = True
    assert state.request_unload() is None
    assert state.target_is_loaded is False
    assert state.status is status


def test_full_cycle_walks_every_status() -> None:
    state = _loaded_state()
    assert state.status is ZoneStatus.LOADED
    assert state.is_loaded and state.is_active
    assert state.content_handle == "handle"

    assert state.request_unload() is ZoneTransition.UNLOAD
    assert state.status is ZoneStatus.UNLOADING
    state.begin_unloading()
    state.mark_unloaded()
    assert state.status is ZoneStatus.UNLOADED
    assert state.content_handle is None
    assert not state.is_loaded and not state.is_active


def test_completions_refuse_to_skip_states() -> None:
    state = _state()
    with pytest.raises(ZoneStateError):
        state.mark_active()
    with pytest.raises(ZoneStateError):
        state.mark_unloaded()
    with pytest.raises(ZoneStateError):
        state.begin_unloading()

    loaded = _loaded_state()
    with pytest.raises(ZoneStateError):
        loaded.begin_loading()
    with pytest.raises(ZoneStateError):
        loaded.mark_load_failed("late")


def test_activation_requires_loaded_content() -> None:
    state = _state()
    state.request_load()
    with pytest.raises(ZoneStateError):
        state.mark_active()


def test_failed_load_reverts_to_unloaded() -> None:
    state = _state()
    state.request_load()
    state.begin_loading()
    state.mark_load_failed("missing")
    assert state.status is ZoneStatus.UNLOADED
    assert state.load_failures == 1
    assert state.last_error == "missing"
    assert state.target_is_loaded is True


def test_cancel_launch_restores_status_and_keeps_targets() -> None:
    state = _state()
    assert state.request_load() is ZoneTransition.LOAD
    state.cancel_launch(ZoneTransition.LOAD)
    assert state.status is ZoneStatus.UNLOADED
    assert state.target_is_loaded is True
    assert state.request_load() is ZoneTransition.LOAD

    state = _loaded_state()
    assert state.request_unload() is ZoneTransition.UNLOAD
    state.cancel_launch(ZoneTransition.UNLOAD)
    assert state.status is ZoneStatus.LOADED
    assert state.target_is_loaded is False
    assert state.follow_up() is ZoneTransition.UNLOAD


def test_cancel_launch_requires_matching_status() -> None:
    with pytest.raises(ZoneStateError):
        _state().cancel_launch(ZoneTransition.LOAD)
    with pytest.raises(ZoneStateError):
        _loaded_state().cancel_launch(ZoneTransition.UNLOAD)


def test_follow_up_tracks_target_divergence() -> None:
    state = _loaded_state()
    assert state.follow_up() is None
    state.target_is_loaded = False
    assert state.follow_up() is ZoneTransition.UNLOAD

    state.request_unload()
    state.begin_unloading()
    state.target_is_loaded = True
    assert state.follow_up() is None
    state.mark_unloaded()
    assert state.follow_up() is ZoneTransition.LOAD


def test_snapshot_is_json_ready() -> None:
    snap = _loaded_state().snapshot()
    assert snap["index"] == 3
    assert snap["status"] == "loaded"
    assert snap["address"] == "zones/z"
    assert snap["is_loaded"] is True
    assert snap["last_error"] is None
