"""Application state tests."""

from __future__ import annotations

import pytest

from victor_service.core.state import get_app_state, init_app_state, reset_app_state


@pytest.mark.unit
def test_uninitialized_state_raises() -> None:
    """Reading state before startup is an error."""
    with pytest.raises(RuntimeError, match="not initialized"):
        get_app_state()


@pytest.mark.unit
def test_init_and_reset() -> None:
    """init installs a fresh state and reset removes it."""
    state = init_app_state()
    assert get_app_state() is state
    assert state.user_manager is None
    assert state.uptime_seconds >= 0
    assert state.started_at.endswith("Z")

    reset_app_state()
    with pytest.raises(RuntimeError):
        get_app_state()
