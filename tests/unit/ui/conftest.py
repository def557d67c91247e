"""Configuration for UI unit tests."""

import pytest


class SessionState(dict):
    """Dict with attribute access, like ``st.session_state``."""

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError as e:
            raise AttributeError(name) from e

    def __setattr__(self, name, value):
        self[name] = value


@pytest.fixture
def session_state() -> SessionState:
    return SessionState()
