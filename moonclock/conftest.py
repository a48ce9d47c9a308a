import pytest

_ENV_VARS = (
    "AWTRIXHOSTNAME",
    "LATITUDE",
    "REFRESH_INTERVAL_S",
    "SSE_KEEPALIVE_S",
    "CHANNEL_MAX_PENDING",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _quiet_environment(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
