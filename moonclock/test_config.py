from __future__ import annotations

import pytest

import config
from config import (
    DEFAULT_CHANNEL_MAX_PENDING,
    DEFAULT_LATITUDE,
    DEFAULT_REFRESH_INTERVAL_S,
    DEFAULT_SSE_KEEPALIVE_S,
)


def test_defaults_when_unset():
    assert config.get_refresh_interval_s() == DEFAULT_REFRESH_INTERVAL_S
    assert config.get_latitude() == DEFAULT_LATITUDE
    assert config.get_rejected_latitude() is None
    assert config.get_sse_keepalive_s() == DEFAULT_SSE_KEEPALIVE_S
    assert config.get_channel_max_pending() == DEFAULT_CHANNEL_MAX_PENDING
    assert config.get_log_level() == "INFO"
    assert config.get_awtrix_host() is None


def test_valid_values_are_used(monkeypatch):
    monkeypatch.setenv("REFRESH_INTERVAL_S", "60")
    monkeypatch.setenv("LATITUDE", "-33.87")
    monkeypatch.setenv("SSE_KEEPALIVE_S", "5")
    monkeypatch.setenv("CHANNEL_MAX_PENDING", "4")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    assert config.get_refresh_interval_s() == 60.0
    assert config.get_latitude() == -33.87
    assert config.get_rejected_latitude() is None
    assert config.get_sse_keepalive_s() == 5.0
    assert config.get_channel_max_pending() == 4
    assert config.get_log_level() == "DEBUG"


@pytest.mark.parametrize("raw", ["120", "-90.5", "north", "nan", "inf", "-inf"])
def test_invalid_latitude_falls_back_to_greenwich(monkeypatch, raw):
    monkeypatch.setenv("LATITUDE", raw)
    assert config.get_latitude() == DEFAULT_LATITUDE
    assert config.get_rejected_latitude() == raw


@pytest.mark.parametrize("raw", ["90", "-90", "0"])
def test_latitude_bounds_are_inclusive(monkeypatch, raw):
    monkeypatch.setenv("LATITUDE", raw)
    assert config.get_latitude() == float(raw)
    assert config.get_rejected_latitude() is None


def test_minimum_one_clamps(monkeypatch):
    monkeypatch.setenv("REFRESH_INTERVAL_S", "0.2")
    monkeypatch.setenv("SSE_KEEPALIVE_S", "-3")
    monkeypatch.setenv("CHANNEL_MAX_PENDING", "0")
    assert config.get_refresh_interval_s() == 1.0
    assert config.get_sse_keepalive_s() == 1.0
    assert config.get_channel_max_pending() == 1


@pytest.mark.parametrize("raw", ["nan", "inf", "-inf", "many", ""])
def test_non_finite_or_garbage_numbers_use_defaults(monkeypatch, raw):
    monkeypatch.setenv("REFRESH_INTERVAL_S", raw)
    monkeypatch.setenv("SSE_KEEPALIVE_S", raw)
    monkeypatch.setenv("CHANNEL_MAX_PENDING", raw)
    assert config.get_refresh_interval_s() == DEFAULT_REFRESH_INTERVAL_S
    assert config.get_sse_keepalive_s() == DEFAULT_SSE_KEEPALIVE_S
    assert config.get_channel_max_pending() == DEFAULT_CHANNEL_MAX_PENDING


def test_create_app_survives_infinite_queue_size(monkeypatch):
    from main import create_app

    monkeypatch.setenv("CHANNEL_MAX_PENDING", "inf")
    app = create_app()
    assert app.state.broadcaster._max_pending == DEFAULT_CHANNEL_MAX_PENDING


def test_awtrix_host_strips_trailing_slash(monkeypatch):
    monkeypatch.setenv("AWTRIXHOSTNAME", "  http://192.168.1.50/  ")
    assert config.get_awtrix_host() == "http://192.168.1.50"
    monkeypatch.setenv("AWTRIXHOSTNAME", "   ")
    assert config.get_awtrix_host() is None
