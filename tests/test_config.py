"""Tests for environment-backed settings."""

import logging

from camscan_cli import config


def test_port_defaults_to_80(monkeypatch):
    monkeypatch.delenv("CAMSCAN_PORT", raising=False)

    assert config.get_port() == 80


def test_port_from_environment(monkeypatch):
    monkeypatch.setenv("CAMSCAN_PORT", " 8080 ")

    assert config.get_port() == 8080


def test_invalid_port_falls_back_with_warning(monkeypatch, caplog):
    monkeypatch.setenv("CAMSCAN_PORT", "http")

    with caplog.at_level(logging.WARNING, logger="camscan_cli.config"):
        assert config.get_port() == 80

    assert "Ignoring invalid CAMSCAN_PORT 'http'" in caplog.text
