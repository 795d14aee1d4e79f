"""Tests for the python -m reefcrawler entry point."""

from __future__ import annotations

import json
import logging

import pytest

from reefcrawler.__main__ import main


def test_prints_redacted_configuration(clean_env, capsys):
    clean_env.setenv("NODE_PROVIDER_URLS", '["ws://a:1","ws://b:2"]')
    clean_env.setenv("POSTGRES_PASSWORD", "s3cret")

    main()

    out = capsys.readouterr().out
    data = json.loads(out)
    assert data["node_urls"] == ["ws://a:1", "ws://b:2"]
    assert data["postgres_config"]["password"] == "***"
    assert "s3cret" not in out


def test_bad_configuration_exits_nonzero(clean_env, caplog):
    clean_env.setenv("POSTGRES_PORT", "abc")

    with caplog.at_level(logging.ERROR, logger="reefcrawler"):
        with pytest.raises(SystemExit) as excinfo:
            main()

    assert excinfo.value.code == 1
    assert "POSTGRES_PORT" in caplog.text
