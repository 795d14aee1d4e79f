"""Shared fixtures: every test starts from an empty crawler environment."""

from __future__ import annotations

import pytest

CRAWLER_ENV_VARS = (
    "NODE_PROVIDER_URLS",
    "START_BLOCK_SIZE",
    "MAX_BLOCKS_PER_STEP",
    "CHUNK_SIZE",
    "POLL_INTERVAL",
    "SENTRY_DNS",
    "ENVIRONMENT",
    "FACTORY_ADDRESS",
    "NETWORK",
    "SUBCONTRACT_INTERVAL",
    "VERIFIED_CONTRACT_SYNC_INTERVAL",
    "LIVE_GRAPHQL_URL",
    "VERIFIED_CONTRACT_SYNC",
    "POSTGRES_HOST",
    "POSTGRES_PORT",
    "POSTGRES_USER",
    "POSTGRES_DATABASE",
    "POSTGRES_PASSWORD",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Unset crawler variables and run from an empty directory (no stray .env)."""
    for name in CRAWLER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch
