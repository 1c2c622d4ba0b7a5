"""Unit tests for the shared httpx client pool.

Covers:
- Same key (base_url, purpose) returns the same instance.
- Different purpose or base URL yields different instances.
- The pooled default timeout is the metadata budget.
"""
from __future__ import annotations

from doubao_gateway.base.http import close_all_clients, get_httpx_client


def setup_function(_):
    close_all_clients()


def teardown_function(_):
    close_all_clients()


def test_same_key_returns_same_instance():
    c1 = get_httpx_client("https://www.doubao.com", purpose="doubao.api")
    c2 = get_httpx_client("https://www.doubao.com", purpose="doubao.api")
    assert c1 is c2, "Expected pooled client instances to be identical for same key"


def test_different_purpose_or_base_url_returns_different_instances():
    api = get_httpx_client("https://www.doubao.com", purpose="doubao.api")
    upload = get_httpx_client(None, purpose="doubao.upload")
    other = get_httpx_client("https://other.invalid", purpose="doubao.api")
    assert api is not upload
    assert api is not other


def test_default_timeout_is_metadata_budget(monkeypatch):
    monkeypatch.setenv("GATEWAY_TIMEOUT_METADATA_SECONDS", "7")
    client = get_httpx_client(None, purpose="timeouts")
    assert client.timeout.read == 7.0


def test_close_all_clients_empties_pool():
    c1 = get_httpx_client(None, purpose="doubao.upload")
    close_all_clients()
    assert c1.is_closed
    assert get_httpx_client(None, purpose="doubao.upload") is not c1
