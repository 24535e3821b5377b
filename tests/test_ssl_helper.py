"""
Tests for CA bundle selection

Run with: python -m pytest tests/test_ssl_helper.py -v
"""

import ssl
from pathlib import Path

import certifi

from weather_util import ssl_helper


def test_defaults_to_certifi(monkeypatch):
    monkeypatch.delenv(ssl_helper.CA_BUNDLE_ENV, raising=False)
    assert ssl_helper.get_ca_bundle() == certifi.where()


def test_env_override(monkeypatch, tmp_path):
    bundle = tmp_path / "corp.pem"
    bundle.write_bytes(Path(certifi.where()).read_bytes())
    monkeypatch.setenv(ssl_helper.CA_BUNDLE_ENV, str(bundle))
    assert ssl_helper.get_ca_bundle() == str(bundle)


def test_missing_env_path_falls_back(monkeypatch, tmp_path):
    monkeypatch.setenv(ssl_helper.CA_BUNDLE_ENV, str(tmp_path / "nope.pem"))
    assert ssl_helper.get_ca_bundle() == certifi.where()


def test_context_is_cached(monkeypatch):
    monkeypatch.setattr(ssl_helper, "_cached_ssl_context", None)
    first = ssl_helper.get_httpx_verify()
    assert isinstance(first, ssl.SSLContext)
    assert ssl_helper.get_httpx_verify() is first
