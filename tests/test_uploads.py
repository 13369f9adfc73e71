"""
Unit tests for the Cloudinary image host

cloudinary.uploader.upload is patched, so no request leaves the process.
"""
import cloudinary
import cloudinary.uploader
import pytest
from cloudinary.exceptions import Error as CloudinaryError

from uploads import CloudinaryHost


@pytest.fixture
def host():
    return CloudinaryHost(cloud_name="demo", api_key="key", api_secret="secret", timeout=5)


def test_host_configures_sdk(host):
    config = cloudinary.config()
    assert config.cloud_name == "demo"
    assert config.api_key == "key"


def test_upload_returns_secure_url(host, monkeypatch):
    calls = []

    def fake_upload(file, **options):
        calls.append({"data": file.read(), "options": options})
        return {"secure_url": "https://cdn/x.png"}

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)

    assert host.upload(b"bytes") == "https://cdn/x.png"
    assert calls[0]["data"] == b"bytes"
    assert calls[0]["options"]["timeout"] == 5


def test_sdk_error_returns_none(host, monkeypatch):
    def fake_upload(file, **options):
        raise CloudinaryError("Invalid image file")

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)
    assert host.upload(b"bytes") is None


def test_missing_secure_url(host, monkeypatch):
    monkeypatch.setattr(cloudinary.uploader, "upload", lambda file, **options: {})
    assert host.upload(b"bytes") is None


def test_unconfigured_host_does_not_call_out(monkeypatch):
    monkeypatch.setattr(cloudinary.uploader, "upload", lambda *a, **k: pytest.fail("should not upload"))
    host = CloudinaryHost(cloud_name="demo", api_key="key", api_secret="secret")
    host.api_secret = ""
    assert not host.configured
    assert host.upload(b"bytes") is None


def test_empty_payload(host):
    assert host.upload(b"") is None
