"""Tests for FileSystemStorage: file ops, signed URLs, download responses."""

import hashlib
import hmac
from urllib.parse import parse_qs, urlsplit

import pytest
from starlette.requests import Request
from starlette.responses import FileResponse

from farmestly.exceptions import StorageError
from farmestly.report.storage import FileSystemStorage, sanitize_key

SECRET = "test-secret"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def storage(tmp_path, clock):
    return FileSystemStorage(tmp_path, secret=SECRET, expiry_minutes=30, clock=clock)


def _request_for(url: str) -> Request:
    parts = urlsplit(url)
    return Request({
        "type": "http",
        "method": "GET",
        "scheme": "http",
        "server": ("test", 80),
        "path": parts.path,
        "query_string": parts.query.encode(),
        "headers": [],
    })


class TestSanitizeKey:
    def test_keeps_safe_characters(self):
        assert sanitize_key("Farm_Report-2025.pdf") == "Farm_Report-2025.pdf"

    def test_strips_path_traversal(self):
        assert sanitize_key("../../etc/passwd") == "etcpasswd"

    def test_strips_spaces_and_unicode(self):
        assert sanitize_key("My Farm é.pdf") == "MyFarm.pdf"

    def test_empty_after_sanitizing_raises(self):
        with pytest.raises(StorageError):
            sanitize_key("/../")


class TestFileOperations:
    async def test_save_then_exists(self, storage, tmp_path):
        key = await storage.save("report.pdf", b"%PDF-1.4")
        assert key == "report.pdf"
        assert await storage.exists("report.pdf")
        assert (tmp_path / "report.pdf").read_bytes() == b"%PDF-1.4"

    async def test_save_sanitizes_key(self, storage, tmp_path):
        key = await storage.save("../escape.pdf", b"x")
        assert key == "escape.pdf"
        assert (tmp_path / "escape.pdf").exists()

    async def test_exists_false_for_missing(self, storage):
        assert not await storage.exists("missing.pdf")

    async def test_delete(self, storage):
        await storage.save("gone.pdf", b"x")
        assert await storage.delete("gone.pdf") is True
        assert not await storage.exists("gone.pdf")

    async def test_delete_missing_returns_false(self, storage):
        assert await storage.delete("never.pdf") is False

    def test_default_expiry(self, storage):
        assert storage.default_expiry.total_seconds() == 1800


class TestSignedUrls:
    def test_url_shape_and_signature(self, storage, clock):
        url = storage.get_signed_url("report.pdf")
        parts = urlsplit(url)
        query = parse_qs(parts.query)

        assert parts.path == "/report/download/report.pdf"
        expires = int(query["expires"][0])
        assert expires == int(clock.now) + 1800
        expected = hmac.new(SECRET.encode(), f"{parts.path}:{expires}".encode(), hashlib.sha256).hexdigest()
        assert query["signature"][0] == expected

    def test_fresh_url_verifies(self, storage):
        url = storage.get_signed_url("report.pdf")
        assert storage.verify_request(_request_for(url))

    def test_expired_url_rejected(self, storage, clock):
        url = storage.get_signed_url("report.pdf")
        clock.now += 1801
        assert not storage.verify_request(_request_for(url))

    def test_each_call_mints_new_expiry(self, storage, clock):
        first = storage.get_signed_url("report.pdf")
        clock.now += 60
        second = storage.get_signed_url("report.pdf")
        assert first != second

    def test_tampered_key_rejected(self, storage):
        url = storage.get_signed_url("report.pdf")
        assert not storage.verify_request(_request_for(url.replace("report.pdf", "other.pdf")))

    def test_tampered_signature_rejected(self, storage):
        url = storage.get_signed_url("report.pdf")
        parts = urlsplit(url)
        query = parse_qs(parts.query)
        bad = f"{parts.path}?expires={query['expires'][0]}&signature={'0' * 64}"
        assert not storage.verify_request(_request_for(bad))

    def test_missing_params_rejected(self, storage):
        assert not storage.verify_request(_request_for("/report/download/report.pdf"))

    def test_non_numeric_expiry_rejected(self, storage):
        assert not storage.verify("/report/download/report.pdf", "soon", "abc")

    def test_other_secret_rejected(self, tmp_path, clock):
        url = FileSystemStorage(tmp_path, secret="other", clock=clock).get_signed_url("report.pdf")
        storage = FileSystemStorage(tmp_path, secret=SECRET, clock=clock)
        assert not storage.verify_request(_request_for(url))

    def test_public_base_url_prefix(self, tmp_path, clock):
        storage = FileSystemStorage(tmp_path, secret=SECRET, public_base_url="https://api.farmestly.dev/", clock=clock)
        url = storage.get_signed_url("report.pdf")
        assert url.startswith("https://api.farmestly.dev/report/download/report.pdf?")
        assert storage.verify_request(_request_for(url))


class TestSendFile:
    def test_accel_redirect(self, storage):
        response = storage.send_file("report.pdf")
        assert response.status_code == 200
        assert response.headers["x-accel-redirect"] == "/_internal_reports/report.pdf"
        assert response.headers["content-type"] == "application/pdf"
        assert 'filename="report.pdf"' in response.headers["content-disposition"]

    def test_streams_when_prefix_empty(self, tmp_path, clock):
        storage = FileSystemStorage(tmp_path, secret=SECRET, accel_redirect_prefix="", clock=clock)
        response = storage.send_file("report.pdf")
        assert isinstance(response, FileResponse)
        assert "x-accel-redirect" not in response.headers
