"""Tests for bulkload.assets."""

from unittest.mock import MagicMock

import pytest
import requests

from bulkload.assets import CloudinaryHost, SignatureEndpoint
from bulkload.config import BulkLoadConfig
from bulkload.errors import AuthError, TransportError, UploadError
from bulkload.models import UploadCredentials
from bulkload.retry import RetryExhausted

CREDENTIALS = UploadCredentials(signature="sig", timestamp=1700000000, folder="rossel/products")


def fake_response(status: int = 200, body=None) -> MagicMock:
    response = MagicMock(spec=requests.Response)
    response.status_code = status
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body if body is not None else {}
    return response


@pytest.fixture
def config() -> BulkLoadConfig:
    config = BulkLoadConfig.from_dict({
        "cloudinary": {"cloud_name": "demo", "api_key": "123"},
        "signature": {"endpoint": "https://example.com/api/sign", "token": "t0k"},
        "retry": {"max_attempts": 2, "initial_delay_ms": 1, "max_delay_ms": 1},
    })
    return config


@pytest.fixture
def session() -> MagicMock:
    return MagicMock(spec=requests.Session)


class TestCloudinaryHost:
    def test_signed_multipart_upload(self, config: BulkLoadConfig, session: MagicMock):
        session.post.return_value = fake_response(200, {
            "secure_url": "https://res.cloudinary.com/demo/849_rojo_1.webp",
        })
        host = CloudinaryHost(config, session=session)

        url = host.upload("849_rojo_1.webp", b"image", CREDENTIALS)

        assert url == "https://res.cloudinary.com/demo/849_rojo_1.webp"
        args, kwargs = session.post.call_args
        assert args[0] == "https://api.cloudinary.com/v1_1/demo/image/upload"
        assert kwargs["data"] == {
            "api_key": "123",
            "timestamp": "1700000000",
            "signature": "sig",
            "folder": "rossel/products",
        }
        assert kwargs["files"]["file"][0] == "849_rojo_1.webp"
        assert kwargs["files"]["file"][1] == b"image"

    def test_falls_back_to_url(self, config: BulkLoadConfig, session: MagicMock):
        session.post.return_value = fake_response(200, {"url": "http://cdn/a.webp"})
        host = CloudinaryHost(config, session=session)

        assert host.upload("a.webp", b"x", CREDENTIALS) == "http://cdn/a.webp"

    def test_error_body(self, config: BulkLoadConfig, session: MagicMock):
        session.post.return_value = fake_response(400, {"error": {"message": "Invalid Signature"}})
        host = CloudinaryHost(config, session=session)

        with pytest.raises(UploadError) as exc_info:
            host.upload("a.webp", b"x", CREDENTIALS)

        assert exc_info.value.message == "Upload of a.webp failed: Invalid Signature"
        assert session.post.call_count == 1

    def test_missing_url(self, config: BulkLoadConfig, session: MagicMock):
        session.post.return_value = fake_response(200, {"public_id": "a"})
        host = CloudinaryHost(config, session=session)

        with pytest.raises(UploadError):
            host.upload("a.webp", b"x", CREDENTIALS)

    def test_server_errors_are_retried(self, config: BulkLoadConfig, session: MagicMock):
        session.post.side_effect = [
            fake_response(503),
            fake_response(200, {"secure_url": "https://cdn/a.webp"}),
        ]
        host = CloudinaryHost(config, session=session)

        assert host.upload("a.webp", b"x", CREDENTIALS) == "https://cdn/a.webp"
        assert session.post.call_count == 2

    def test_timeouts_exhaust_retries(self, config: BulkLoadConfig, session: MagicMock):
        session.post.side_effect = requests.exceptions.Timeout()
        host = CloudinaryHost(config, session=session)

        with pytest.raises(RetryExhausted) as exc_info:
            host.upload("a.webp", b"x", CREDENTIALS)

        assert isinstance(exc_info.value.last_error, TransportError)
        assert session.post.call_count == 2

    def test_auth_failure(self, config: BulkLoadConfig, session: MagicMock):
        session.post.return_value = fake_response(401)
        host = CloudinaryHost(config, session=session)

        with pytest.raises(AuthError):
            host.upload("a.webp", b"x", CREDENTIALS)

    def test_close(self, config: BulkLoadConfig, session: MagicMock):
        CloudinaryHost(config, session=session).close()
        session.close.assert_called_once()


class TestSignatureEndpoint:
    def test_issue(self, config: BulkLoadConfig, session: MagicMock):
        session.post.return_value = fake_response(200, {
            "signature": "abc",
            "timestamp": "1700000000",
            "folder": "rossel/products",
        })
        issuer = SignatureEndpoint(config, session=session)

        credentials = issuer.issue()

        assert credentials == UploadCredentials(
            signature="abc",
            timestamp=1700000000,
            folder="rossel/products",
            api_key="123",
        )
        args, kwargs = session.post.call_args
        assert args[0] == "https://example.com/api/sign"
        assert kwargs["headers"] == {"Authorization": "Bearer t0k"}

    def test_default_folder(self, config: BulkLoadConfig, session: MagicMock):
        config.upload.folder = "catalog"
        session.post.return_value = fake_response(200, {"signature": "abc", "timestamp": 1})

        assert SignatureEndpoint(config, session=session).issue().folder == "catalog"

    def test_malformed_response(self, config: BulkLoadConfig, session: MagicMock):
        session.post.return_value = fake_response(200, {"timestamp": 1})

        with pytest.raises(UploadError) as exc_info:
            SignatureEndpoint(config, session=session).issue()

        assert exc_info.value.stage == "upload_signature"

    def test_non_json_response(self, config: BulkLoadConfig, session: MagicMock):
        session.post.return_value = fake_response(200, ValueError("no json"))

        with pytest.raises(UploadError):
            SignatureEndpoint(config, session=session).issue()

    def test_forbidden(self, config: BulkLoadConfig, session: MagicMock):
        session.post.return_value = fake_response(403)

        with pytest.raises(AuthError) as exc_info:
            SignatureEndpoint(config, session=session).issue()

        assert exc_info.value.http_status == 403
