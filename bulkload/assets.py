"""
bulkload.assets — Asset host and upload signer clients.

Images go to Cloudinary with a signed upload. The signature is issued by a
serverless function that holds the API secret; this module only consumes
its {signature, timestamp, folder} response.
"""

import mimetypes
from typing import Any, Protocol

import requests

from bulkload.config import BulkLoadConfig
from bulkload.errors import AuthError, TransportError, UploadError
from bulkload.logger import get_logger
from bulkload.models import UploadCredentials
from bulkload.retry import RetryHandler


class AssetHost(Protocol):
    def upload(self, filename: str, content: bytes, credentials: UploadCredentials) -> str:
        """Upload one asset and return its public URL."""
        ...


class CredentialsIssuer(Protocol):
    def issue(self) -> UploadCredentials:
        ...


def _check_status(response: requests.Response, url: str, sku: str, stage: str) -> None:
    """Map transport-level HTTP statuses to typed errors."""
    if 500 <= response.status_code < 600:
        raise TransportError(
            sku=sku,
            stage=stage,
            message=f"Server error: {response.status_code}",
            http_status=response.status_code,
            payload={"url": url},
            retryable=True,
        )

    if response.status_code == 429:
        raise TransportError(
            sku=sku,
            stage=stage,
            message="Rate limited (429)",
            http_status=429,
            payload={"url": url},
            retryable=True,
        )

    if response.status_code in (401, 403):
        raise AuthError(
            sku=sku,
            stage=stage,
            message="Authentication failed" if response.status_code == 401 else "Authorization denied",
            http_status=response.status_code,
            payload={"url": url},
        )


def _post(
    session: requests.Session,
    url: str,
    sku: str,
    stage: str,
    timeout: int,
    **kwargs: Any,
) -> requests.Response:
    """Single POST with transport errors mapped (no retry)."""
    try:
        response = session.post(url, timeout=timeout, **kwargs)
    except requests.exceptions.Timeout:
        raise TransportError(
            sku=sku,
            stage=stage,
            message=f"Request timeout: {url}",
            payload={"url": url},
            retryable=True,
        )
    except requests.exceptions.ConnectionError:
        raise TransportError(
            sku=sku,
            stage=stage,
            message=f"Connection error: {url}",
            payload={"url": url},
            retryable=True,
        )
    except requests.exceptions.RequestException as e:
        raise TransportError(
            sku=sku,
            stage=stage,
            message=f"Request error: {e}",
            payload={"url": url},
            retryable=False,
        )

    _check_status(response, url, sku, stage)
    return response


def _json_body(response: requests.Response, url: str, stage: str) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        raise UploadError(
            sku="",
            stage=stage,
            message=f"Non-JSON response ({response.status_code})",
            http_status=response.status_code,
            payload={"url": url},
        )
    if not isinstance(body, dict):
        raise UploadError(
            sku="",
            stage=stage,
            message="Unexpected response shape",
            http_status=response.status_code,
            payload={"url": url},
        )
    return body


def _error_message(body: dict[str, Any]) -> str | None:
    error = body.get("error")
    if not error:
        return None
    if isinstance(error, dict):
        return str(error.get("message", error))
    return str(error)


class CloudinaryHost:
    """Signed uploads to a Cloudinary account."""

    def __init__(self, config: BulkLoadConfig, session: requests.Session | None = None):
        self._config = config.cloudinary
        self._url = self._config.upload_url.format(cloud_name=self._config.cloud_name)
        self._session = session or requests.Session()
        self._retry = RetryHandler(config.retry)
        self._logger = get_logger()

    def _upload_once(
        self,
        filename: str,
        content: bytes,
        credentials: UploadCredentials,
    ) -> str:
        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        response = _post(
            self._session,
            self._url,
            sku="",
            stage="asset_upload",
            timeout=self._config.timeout_seconds,
            data={
                "api_key": credentials.api_key or self._config.api_key,
                "timestamp": str(credentials.timestamp),
                "signature": credentials.signature,
                "folder": credentials.folder,
            },
            files={"file": (filename, content, content_type)},
        )

        body = _json_body(response, self._url, "asset_upload")
        message = _error_message(body)
        if message or response.status_code >= 400:
            raise UploadError(
                sku="",
                stage="asset_upload",
                message=f"Upload of {filename} failed: {message or response.status_code}",
                http_status=response.status_code,
                payload={"filename": filename},
            )

        url = body.get("secure_url") or body.get("url")
        if not url:
            raise UploadError(
                sku="",
                stage="asset_upload",
                message=f"Upload of {filename} returned no URL",
                payload={"filename": filename},
            )
        return url

    def upload(self, filename: str, content: bytes, credentials: UploadCredentials) -> str:
        url = self._retry.execute(
            self._upload_once,
            filename,
            content,
            credentials,
            stage="asset_upload",
        )
        self._logger.debug(f"Uploaded {filename}", stage="asset_upload", url=url)
        return url

    def close(self) -> None:
        self._session.close()


class SignatureEndpoint:
    """Fetches bulk-upload signatures from the signing function."""

    def __init__(self, config: BulkLoadConfig, session: requests.Session | None = None):
        self._config = config
        self._session = session or requests.Session()
        self._retry = RetryHandler(config.retry)

    def _issue_once(self) -> UploadCredentials:
        endpoint = self._config.signature.endpoint
        headers = {}
        if self._config.signature.token:
            headers["Authorization"] = f"Bearer {self._config.signature.token}"

        response = _post(
            self._session,
            endpoint,
            sku="",
            stage="upload_signature",
            timeout=30,
            headers=headers,
            json={},
        )
        body = _json_body(response, endpoint, "upload_signature")

        message = _error_message(body)
        if message or response.status_code >= 400:
            raise UploadError(
                sku="",
                stage="upload_signature",
                message=f"Signature request failed: {message or response.status_code}",
                http_status=response.status_code,
            )

        try:
            return UploadCredentials(
                signature=str(body["signature"]),
                timestamp=int(body["timestamp"]),
                folder=str(body.get("folder") or self._config.upload.folder),
                api_key=self._config.cloudinary.api_key,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise UploadError(
                sku="",
                stage="upload_signature",
                message=f"Malformed signature response: {e}",
                payload={"keys": sorted(body)},
            ) from e

    def issue(self) -> UploadCredentials:
        return self._retry.execute(self._issue_once, stage="upload_signature")

    def close(self) -> None:
        self._session.close()
