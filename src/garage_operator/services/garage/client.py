"""Garage Admin API client implementation."""

from __future__ import annotations

import logging
import os
import time
from typing import Any

import httpx

from ... import metrics
from ...utils.rate_limit import rate_limit_garage
from .models import Bucket, BucketQuotas, Key, KeyInfo, Permissions

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = float(os.getenv("GARAGE_API_TIMEOUT_SECONDS", "30.0"))
API_PREFIX = "/v1"


class GarageAPIError(Exception):
    """A Garage Admin API call failed.

    Raised for non-2xx responses and transport failures alike. The client never
    retries; callers decide what a failure means.
    """

    def __init__(
        self,
        operation: str,
        cause: Exception | str,
        status_code: int | None = None,
    ) -> None:
        """Initialize Garage API error.

        Args:
            operation: Client operation that failed (e.g. "get_key_by_id")
            cause: Underlying transport exception or opaque response body
            status_code: HTTP status code if a response was received
        """
        self.operation = operation
        self.cause = cause
        self.status_code = status_code
        if status_code is not None:
            message = f"{operation} failed with status {status_code}: {cause}"
        else:
            message = f"{operation} failed: {cause}"
        super().__init__(message)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class GarageClient:
    """Client for the Garage Admin API v1."""

    def __init__(
        self,
        endpoint: str,
        admin_token: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize Garage client.

        Args:
            endpoint: Admin API base URL (e.g. http://garage:3903)
            admin_token: Bearer token for the admin API
            timeout_seconds: Upper bound for every request
            transport: Optional httpx transport (used by tests)
        """
        self.endpoint = endpoint.rstrip("/")
        self._client = httpx.Client(
            base_url=self.endpoint,
            timeout=httpx.Timeout(timeout_seconds),
            headers={
                "Authorization": f"Bearer {admin_token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            transport=transport,
        )

    def __enter__(self) -> GarageClient:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        self._client.close()

    @rate_limit_garage
    def _request(
        self,
        operation: str,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json_data: dict[str, Any] | None = None,
        decode: bool = True,
    ) -> Any:
        """Execute one request and return the decoded JSON body, or None for an empty body."""
        start_time = time.time()
        try:
            response = self._client.request(method, path, params=params, json=json_data)
        except httpx.HTTPError as e:
            metrics.api_call_total.labels(api_type="garage", operation=operation, result="error").inc()
            logger.debug(f"Garage {operation} transport failure: {e}")
            raise GarageAPIError(operation, e) from e
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="garage", operation=operation).observe(duration)

        if not response.is_success:
            metrics.api_call_total.labels(api_type="garage", operation=operation, result="error").inc()
            raise GarageAPIError(operation, response.text, status_code=response.status_code)

        metrics.api_call_total.labels(api_type="garage", operation=operation, result="success").inc()
        if response.status_code == 204 or not response.content:
            return None
        if not decode:
            return response.text
        try:
            return response.json()
        except ValueError as e:
            raise GarageAPIError(operation, f"invalid JSON response: {e}", status_code=response.status_code) from e

    # Buckets

    def create_bucket(self, global_alias: str | None = None, local_alias: dict[str, str] | None = None) -> Bucket:
        """Create a bucket with an optional global alias and local alias."""
        body: dict[str, Any] = {}
        if global_alias:
            body["globalAlias"] = global_alias
        if local_alias:
            body["localAlias"] = {
                "accessKeyId": local_alias["accessKeyId"],
                "alias": local_alias["alias"],
            }
        data = self._request("create_bucket", "POST", f"{API_PREFIX}/bucket", json_data=body)
        return Bucket.from_dict(data or {})

    def get_bucket_by_id(self, bucket_id: str) -> Bucket:
        data = self._request("get_bucket_by_id", "GET", f"{API_PREFIX}/bucket", params={"id": bucket_id})
        return Bucket.from_dict(data or {})

    def get_bucket_by_alias(self, global_alias: str) -> Bucket:
        data = self._request(
            "get_bucket_by_alias", "GET", f"{API_PREFIX}/bucket", params={"globalAlias": global_alias}
        )
        return Bucket.from_dict(data or {})

    def update_bucket(self, bucket_id: str, quotas: BucketQuotas) -> Bucket:
        data = self._request(
            "update_bucket",
            "PUT",
            f"{API_PREFIX}/bucket",
            json_data={"id": bucket_id, "quotas": quotas.to_dict()},
        )
        return Bucket.from_dict(data or {"id": bucket_id})

    def delete_bucket(self, bucket_id: str) -> None:
        self._request("delete_bucket", "DELETE", f"{API_PREFIX}/bucket", params={"id": bucket_id})

    # Keys

    def create_key(self, name: str) -> Key:
        """Create an access key.

        The returned key carries ``secret_access_key``; no later read does.
        """
        data = self._request("create_key", "POST", f"{API_PREFIX}/key", json_data={"name": name})
        return Key.from_dict(data or {})

    def get_key_by_id(self, access_key_id: str) -> Key:
        data = self._request("get_key_by_id", "GET", f"{API_PREFIX}/key", params={"id": access_key_id})
        key = Key.from_dict(data or {})
        # Reads never surface the secret, even if the server includes it.
        key.secret_access_key = None
        return key

    def search_key_by_name(self, name: str) -> Key | None:
        """Search keys by name and return the one whose name matches exactly.

        The search endpoint matches on prefixes and substrings, so candidates
        are filtered on exact equality before fetching the full key.
        """
        data = self._request("search_key_by_name", "GET", f"{API_PREFIX}/key", params={"search": name})
        if isinstance(data, dict):
            data = [data]
        for candidate in (KeyInfo.from_dict(item) for item in data or []):
            if candidate.name == name and candidate.id:
                return self.get_key_by_id(candidate.id)
        return None

    def update_key(
        self,
        access_key_id: str,
        allow: dict[str, bool] | None = None,
        deny: dict[str, bool] | None = None,
    ) -> Key:
        body: dict[str, Any] = {"accessKeyId": access_key_id}
        if allow:
            body["allow"] = allow
        if deny:
            body["deny"] = deny
        data = self._request("update_key", "PUT", f"{API_PREFIX}/key", json_data=body)
        key = Key.from_dict(data or {"accessKeyId": access_key_id})
        key.secret_access_key = None
        return key

    def delete_key(self, access_key_id: str) -> None:
        self._request("delete_key", "DELETE", f"{API_PREFIX}/key", params={"id": access_key_id})

    # Permissions

    def grant_access(self, bucket_id: str, access_key_id: str, permissions: Permissions) -> Bucket:
        """Allow the permissions set to True in ``permissions``."""
        data = self._request(
            "grant_access",
            "POST",
            f"{API_PREFIX}/bucket/allow",
            json_data={
                "bucketId": bucket_id,
                "accessKeyId": access_key_id,
                "permissions": permissions.to_dict(),
            },
        )
        return Bucket.from_dict(data or {"id": bucket_id})

    def revoke_access(
        self,
        bucket_id: str,
        access_key_id: str,
        permissions: Permissions | None = None,
    ) -> Bucket:
        """Deny the permissions set to True in ``permissions``; all of them by default."""
        if permissions is None:
            permissions = Permissions(read=True, write=True, owner=True)
        data = self._request(
            "revoke_access",
            "POST",
            f"{API_PREFIX}/bucket/deny",
            json_data={
                "bucketId": bucket_id,
                "accessKeyId": access_key_id,
                "permissions": permissions.to_dict(),
            },
        )
        return Bucket.from_dict(data or {"id": bucket_id})

    def check_health(self) -> dict[str, Any]:
        text = self._request("check_health", "GET", "/health", decode=False)
        return {"status": (text or "").strip()}
