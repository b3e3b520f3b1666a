"""Blob service object store over plain HTTPS.

Every request is authorized with a short-lived SAS minted from the account
key for exactly the permission it needs. Without a key, the pre-issued
static token from configuration is used as-is.
"""

from __future__ import annotations

import ssl
import urllib.error
import urllib.request
from datetime import datetime, timedelta

from relman.core.clock import Clock, SystemClock
from relman.core.config import Config
from relman.core.result import Err, Ok, Result
from relman.storage.sas import BlobSasRequest, sign_blob_sas
from relman.storage.store import StoreError, quote_object_name

__all__ = ["BlobStore"]

_REQUEST_TOKEN_TTL = timedelta(minutes=10)


class BlobStore:
    """ObjectStore backed by a blob service container.

    Handles:
    - HTTPS with system certificates
    - Per-request signing with the shared key, or a static token fallback
    - Mapping HTTP/network failures to StoreError
    """

    def __init__(
        self,
        *,
        account: str,
        container: str,
        account_key: str | None = None,
        static_token: str | None = None,
        endpoint_suffix: str = "blob.core.windows.net",
        clock: Clock | None = None,
        timeout: float = 30.0,
        user_agent: str = "relman/0.3.0",
    ) -> None:
        self.account = account
        self._container = container
        self._account_key = account_key
        self._static_token = (static_token or "").lstrip("?") or None
        self._endpoint = f"https://{account}.{endpoint_suffix}"
        self._clock = clock or SystemClock()
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    @classmethod
    def from_config(cls, config: Config, *, clock: Clock | None = None) -> BlobStore | None:
        """Build a store from config, or None when no account is configured."""
        storage = config.storage
        if storage.account is None:
            return None
        return cls(
            account=storage.account,
            container=storage.container,
            account_key=config.signing.account_key,
            static_token=config.signing.static_token,
            endpoint_suffix=storage.endpoint_suffix,
            clock=clock,
        )

    @property
    def container(self) -> str:
        return self._container

    @property
    def container_url(self) -> str:
        return f"{self._endpoint}/{self._container}"

    @property
    def can_sign(self) -> bool:
        return self._account_key is not None

    def object_url(self, name: str) -> str:
        return f"{self.container_url}/{quote_object_name(name)}"

    def sign(
        self,
        container: str,
        name: str,
        permissions: str,
        starts_on: datetime,
        expires_on: datetime,
    ) -> Result[str, StoreError]:
        if self._account_key is None:
            return Err(StoreError(name=name, status=0, message="no shared key configured"))
        signed = sign_blob_sas(
            BlobSasRequest(
                account=self.account,
                container=container,
                blob=name,
                permissions=permissions,
                starts_on=starts_on,
                expires_on=expires_on,
            ),
            self._account_key,
        )
        if isinstance(signed, Err):
            return Err(StoreError(name=name, status=0, message=signed.error.message))
        return Ok(signed.value)

    def _authorized_url(self, name: str, permissions: str) -> Result[str, StoreError]:
        url = self.object_url(name)
        if self._account_key is not None:
            now = self._clock.now()
            token = self.sign(
                self._container,
                name,
                permissions,
                now - timedelta(minutes=5),
                now + _REQUEST_TOKEN_TTL,
            )
            if isinstance(token, Err):
                return token
            return Ok(f"{url}?{token.value}")
        if self._static_token is not None:
            return Ok(f"{url}?{self._static_token}")
        return Ok(url)

    def _request(
        self,
        name: str,
        method: str,
        permissions: str,
        *,
        data: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> Result[bytes, StoreError]:
        url = self._authorized_url(name, permissions)
        if isinstance(url, Err):
            return url

        all_headers = {"User-Agent": self.user_agent, "x-ms-version": "2022-11-02"}
        all_headers.update(headers or {})
        try:
            req = urllib.request.Request(url.value, data=data, method=method, headers=all_headers)
            with urllib.request.urlopen(
                req,
                timeout=self.timeout,
                context=self._ssl_context,
            ) as response:
                return Ok(response.read())
        except urllib.error.HTTPError as e:
            return Err(StoreError(name=name, status=e.code, message=str(e.reason)))
        except urllib.error.URLError as e:
            return Err(StoreError(name=name, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(StoreError(name=name, status=0, message="Request timed out"))
        except ValueError as e:
            return Err(StoreError(name=name, status=0, message=str(e)))
        except OSError as e:
            return Err(StoreError(name=name, status=0, message=str(e)))

    def get(self, name: str) -> Result[bytes, StoreError]:
        return self._request(name, "GET", "r")

    def put(self, name: str, data: bytes, content_type: str) -> Result[None, StoreError]:
        result = self._request(
            name,
            "PUT",
            "cw",
            data=data,
            headers={
                "x-ms-blob-type": "BlockBlob",
                "Content-Type": content_type,
                "Content-Length": str(len(data)),
            },
        )
        if isinstance(result, Err):
            return result
        return Ok(None)

    def delete(self, name: str) -> Result[None, StoreError]:
        result = self._request(name, "DELETE", "d")
        if isinstance(result, Err):
            return result
        return Ok(None)
