"""Shared-key signing for blob service links.

Builds a service SAS (shared access signature) scoped to a single blob:
the string-to-sign is HMAC-SHA256'd with the decoded account key and the
result is carried in the `sig` query parameter. Field order follows storage
service version 2020-12-06 and later.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import urlencode

from relman.core.clock import isoformat_z
from relman.core.result import Err, Ok, Result

__all__ = ["SAS_VERSION", "SasError", "BlobSasRequest", "canonical_permissions", "sign_blob_sas"]

SAS_VERSION = "2022-11-02"

# Service-defined order; permissions out of order are rejected by the verifier.
_PERMISSION_ORDER = "racwdxytlmeop"


@dataclass(frozen=True, slots=True)
class SasError:
    message: str


@dataclass(frozen=True, slots=True)
class BlobSasRequest:
    account: str
    container: str
    blob: str
    permissions: str
    starts_on: datetime
    expires_on: datetime
    protocol: str = "https"


def canonical_permissions(permissions: str) -> str:
    unknown = sorted(set(permissions) - set(_PERMISSION_ORDER))
    if unknown:
        raise ValueError(f"unknown SAS permissions: {''.join(unknown)}")
    return "".join(p for p in _PERMISSION_ORDER if p in permissions)


def _string_to_sign(req: BlobSasRequest, permissions: str) -> str:
    canonical_resource = f"/blob/{req.account}/{req.container}/{req.blob}"
    return "\n".join(
        [
            permissions,
            isoformat_z(req.starts_on),
            isoformat_z(req.expires_on),
            canonical_resource,
            "",  # signedIdentifier
            "",  # signedIP
            req.protocol,
            SAS_VERSION,
            "b",  # signedResource
            "",  # signedSnapshotTime
            "",  # signedEncryptionScope
            "",  # rscc
            "",  # rscd
            "",  # rsce
            "",  # rscl
            "",  # rsct
        ]
    )


def sign_blob_sas(req: BlobSasRequest, account_key: str) -> Result[str, SasError]:
    """Return the SAS query string (without leading `?`) for one blob."""
    try:
        permissions = canonical_permissions(req.permissions)
    except ValueError as e:
        return Err(SasError(str(e)))
    if req.expires_on <= req.starts_on:
        return Err(SasError("SAS expiry must be after its start"))

    try:
        key = base64.b64decode(account_key, validate=True)
    except (binascii.Error, ValueError) as e:
        return Err(SasError(f"account key is not valid base64: {e}"))

    digest = hmac.new(key, _string_to_sign(req, permissions).encode("utf-8"), hashlib.sha256)
    signature = base64.b64encode(digest.digest()).decode("ascii")

    query = urlencode(
        [
            ("sv", SAS_VERSION),
            ("st", isoformat_z(req.starts_on)),
            ("se", isoformat_z(req.expires_on)),
            ("sr", "b"),
            ("sp", permissions),
            ("spr", req.protocol),
            ("sig", signature),
        ]
    )
    return Ok(query)
