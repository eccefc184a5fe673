"""Helpers for the private uploads bucket."""

from __future__ import annotations

import re

import boto3
from botocore.client import BaseClient

from sas_crm.core.config import Settings, resolve_resource_name
from sas_crm.infra.stack import UPLOADS
from sas_crm.utils import generate_id

_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]+")
DEFAULT_PRESIGN_SECONDS = 900


def uploads_bucket_name() -> str:
    return resolve_resource_name(UPLOADS.key)


def create_uploads_client(settings: Settings) -> BaseClient:
    """Return an S3 client in the configured AWS region."""
    return boto3.client("s3", region_name=settings.aws_region)


def upload_key(user_id: str, filename: str) -> str:
    """Build a tenant-prefixed object key that cannot collide between uploads."""
    safe_name = _UNSAFE_FILENAME_RE.sub("_", filename.strip()).strip("._") or "file"
    return f"{user_id}/{generate_id()}/{safe_name}"


def presigned_upload_url(
    client: BaseClient,
    bucket: str,
    key: str,
    *,
    content_type: str | None = None,
    expires_in: int = DEFAULT_PRESIGN_SECONDS,
) -> str:
    params = {"Bucket": bucket, "Key": key}
    if content_type:
        params["ContentType"] = content_type
    return client.generate_presigned_url("put_object", Params=params, ExpiresIn=expires_in)
