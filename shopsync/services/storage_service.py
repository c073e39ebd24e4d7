import boto3
from botocore.config import Config as BotoConfig
from flask import current_app


def _get_client():
    return boto3.client(
        "s3",
        endpoint_url=current_app.config["S3_ENDPOINT_URL"] or None,
        aws_access_key_id=current_app.config["S3_ACCESS_KEY"],
        aws_secret_access_key=current_app.config["S3_SECRET_KEY"],
        region_name=current_app.config["S3_REGION"],
        config=BotoConfig(signature_version="s3v4"),
    )


def _bucket():
    return current_app.config["S3_BUCKET_NAME"]


def upload(storage_key, data, content_type="image/jpeg"):
    """Store a product image under ``storage_key`` (public-read)."""
    _get_client().put_object(
        Bucket=_bucket(),
        Key=storage_key,
        Body=data,
        ContentType=content_type,
        ACL="public-read",
    )


def download(storage_key):
    response = _get_client().get_object(Bucket=_bucket(), Key=storage_key)
    return response["Body"].read()


def get_public_url(storage_key):
    """Return the public CDN URL for a storage key."""
    base = (current_app.config["S3_PUBLIC_URL"] or "").rstrip("/")
    return f"{base}/{storage_key.lstrip('/')}"


def delete(storage_key):
    _get_client().delete_object(Bucket=_bucket(), Key=storage_key)
