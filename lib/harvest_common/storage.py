"""
Append-only dataset storage for harvested documents.

Documents are pushed as JSON records into a named collection, either as
JSON Lines files on local disk or as one S3 object per record.
"""

import json
import logging
import threading
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

import boto3
from botocore.exceptions import ClientError

from harvest_common.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Lazy-loaded AWS client (initialized on first use)
_s3_client = None


def get_s3_client():
    """Get or create S3 client."""
    global _s3_client
    if _s3_client is None:
        _s3_client = boto3.client("s3")
    return _s3_client


def parse_s3_uri(s3_uri: str) -> tuple[str, str]:
    """
    Parse S3 URI into bucket and key prefix.

    Args:
        s3_uri: S3 URI like "s3://bucket-name/path/prefix"

    Returns:
        Tuple of (bucket, prefix)

    Example:
        bucket, prefix = parse_s3_uri("s3://my-bucket/harvests")
        # bucket = "my-bucket"
        # prefix = "harvests"
    """
    if not s3_uri.startswith("s3://"):
        raise ValueError(f"Invalid S3 URI: {s3_uri}")

    parts = s3_uri[5:].split("/", 1)
    bucket = parts[0]
    if not bucket:
        raise ValueError(f"Invalid S3 URI: {s3_uri}")
    prefix = parts[1].strip("/") if len(parts) > 1 else ""
    return bucket, prefix


class DatasetStore(Protocol):
    """Append-only record sink for one collection."""

    collection: str

    def push(self, record: dict[str, Any]) -> None: ...


class LocalDatasetStore:
    """
    JSON Lines file per collection under a storage directory.

    Appends are serialized with a lock so worker threads can share one store.
    """

    def __init__(self, root: str | Path, collection: str):
        self.root = Path(root)
        self.collection = collection
        self.path = self.root / f"{collection}.jsonl"
        self._lock = threading.Lock()

    def push(self, record: dict[str, Any]) -> None:
        line = json.dumps(record, ensure_ascii=False)
        with self._lock:
            self.root.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")

    def read_all(self) -> list[dict[str, Any]]:
        """Load every record pushed so far."""
        if not self.path.exists():
            return []
        with self.path.open(encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]


class S3DatasetStore:
    """One JSON object per record under s3://bucket/prefix/collection/."""

    def __init__(self, bucket: str, prefix: str, collection: str, client=None):
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.collection = collection
        self._client = client

    @property
    def client(self):
        return self._client or get_s3_client()

    def record_key(self) -> str:
        timestamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")
        name = f"{timestamp}-{uuid.uuid4().hex}.json"
        parts = [p for p in (self.prefix, self.collection, name) if p]
        return "/".join(parts)

    def push(self, record: dict[str, Any]) -> None:
        key = self.record_key()
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=json.dumps(record, ensure_ascii=False).encode("utf-8"),
                ContentType="application/json",
            )
        except ClientError as e:
            logger.error(f"Failed to write record to s3://{self.bucket}/{key}: {e}")
            raise


def create_store(location: str, collection: str) -> DatasetStore:
    """
    Build a dataset store from a location string.

    Args:
        location: Local directory path, or an s3:// URI
        collection: Collection name records are grouped under

    Returns:
        LocalDatasetStore or S3DatasetStore

    Raises:
        ConfigurationError: If an s3:// location has no bucket
    """
    if location.startswith("s3://"):
        try:
            bucket, prefix = parse_s3_uri(location)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        return S3DatasetStore(bucket, prefix, collection)
    return LocalDatasetStore(location, collection)
