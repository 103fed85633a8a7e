import asyncio
from functools import lru_cache
from typing import Dict, List

import boto3
import httpx
from botocore.client import Config
from botocore.exceptions import ClientError

from datastore_shared.compression import DEFAULT_COMPRESSOR
from datastore_shared.schema import DataStoreSchema, ObjectKey, ObjectKeyError, parse_object_key

from .config import normalize_url
from .logging_config import log

_CFG: Dict = {}

_MISSING_OBJECT_CODES = {"NoSuchKey", "404", "NotFound"}


def configure(cfg: Dict) -> None:
    """Configure the storage module with application settings.

    Args:
        cfg: Configuration dictionary produced by datastore_server.config.set_config().
    """
    global _CFG
    _CFG = cfg or {}
    _client.cache_clear()
    schema.cache_clear()


def _datastore_cfg() -> Dict:
    return _CFG.get("datastore", {}) if isinstance(_CFG, dict) else {}


def _bucket() -> str:
    """Return the bucket holding the ledger files."""
    return _datastore_cfg().get("bucket")


def _prefix() -> str:
    """Return the key prefix inside the bucket (no leading/trailing slash)."""
    prefix = _datastore_cfg().get("prefix") or ""
    return str(prefix).strip("/")


def _endpoint_url() -> str | None:
    """Resolve the S3-compatible endpoint URL.

    Returns:
        Optional[str]: Endpoint URL or None for default boto behavior.
    """
    url = _datastore_cfg().get("url")
    if isinstance(url, str):
        return normalize_url(url) or None
    return None


@lru_cache(maxsize=1)
def schema() -> DataStoreSchema:
    """Return the configured key schema.

    Raises:
        SchemaError: If ``datastore.schema`` is missing or invalid.
    """
    return DataStoreSchema.from_mapping(_datastore_cfg().get("schema"))


async def ensure_storage_available() -> bool:
    """Verify the object store endpoint is configured and reachable.

    Returns:
        bool: True if available, False otherwise.
    """
    endpoint = _endpoint_url()

    log.debug("Checking object store @: %s", endpoint)

    if not endpoint:
        return False
    try:
        async with httpx.AsyncClient(timeout=3.0) as client:
            resp = await client.get(endpoint)
            resp.raise_for_status()
        return True
    except httpx.HTTPError as exc:
        log.warning("Object store %s unavailable: %s", endpoint, exc)
        return False


@lru_cache(maxsize=1)
def _client():
    """Create a cached boto3 S3 client.

    Returns:
        botocore.client.S3: Configured client instance.
    """
    datastore_cfg = _datastore_cfg()
    return boto3.client(
        "s3",
        endpoint_url=_endpoint_url(),
        aws_access_key_id=datastore_cfg.get("user"),
        aws_secret_access_key=datastore_cfg.get("password"),
        config=Config(
            signature_version=datastore_cfg.get("signature_version") or "s3v4",
            s3={"addressing_style": "path"},
        ),
    )


def _root() -> str:
    prefix = _prefix()
    return f"{prefix}/" if prefix else ""


def _compressed() -> bool:
    """Payloads are zstd-compressed unless the schema overrides the extension."""
    return schema().extension == DEFAULT_COMPRESSOR.name


def build_object_key(ledger_seq: int, prefix: str | None = None) -> str:
    """Return the full object key (including prefix) for the file holding a ledger.

    Args:
        ledger_seq: Ledger sequence number.
        prefix: Optional prefix override; defaults to ``datastore.prefix``.

    Returns:
        str: Object key suitable for S3 operations.
    """
    root = f"{prefix.strip('/')}/" if prefix else _root()
    return f"{root}{schema().get_object_key_from_sequence_number(ledger_seq)}"


async def put_ledger_file(ledger_seq: int, data: bytes) -> str:
    """Store the XDR payload of the file holding ``ledger_seq``.

    Args:
        ledger_seq: Any ledger sequence number inside the file range.
        data: Uncompressed XDR bytes.

    Returns:
        str: Stored S3 key.
    """
    key = build_object_key(ledger_seq)
    body = DEFAULT_COMPRESSOR.compress(data) if _compressed() else data

    log.info("Uploading ledger file key=%s size=%d", key, len(body))

    await asyncio.to_thread(
        _client().put_object,
        Bucket=_bucket(),
        Key=key,
        Body=body,
        ContentType="application/octet-stream",
    )
    return key


async def get_ledger_file(ledger_seq: int) -> bytes:
    """Fetch the XDR payload of the file holding ``ledger_seq``.

    Returns:
        bytes: Uncompressed XDR bytes.

    Raises:
        KeyError: If the file is not found in storage.
    """
    key = build_object_key(ledger_seq)

    log.info("Retrieving ledger file key=%s", key)

    try:
        response = await asyncio.to_thread(_client().get_object, Bucket=_bucket(), Key=key)
    except ClientError as exc:
        code = str(exc.response.get("Error", {}).get("Code", ""))
        if code in _MISSING_OBJECT_CODES:
            raise KeyError(f"S3 object not found: {key}") from exc
        raise

    body = response["Body"].read()
    return DEFAULT_COMPRESSOR.decompress(body) if _compressed() else body


async def list_ledger_files(ledger_seq: int | None = None) -> List[ObjectKey]:
    """List the ledger files stored under the configured prefix.

    Args:
        ledger_seq: When given and the schema is partitioned, only the
            partition holding this ledger is listed.

    Returns:
        List[ObjectKey]: Parsed keys, newest ledgers first.
    """
    current = schema()
    root = _root()
    prefix = root
    if ledger_seq is not None:
        prefix += current.get_partition_prefix(ledger_seq)

    log.info("Listing ledger files bucket=%s prefix=%s", _bucket(), prefix)

    paginator = _client().get_paginator("list_objects_v2")
    result: List[ObjectKey] = []
    async for page in _async_paginate(paginator, Bucket=_bucket(), Prefix=prefix):
        for obj in page.get("Contents", []):
            key = obj["Key"]
            if not key.startswith(prefix):
                continue
            try:
                parsed = parse_object_key(key[len(root) :])
            except ObjectKeyError as exc:
                log.warning("Skipping foreign object %s: %s", key, exc)
                continue
            if not current.matches(parsed):
                log.warning("Skipping object %s written with a different schema", key)
                continue
            result.append(parsed)
    return result


async def _async_paginate(paginator, **kwargs):
    """Iterate over paginator pages in a thread to avoid blocking the loop.

    Args:
        paginator: Boto paginator.
        **kwargs: Pagination parameters.

    Yields:
        dict: Paginator page dictionary.
    """
    for page in await asyncio.to_thread(lambda: list(paginator.paginate(**kwargs))):
        yield page
