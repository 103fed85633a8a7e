import httpx
import pytest
from botocore.exceptions import ClientError

from datastore_server import storage_s3
from datastore_shared.compression import DEFAULT_COMPRESSOR
from datastore_shared.schema import LedgerRange, SchemaError


class FakeS3:
    """In-memory stand-in for the boto3 S3 client."""

    def __init__(self):
        self.objects = {}
        self.calls = []

    def put_object(self, Bucket=None, Key=None, Body=None, ContentType=None):
        self.calls.append(("put", Bucket, Key))
        self.objects[(Bucket, Key)] = Body
        return {}

    def get_object(self, Bucket=None, Key=None):
        self.calls.append(("get", Bucket, Key))
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        body = self.objects[(Bucket, Key)]

        class Body:
            def read(self_inner):
                return body

        return {"Body": Body()}

    def get_paginator(self, name):
        assert name == "list_objects_v2"
        store = self

        class Paginator:
            def paginate(self_inner, Bucket=None, Prefix=""):
                keys = sorted(key for bucket, key in store.objects if bucket == Bucket and key.startswith(Prefix))
                # two pages to exercise pagination
                middle = len(keys) // 2
                yield {"Contents": [{"Key": key} for key in keys[:middle]]}
                yield {"Contents": [{"Key": key} for key in keys[middle:]]}

        return Paginator()


def _configure(monkeypatch, schema, prefix="pubnet"):
    fake = FakeS3()
    storage_s3.configure({"datastore": {"bucket": "ledgers", "prefix": prefix, "schema": schema}})
    monkeypatch.setattr(storage_s3, "_client", lambda: fake)
    return fake


def test_build_object_key_with_prefix():
    storage_s3.configure(
        {"datastore": {"prefix": "/pubnet/", "schema": {"ledgers_per_file": 50, "files_per_partition": 2}}}
    )
    assert storage_s3.build_object_key(150) == "pubnet/FFFFFF9B--100-199/FFFFFF69--150-199.xdr.zst"
    assert storage_s3.build_object_key(5, prefix="testnet") == "testnet/FFFFFFFF--0-99/FFFFFFFF--0-49.xdr.zst"


def test_build_object_key_without_prefix():
    storage_s3.configure({"datastore": {"schema": {"ledgers_per_file": 1}}})
    assert storage_s3.build_object_key(5) == "FFFFFFFA--5.xdr.zst"


def test_missing_schema_is_a_configuration_error():
    storage_s3.configure({"datastore": {"bucket": "ledgers"}})
    with pytest.raises(SchemaError):
        storage_s3.build_object_key(5)


@pytest.mark.asyncio
async def test_put_and_get_ledger_file_round_trip(monkeypatch):
    fake = _configure(monkeypatch, {"ledgers_per_file": 64, "files_per_partition": 1000})
    payload = b"ledger close meta batch" * 10

    key = await storage_s3.put_ledger_file(100, payload)

    assert key == "pubnet/FFFFFFFF--0-63999/FFFFFFBF--64-127.xdr.zst"
    assert fake.objects[("ledgers", key)] == DEFAULT_COMPRESSOR.compress(payload)
    assert await storage_s3.get_ledger_file(127) == payload


@pytest.mark.asyncio
async def test_extension_override_stores_raw_bytes(monkeypatch):
    fake = _configure(monkeypatch, {"ledgers_per_file": 1, "file_extension": "bin"}, prefix="")

    key = await storage_s3.put_ledger_file(5, b"raw")

    assert key == "FFFFFFFA--5.xdr.bin"
    assert fake.objects[("ledgers", key)] == b"raw"
    assert await storage_s3.get_ledger_file(5) == b"raw"


@pytest.mark.asyncio
async def test_get_missing_ledger_file_raises_key_error(monkeypatch):
    _configure(monkeypatch, {"ledgers_per_file": 1})

    with pytest.raises(KeyError):
        await storage_s3.get_ledger_file(5)


@pytest.mark.asyncio
async def test_get_ledger_file_propagates_other_errors(monkeypatch):
    fake = _configure(monkeypatch, {"ledgers_per_file": 1})

    def denied(**_kwargs):
        raise ClientError({"Error": {"Code": "AccessDenied", "Message": "no"}}, "GetObject")

    fake.get_object = denied

    with pytest.raises(ClientError):
        await storage_s3.get_ledger_file(5)


@pytest.mark.asyncio
async def test_list_ledger_files_newest_first(monkeypatch):
    fake = _configure(monkeypatch, {"ledgers_per_file": 10, "files_per_partition": 2})
    for seq in (0, 10, 20, 35):
        await storage_s3.put_ledger_file(seq, b"x")
    fake.objects[("ledgers", "pubnet/README.md")] = b"docs"
    fake.objects[("ledgers", "pubnet/FFFFFFFF--0-4.xdr.zst")] = b"other schema"

    listed = await storage_s3.list_ledger_files()

    assert [obj.file for obj in listed] == [
        LedgerRange(30, 39),
        LedgerRange(20, 29),
        LedgerRange(10, 19),
        LedgerRange(0, 9),
    ]
    assert listed[0].partition == LedgerRange(20, 39)


@pytest.mark.asyncio
async def test_list_ledger_files_in_partition(monkeypatch):
    _configure(monkeypatch, {"ledgers_per_file": 10, "files_per_partition": 2})
    for seq in (0, 10, 20, 35):
        await storage_s3.put_ledger_file(seq, b"x")

    listed = await storage_s3.list_ledger_files(15)

    assert [obj.file for obj in listed] == [LedgerRange(10, 19), LedgerRange(0, 9)]


@pytest.mark.asyncio
async def test_ensure_storage_available_without_endpoint():
    storage_s3.configure({"datastore": {"schema": {"ledgers_per_file": 1}}})
    assert await storage_s3.ensure_storage_available() is False


@pytest.mark.asyncio
async def test_ensure_storage_available_handles_http_errors(monkeypatch):
    storage_s3.configure({"datastore": {"url": "minio.invalid:9000"}})

    class FailingClient:
        def __init__(self, *args, **kwargs):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *exc):
            return False

        async def get(self, url):
            assert url == "https://minio.invalid:9000"
            raise httpx.ConnectError("unreachable")

    monkeypatch.setattr(storage_s3.httpx, "AsyncClient", FailingClient)

    assert await storage_s3.ensure_storage_available() is False
