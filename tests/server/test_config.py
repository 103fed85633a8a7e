import logging

from datastore_server.config import mask_sensitive, normalize_url, set_config
from datastore_server.logging_config import configure_logging
from datastore_shared.schema import DataStoreSchema


def test_set_config_reads_yaml_and_env_overrides(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(
        "datastore:\n"
        "  url: s3.example.org\n"
        "  bucket: ledgers\n"
        "  schema:\n"
        "    ledgers_per_file: 1\n"
        "    files_per_partition: 64000\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("DATASTORE_BUCKET", "testnet-ledgers")
    monkeypatch.setenv("LEDGERS_PER_FILE", "8")

    cfg = set_config(path)

    assert cfg["datastore"]["url"] == "https://s3.example.org"
    assert cfg["datastore"]["bucket"] == "testnet-ledgers"
    assert cfg["datastore"]["schema"] == {"ledgers_per_file": "8", "files_per_partition": 64000}


def test_set_config_without_file_uses_env(tmp_path, monkeypatch):
    monkeypatch.setenv("FILES_PER_PARTITION", "10")

    cfg = set_config(tmp_path / "missing.yaml")

    assert cfg == {"datastore": {"schema": {"files_per_partition": "10"}}}


def test_set_config_ignores_non_mapping_yaml(tmp_path, caplog):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        cfg = set_config(path)

    assert cfg == {}
    assert "does not contain a mapping" in caplog.text


def test_set_config_logs_masked_password(tmp_path, monkeypatch, caplog):
    monkeypatch.setenv("DATASTORE_PASSWORD", "supersecret")

    with caplog.at_level(logging.INFO):
        cfg = set_config(tmp_path / "missing.yaml")

    assert cfg["datastore"]["password"] == "supersecret"
    assert "supersecret" not in caplog.text
    assert "sup***ret" in caplog.text


def test_mask_sensitive_nested():
    masked = mask_sensitive({"datastore": {"user": "alice", "password": "abc", "secret_key": "0123456789"}})
    assert masked == {"datastore": {"user": "alice", "password": "a***c", "secret_key": "012***789"}}


def test_normalize_url():
    assert normalize_url(" minio:9000 ") == "https://minio:9000"
    assert normalize_url("http://localhost:9000") == "http://localhost:9000"
    assert normalize_url("") == ""


def test_configure_logging_uses_env_level(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")
    logger = configure_logging()
    assert logger.level == logging.WARNING

    assert configure_logging("not-a-level").level == logging.INFO
    assert configure_logging(logging.DEBUG).level == logging.DEBUG


def test_ungrouped_env_replaces_ledgers_per_file(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text("datastore:\n  schema:\n    ledgers_per_file: 64\n", encoding="utf-8")
    monkeypatch.setenv("UNGROUPED", "true")

    cfg = set_config(path)
    schema = DataStoreSchema.from_mapping(cfg["datastore"]["schema"])

    assert cfg["datastore"]["schema"] == {"ledgers_per_file": 0, "ungrouped": "true"}
    assert schema.ungrouped
    assert schema.get_object_key_from_sequence_number(7) == "FFFFFFFF--0-4294967295.xdr.zst"


def test_ungrouped_env_alone_is_enough(tmp_path, monkeypatch):
    monkeypatch.setenv("UNGROUPED", "1")

    cfg = set_config(tmp_path / "missing.yaml")

    assert DataStoreSchema.from_mapping(cfg["datastore"]["schema"]).ungrouped


def test_configure_logging_quiets_s3_clients():
    configure_logging("DEBUG")

    for name in ("boto3", "botocore", "httpx"):
        assert logging.getLogger(name).level == logging.WARNING
