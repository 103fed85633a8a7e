"""Command line helper for inspecting ledger object keys."""
# Example:
# python -m datastore_cli.main --action key --ledger 150 --ledgers-per-file 50 --files-per-partition 2

from __future__ import annotations

import json
import logging
import sys

from argparse import (
    ArgumentParser,
    RawDescriptionHelpFormatter,
    ArgumentDefaultsHelpFormatter,
)

from datastore_server.config import set_config
from datastore_server.logging_config import configure_logging
from datastore_shared.constants import (
    CFG_FILE_EXTENSION,
    CFG_FILES_PER_PARTITION,
    CFG_LEDGERS_PER_FILE,
    CFG_UNGROUPED,
)
from datastore_shared.schema import DataStoreSchema, ObjectKeyError, SchemaError, parse_object_key


# Combine both formatters to allow newlines and showing default arguments
class RawDescriptionDefaultsHelpFormatter(
    RawDescriptionHelpFormatter,
    ArgumentDefaultsHelpFormatter,
):
    pass


def _schema_from_args(args) -> DataStoreSchema:
    """Merge ``datastore.schema`` from the config file with command line overrides."""
    schema_cfg: dict = {}
    if args.config:
        cfg = set_config(args.config)
        section = (cfg.get("datastore") or {}).get("schema")
        if isinstance(section, dict):
            schema_cfg.update(section)

    if args.ledgers_per_file is not None:
        schema_cfg[CFG_LEDGERS_PER_FILE] = args.ledgers_per_file
    if args.files_per_partition is not None:
        schema_cfg[CFG_FILES_PER_PARTITION] = args.files_per_partition
    if args.file_extension is not None:
        schema_cfg[CFG_FILE_EXTENSION] = args.file_extension
    if args.ungrouped:
        schema_cfg[CFG_UNGROUPED] = True
        # The flag wins over any ledgers_per_file from the config file
        schema_cfg[CFG_LEDGERS_PER_FILE] = 0

    return DataStoreSchema.from_mapping(schema_cfg)


def _range_dict(ledger_range) -> dict | None:
    if ledger_range is None:
        return None
    return {"start": ledger_range.start, "end": ledger_range.end}


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint for computing and decoding ledger object keys.

    Args:
        argv: Optional list of arguments (defaults to ``sys.argv``).

    Returns:
        int: Process exit code (0 on success, non-zero on error).
    """
    parser = ArgumentParser(
        description="Ledger datastore key tool.\n\n" +
                    "Computes the object key and file/partition boundaries of a ledger sequence\n" +
                    "number, or decodes the boundaries embedded in an existing object key.",
        formatter_class=RawDescriptionDefaultsHelpFormatter
    )

    parser.add_argument(
        "--action",
        choices=["key", "range", "parse"],
        help="Action to execute",
    )
    parser.add_argument("--ledger", type=int, default=None, help="Ledger sequence number (key, range)")
    parser.add_argument("--key", default=None, help="Object key to decode (parse)")
    parser.add_argument("--config", default=None, help="YAML config file with a datastore.schema section")
    parser.add_argument("--ledgers-per-file", type=int, default=None, help="Ledgers per file")
    parser.add_argument("--files-per-partition", type=int, default=None, help="Files per partition directory")
    parser.add_argument("--file-extension", default=None, help="Extension override (default: compressor name)")
    parser.add_argument("--ungrouped", action="store_true", help="Store every ledger in a single file")
    parser.add_argument("--log-level", default=None, help="Log level (default: LOG_LEVEL or INFO)")

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    logging.getLogger().debug("Handling action: %s", args.action)

    try:
        if args.action == "parse":
            if not args.key:
                parser.error("--key is required for parse")
            parsed = parse_object_key(args.key)
            print(json.dumps({
                "partition": _range_dict(parsed.partition),
                "file": _range_dict(parsed.file),
                "extension": parsed.extension,
            }, indent=2))
            return 0

        if args.action in ("key", "range"):
            if args.ledger is None:
                parser.error(f"--ledger is required for {args.action}")
            schema = _schema_from_args(args)

            if args.action == "key":
                print(schema.get_object_key_from_sequence_number(args.ledger))
                return 0

            print(json.dumps({
                "ledger": args.ledger,
                "partition": _range_dict(schema.partition_range(args.ledger)),
                "file": _range_dict(schema.file_range(args.ledger)),
                "key": schema.get_object_key_from_sequence_number(args.ledger),
            }, indent=2))
            return 0

        # No action selected, show help
        parser.print_help()
        return 1

    except (SchemaError, ObjectKeyError) as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 1


if __name__ == "__main__":
    sys.exit(main())
