"""CLI entry point: python -m firemock fixture.json users --where age == 31

Loads a JSON fixture of ``{collection_path: {doc_id: document}}``, runs one
query against it and prints the matching documents as JSON.
"""

import argparse
import json
import logging
import sys
from typing import Any

from firemock.client import MockFirestore
from firemock.config import MockConfig
from firemock.logging import bind_scope, configure_logging
from firemock.models import FiremockError


def _parse_value(raw: str) -> Any:
    """Interpret a ``--where`` value as JSON, falling back to the raw string."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="firemock",
        description="Run a query against an in-memory JSON fixture",
    )
    parser.add_argument("fixture", help="JSON file: {collection_path: {doc_id: document}}")
    parser.add_argument("collection", help="Collection path to query")
    parser.add_argument(
        "--where",
        nargs=3,
        action="append",
        default=[],
        metavar=("FIELD", "OP", "VALUE"),
        help="Filter (==, array-contains, in); repeatable",
    )
    parser.add_argument(
        "--order-by",
        action="append",
        default=[],
        metavar="FIELD[:DIR]",
        help="Sort key, DIR is asc or desc; repeatable",
    )
    parser.add_argument("--limit", type=int, default=0, help="Max documents to return")
    parser.add_argument("--start-after", default=None, metavar="DOC_ID", help="Cursor document")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable DEBUG-level logging to stderr"
    )
    parser.add_argument(
        "--json-log", action="store_true", help="Emit JSON log lines (default: text)"
    )

    args = parser.parse_args()

    level = logging.DEBUG if args.verbose else logging.WARNING
    configure_logging(level=level, json_format=args.json_log)
    bind_scope("cli")

    try:
        with open(args.fixture, encoding="utf-8") as fh:
            data = json.load(fh)
        db = MockFirestore(data, MockConfig.from_env(auto_flush=True))
        collection = db.collection(args.collection)

        query = collection
        for field, op, raw in args.where:
            query = query.where(field, op, _parse_value(raw))
        for spec in args.order_by:
            field, _, direction = spec.partition(":")
            query = query.order_by(field, direction or "asc")
        if args.start_after:
            cursor = collection.doc(args.start_after).get().result()
            query = query.start_after(cursor)
        if args.limit:
            query = query.limit(args.limit)

        snapshot = query.get().result()
    except (FiremockError, OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    output = {"path": collection.path, "size": snapshot.size, "docs": snapshot.to_dict()}
    print(json.dumps(output, indent=2, default=str))


if __name__ == "__main__":
    main()
