"""
Inspect the beacons captured by the ametrica addons without running a proxy.
"""

import argparse
import logging
import sys
from collections.abc import Sequence

from ametrica import eventstore
from ametrica import query
from ametrica import storage
from ametrica import version


def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ametrica", description="Inspect captured analytics beacons."
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {version.VERSION}"
    )
    parser.add_argument(
        "--store",
        metavar="PATH",
        default=storage.DEFAULT_PATH,
        help="Store file written by the capture addon (default: %(default)s).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Increase log verbosity.",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    p = sub.add_parser("list", help="Show captured beacons, newest first.")
    p.add_argument(
        "--filter",
        metavar="VALUE",
        default="",
        help="Only show beacons with a field exactly equal to VALUE.",
    )
    p.add_argument(
        "--hide-pp", action="store_true", help="Hide page ping beacons."
    )
    p.add_argument(
        "--decoded", action="store_true", help="Show the decoded cx payload."
    )
    p.add_argument(
        "--limit",
        type=int,
        default=query.MAX_VISIBLE_EVENTS,
        help="Show at most this many beacons (default: %(default)s).",
    )

    sub.add_parser("clear", help="Remove all captured beacons.")

    p = sub.add_parser("export", help="Export captured beacons as JSON.")
    p.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Target file or directory (default: current directory).",
    )

    sub.add_parser("status", help="Show whether capturing is enabled.")
    return parser


def run(args: argparse.Namespace) -> int:
    st = storage.Storage(args.store)
    store = eventstore.EventStore(st)

    if args.cmd == "list":
        events = query.select(
            store.read_fresh(),
            value=args.filter,
            hide_page_pings=args.hide_pp,
            limit=args.limit if args.limit > 0 else None,
        )
        print(query.format_events(events, show_decoded=args.decoded))
    elif args.cmd == "clear":
        store.clear()
        print("Cleared captured beacons.")
    elif args.cmd == "export":
        events = store.read_fresh()
        path = query.export_path(args.path)
        with open(path, "w", encoding="utf-8") as f:
            f.write(query.to_json(events))
        print(f"Exported {len(events)} beacons to {path}.")
    elif args.cmd == "status":
        enabled = bool(st.get(storage.LOGGING_ENABLED, False))
        print(f"capture: {'enabled' if enabled else 'disabled'}")
        print(f"beacons: {len(store)}")
        print(f"store:   {st.path}")
    return 0


def main(arguments: Sequence[str] | None = None) -> int:
    args = make_parser().parse_args(arguments)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    try:
        return run(args)
    except OSError as e:
        print(f"ametrica: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
