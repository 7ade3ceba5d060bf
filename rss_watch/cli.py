"""
Command line entry point.

The feeds file is JSON:

    {"collections": [{"id": "news", "title": "News",
                      "feeds": [{"id": "bbc", "title": "BBC", "url": "https://..."}]}]}

Feed state is kept in a JSON state file between runs.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from .config import ASYNC_CHECKING_KEY, RENDER_FEEDS_KEY, SHOW_UPDATE_POPUP_KEY, WatchOptions
from .models import Bookmark
from .orchestrator import BatchOrchestrator
from .store import JsonFileStore, MemoryBookmarks, set_collection
from .ui import ConsoleUI

logger = logging.getLogger("rss_watch")


def load_feeds_file(path: str) -> Tuple[MemoryBookmarks, List[Tuple[str, List[str]]]]:
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    bookmarks = MemoryBookmarks()
    collections: List[Tuple[str, List[str]]] = []
    for coll in data.get("collections") or []:
        coll_id = str(coll["id"])
        bookmarks.add(Bookmark(coll_id, coll.get("title") or coll_id))
        ids = []
        for feed in coll.get("feeds") or []:
            feed_id = str(feed["id"])
            bookmarks.add(Bookmark(feed_id, feed.get("title") or feed_id, feed["url"]))
            ids.append(feed_id)
        collections.append((coll_id, ids))
    return bookmarks, collections


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="rss-watch", description="Check RSS/Atom feeds for updates.")
    p.add_argument("--feeds", default="feeds.json", help="JSON file listing collections and feeds")
    p.add_argument("--state", default="rss_watch_state.json", help="JSON file holding feed state")
    p.add_argument("--output-dir", default="rendered", help="where opened feeds are written as HTML")
    p.add_argument("-v", "--verbose", action="store_true")
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--async", dest="asynchronous", action="store_true", default=None,
                      help="process feeds concurrently (remembered)")
    mode.add_argument("--sequential", dest="asynchronous", action="store_false",
                      help="process feeds one at a time (remembered)")
    p.add_argument("--no-popup", action="store_true", help="do not print the update summary")
    p.add_argument("--no-render", action="store_true", help="do not write rendered HTML files")

    sub = p.add_subparsers(dest="command", required=True)
    for name, help_text in (
        ("check", "check read and errored feeds of a collection"),
        ("open", "open updated feeds of a collection"),
        ("unify", "merge updated feeds of a collection into one view"),
        ("mark-read", "mark every feed of a collection as read"),
        ("mark-updated", "mark every feed of a collection as updated"),
    ):
        sp = sub.add_parser(name, help=help_text)
        sp.add_argument("collection")
    sp = sub.add_parser("open-feed", help="open a single feed")
    sp.add_argument("feed")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    bookmarks, collections = load_feeds_file(args.feeds)
    store = JsonFileStore(args.state)
    for coll_id, ids in collections:
        set_collection(store, coll_id, ids)
    if args.asynchronous is not None:
        store.set_value(ASYNC_CHECKING_KEY, args.asynchronous)
    store.set_value(SHOW_UPDATE_POPUP_KEY, not args.no_popup)
    store.set_value(RENDER_FEEDS_KEY, not args.no_render)

    watcher = BatchOrchestrator(
        bookmarks,
        store,
        ui=ConsoleUI(args.output_dir),
        options=WatchOptions.from_env(),
    )
    try:
        return _dispatch(watcher, args)
    except KeyError as e:
        logger.error("%s", e)
        return 2
    finally:
        watcher.fetcher.close()


def _dispatch(watcher: BatchOrchestrator, args: argparse.Namespace) -> int:
    if args.command == "check":
        job = watcher.check_feeds(args.collection)
        return 1 if job and any(o.error for o in job.outcomes) else 0
    if args.command == "open":
        watcher.open_updated_feeds(args.collection)
    elif args.command == "unify":
        watcher.open_unified_feed(args.collection)
    elif args.command == "mark-read":
        watcher.mark_all_as_read(args.collection)
    elif args.command == "mark-updated":
        watcher.mark_all_as_updated(args.collection)
    elif args.command == "open-feed":
        outcome = watcher.open_feed(args.feed)
        return 1 if outcome.error else 0
    return 0


if __name__ == "__main__":
    sys.exit(main())
