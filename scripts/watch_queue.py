# File: scripts/watch_queue.py
"""
Follow an event's consultation queue from the terminal.

    python scripts/watch_queue.py http://localhost:8000 1 --visitor 3
"""
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

import argparse
import asyncio
import logging

from app.services.queue_watcher import QueueViewState, QueueWatcher

def render(state: QueueViewState, visitor_id=None) -> None:
    stats = state.stats
    serving = state.now_serving
    print("=" * 50)
    print(
        f"Event {state.event_id}{' (PAUSED)' if state.paused else ''} - "
        f"waiting {stats['waiting']}, in progress {stats['in_progress']}, "
        f"done {stats['completed']}, no-show {stats['no_show']}"
    )
    print(f"Now serving: {serving['token_no'] if serving else '-'}")
    if visitor_id is not None:
        mine = state.token_for_visitor(visitor_id)
        if mine is None:
            print(f"Visitor {visitor_id} has no token")
        else:
            ahead = sum(
                1 for t in state.ordered_tokens
                if t["status"] == "WAITING" and t["token_no"] < mine["token_no"]
            )
            print(f"Visitor {visitor_id}: token {mine['token_no']} ({mine['status']}), {ahead} ahead")

def main():
    parser = argparse.ArgumentParser(description="Watch a consultation queue")
    parser.add_argument("base_url", help="Service root, e.g. http://localhost:8000")
    parser.add_argument("event_id", type=int)
    parser.add_argument("--visitor", type=int, default=None, help="Highlight this visitor's token")
    parser.add_argument("--poll", type=float, default=None, help="Snapshot poll interval in seconds")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    watcher = QueueWatcher(
        args.base_url,
        args.event_id,
        poll_interval=args.poll,
        on_change=lambda state: render(state, args.visitor),
    )
    try:
        asyncio.run(watcher.run())
    except KeyboardInterrupt:
        print("Stopped")

if __name__ == "__main__":
    main()
