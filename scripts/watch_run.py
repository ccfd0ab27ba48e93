#!/usr/bin/env python3
"""Submit a run against the remote API and follow it until it finishes.

Usage:
    python scripts/watch_run.py feature_research feature="SSO support" category=auth
    python scripts/watch_run.py decision_operator feature_name="Dark Mode"
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from remotes.factory import RUN_KINDS, get_poll_interval, get_run_source
from tracking.errors import RemoteJobFailed, SubmissionFailed
from tracking.tracker import RunTracker


def parse_fields(pairs: list[str]) -> dict:
    fields = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise SystemExit(f"Expected key=value, got {pair!r}")
        fields[key.strip()] = value
    return fields


async def watch(kind: str, request: dict, timeout: float | None) -> int:
    tracker = RunTracker(get_run_source(kind), poll_interval=get_poll_interval(kind))
    try:
        handle = await tracker.submit(request)
    except SubmissionFailed as e:
        print(f"✗ Submission failed: {e}")
        return 1
    print(f"→ Tracking {kind} run {handle.run_id}")

    last_line = None
    waiter = asyncio.create_task(tracker.wait(timeout=timeout))
    while not waiter.done():
        current = tracker.handle
        if current is not None:
            line = f"  {current.status.value:<18} {current.step or ''}"
            if current.error:
                line += f"  ({current.error})"
            if line != last_line:
                print(line)
                last_line = line
        await asyncio.sleep(0.5)

    try:
        artifacts = waiter.result()
    except RemoteJobFailed as e:
        print(f"✗ Run failed: {e}")
        return 1
    except asyncio.TimeoutError:
        tracker.cancel()
        print(f"✗ Gave up after {timeout}s (remote run keeps going)")
        return 2

    print(f"✓ Run completed with {len(artifacts)} artifact(s)")
    print(json.dumps(artifacts, indent=2, default=str))
    return 0


def main():
    parser = argparse.ArgumentParser(description="Submit a remote run and poll it to completion")
    parser.add_argument("kind", choices=RUN_KINDS)
    parser.add_argument("fields", nargs="*", help="Run parameters as key=value")
    parser.add_argument("--timeout", type=float, default=None, help="Stop watching after N seconds")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    sys.exit(asyncio.run(watch(args.kind, parse_fields(args.fields), args.timeout)))


if __name__ == "__main__":
    main()
