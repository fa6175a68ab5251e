# ruff: noqa: T201

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from repairsync.adapters.sqlalchemy import SqlAlchemyMutationStore, is_started, startup
from repairsync.app import build_application
from repairsync.config import ConfigurationError, configure_logging, get_sync_policy
from repairsync.domain.mutations import EntityKey, PendingMutation
from repairsync.domain.queue import MutationQueue, utc_now

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from repairsync.domain.engine import PassResult

log = logging.getLogger(__name__)

_LOCAL_COMMANDS = frozenset({"status", "dead-letters", "discard"})


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Queue and sync Repair Minder changes")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    enqueue = subparsers.add_parser("enqueue", help="Queue a local change for an entity")
    enqueue.add_argument("key", type=str, help="Entity key, e.g. order:42")
    enqueue.add_argument("kind", type=str, help="Mutation kind, e.g. status_update")
    enqueue.add_argument(
        "--payload",
        type=str,
        help="JSON object sent as the request body",
    )
    enqueue.add_argument(
        "--no-sync",
        action="store_true",
        help="Only persist the change; do not contact the API",
    )

    subparsers.add_parser("status", help="Show queued and dead-lettered changes")
    subparsers.add_parser("sync", help="Run one sync pass now")
    subparsers.add_parser("dead-letters", help="List changes that need attention")

    retry = subparsers.add_parser("retry", help="Return a dead-lettered change to the queue")
    retry.add_argument("key", type=str, help="Entity key of the dead-lettered change")

    discard = subparsers.add_parser("discard", help="Drop a queued or dead-lettered change")
    discard.add_argument("key", type=str, help="Entity key of the change")

    return parser.parse_args(list(argv))


def _parse_payload(value: str | None) -> dict[str, object] | None:
    if value is None:
        return None
    try:
        payload = json.loads(value)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON payload: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Payload must be a JSON object")
    return payload


def _print_mutations(mutations: Sequence[PendingMutation]) -> None:
    for mutation in mutations:
        line = f"  {mutation.key}  {mutation.kind}  attempts={mutation.attempts}"
        if mutation.next_attempt_at is not None:
            line += f"  next={mutation.next_attempt_at.isoformat(timespec='seconds')}"
        if mutation.last_error:
            line += f"  error={mutation.last_error!r}"
        print(line)


def _print_result(result: PassResult | None) -> None:
    if result is None:
        print("Nothing to sync")
        return
    print(
        f"Synced {result.succeeded}/{result.total}"
        f" (failed={result.failed}, dead-lettered={result.dead_lettered},"
        f" skipped={result.skipped})"
    )
    if result.last_error:
        print(f"Last error: {result.last_error}")


def _local_queue() -> MutationQueue:
    if not is_started():
        startup()
    return MutationQueue(SqlAlchemyMutationStore(), policy=get_sync_policy())


def _run_local(args: argparse.Namespace) -> int:
    queue = _local_queue()
    if args.command == "status":
        print(f"Pending: {queue.count}  Needs attention: {queue.failed_count}")
        synced_at = queue.last_synced_at
        last = synced_at.isoformat(timespec="seconds") if synced_at else "never"
        print(f"Last synced: {last}")
        _print_mutations(queue.dequeue_all())
        return 0
    if args.command == "dead-letters":
        dead = queue.dead_letters()
        if not dead:
            print("No dead-lettered changes")
        _print_mutations(dead)
        return 0
    key = EntityKey.parse(args.key)
    if not queue.remove(key):
        print(f"No queued change for {key}", file=sys.stderr)
        return 1
    print(f"Discarded {key}")
    return 0


async def _run_remote(args: argparse.Namespace) -> int:
    if args.command == "enqueue" and args.no_sync:
        queue = _local_queue()
        count = queue.enqueue(
            PendingMutation(
                key=EntityKey.parse(args.key),
                kind=args.kind,
                enqueued_at=utc_now(),
                payload=_parse_payload(args.payload),
            )
        )
        print(f"Queued {args.key}; {count} pending")
        return 0

    async with build_application() as app:
        engine = app.engine
        if args.command == "enqueue":
            count = await engine.enqueue(args.key, args.kind, _parse_payload(args.payload))
            print(f"Queued {args.key}; {count} pending")
        elif args.command == "retry":
            if not await engine.retry_dead_letter(args.key):
                print(f"No dead-lettered change for {args.key}", file=sys.stderr)
                return 1
        elif args.command != "sync":
            raise ValueError(f"Unsupported command: {args.command}")

        result = await engine.sync_now("cli")
        _print_result(result)
        print(f"Pending: {engine.pending_count}  Needs attention: {engine.failed_count}")
        return 0 if result is None or result.ok else 1


def main(argv: Sequence[str] | None = None) -> None:
    """Run one CLI command; exits 2 on bad input and 1 on sync failure."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        if parsed_args.command == "enqueue":
            EntityKey.parse(parsed_args.key)
            _parse_payload(parsed_args.payload)
        elif parsed_args.command in {"retry", "discard"}:
            EntityKey.parse(parsed_args.key)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        if parsed_args.command in _LOCAL_COMMANDS:
            exit_code = _run_local(parsed_args)
        else:
            exit_code = asyncio.run(_run_remote(parsed_args))
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during sync")
        sys.exit(1)

    if exit_code:
        sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    print("\nClosed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
