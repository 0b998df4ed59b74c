"""
Scheduler entry point for cron or a container job.

    python -m src.scripts.run_sync --pos square            # sync every active Square restaurant
    python -m src.scripts.run_sync --pos toast --enqueue   # queue vendor fetches instead
    python -m src.scripts.run_sync --drain pos_fetch       # deliver one batch of queued jobs
"""
import argparse
import json
import sys

from src.core.logging_config import setup_logging
from src.db.session import session_scope
from src.models.unified_sale import VENDOR_POS_SYSTEMS
from src.services.access import Caller
from src.services.dispatcher import HttpDispatcher, drain_queue
from src.services.sync_orchestrator import enqueue_vendor_fetch_jobs, sync_all_restaurants


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run ledger syncs and queue drains")
    parser.add_argument("--pos", choices=VENDOR_POS_SYSTEMS, help="Vendor to sync")
    parser.add_argument("--enqueue", action="store_true", help="Queue vendor fetch jobs instead of syncing")
    parser.add_argument("--action", default="daily", help="Fetch action passed to the worker (with --enqueue)")
    parser.add_argument("--drain", metavar="QUEUE", help="Drain one batch from the named queue")
    parser.add_argument("--batch-size", type=int, default=None)
    args = parser.parse_args(argv)
    if not args.pos and not args.drain:
        parser.error("one of --pos or --drain is required")
    return args


def main(argv=None) -> int:
    setup_logging()
    args = parse_args(argv)
    caller = Caller.service("cron")

    with session_scope() as db:
        if args.drain:
            with HttpDispatcher() as dispatcher:
                output = drain_queue(db, args.drain, dispatcher, caller, batch_size=args.batch_size).to_dict()
        elif args.enqueue:
            queued = enqueue_vendor_fetch_jobs(db, args.pos, caller, action=args.action)
            output = {"pos_system": args.pos, "queued": queued}
        else:
            result = sync_all_restaurants(db, args.pos, caller)
            output = result.to_dict()
            if result.errored:
                print(json.dumps(output, indent=2))
                return 1

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
