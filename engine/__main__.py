"""
Run the finance event engine against a seed ledger.

    python -m engine --seed data/seed.json --interval 60
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import datetime

from engine.config import EngineConfig
from engine.ledger import InMemoryLedger
from engine.notifications import RecordingGateway
from engine.orchestrator import Orchestrator
from engine.services import EventEngine

logger = logging.getLogger("engine")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Evaluate budgets, goals and recurring rules")
    parser.add_argument("--seed", default="data/seed.json", help="JSON seed file for the in-memory ledger")
    parser.add_argument("--env-file", default=None, help="Optional .env file with FINANCE_* settings")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between timer passes")
    parser.add_argument("--once", action="store_true", help="Run a single pass and exit")
    parser.add_argument("--verbose", "-v", action="store_true")
    return parser.parse_args(argv)


def build(args: argparse.Namespace) -> tuple[EventEngine, InMemoryLedger, RecordingGateway]:
    config = EngineConfig.from_env(args.env_file)
    ledger = InMemoryLedger()
    ledger.load_seed(args.seed)
    gateway = RecordingGateway()
    return EventEngine(ledger, gateway, config), ledger, gateway


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    engine, ledger, gateway = build(args)

    if args.once:
        for intent in engine.run_evaluation_pass(datetime.now()):
            print(f"[{intent.kind.value}] {intent.title}: {intent.body}")
        return 0

    orchestrator = Orchestrator(engine, interval=args.interval)
    orchestrator.attach(ledger.bus)
    try:
        asyncio.run(orchestrator.run())
    except KeyboardInterrupt:
        logger.info("Interrupted, %d alerts delivered", len(gateway.delivered))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
