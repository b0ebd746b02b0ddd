"""Automation agent: poll a raffle and start its draw when upkeep is needed.

Usage: ``python scripts/run_keeper.py RAFFLE_ID [--every SECONDS] [--once]``
"""

from __future__ import annotations

import argparse
import logging
import time

from vrfraffle.blockchain.api import CoordinatorClient
from vrfraffle.db.engine import get_sessionmaker, make_engine
from vrfraffle.models import Raffle
from vrfraffle.workflows import run_upkeep_once

logger = logging.getLogger("vrfraffle.keeper")


def poll(Session, raffle_id: int, coordinator: CoordinatorClient) -> None:
    with Session.begin() as session:
        raffle = Raffle.get_by_id(session, raffle_id)
        if raffle is None:
            raise SystemExit(f"Raffle {raffle_id} not found")
        request_id = run_upkeep_once(session, raffle, coordinator=coordinator)
        if request_id is None:
            logger.debug(f"Raffle {raffle_id}: upkeep not needed")
        else:
            logger.info(f"Raffle {raffle_id}: draw requested ({request_id})")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("raffle_id", type=int)
    parser.add_argument("--every", type=float, default=30.0, help="poll interval in seconds")
    parser.add_argument("--once", action="store_true", help="poll a single time and exit")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )
    Session = get_sessionmaker(make_engine())
    coordinator = CoordinatorClient()

    while True:
        try:
            poll(Session, args.raffle_id, coordinator)
        except SystemExit:
            raise
        except Exception:
            # retried on the next poll
            logger.exception(f"Raffle {args.raffle_id}: upkeep poll failed")
        if args.once:
            break
        time.sleep(args.every)


if __name__ == "__main__":
    main()
