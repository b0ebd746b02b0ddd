from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from ..models.event import RaffleEvent
from ..models.raffle import Raffle

logger = logging.getLogger(__name__)


def emit(session: Session, raffle: Raffle, name: str, *, at: datetime, **payload: Any) -> RaffleEvent:
    """Record signal ``name`` for ``raffle`` in the current transaction."""
    event = RaffleEvent(raffle=raffle, name=name, payload=payload, emitted_at=at)
    session.add(event)
    logger.debug(f"Raffle {raffle.id} emitted {name} {payload}")
    return event
