from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .raffle import Raffle

RAFFLE_ENTER = "RaffleEnter"
REQUESTED_RAFFLE_WINNER = "RequestedRaffleWinner"
WINNER_PICKED = "WinnerPicked"


class RaffleEvent(Base):
    """Signal emitted by a raffle state change.

    Rows are written in the same transaction as the change itself, so a
    rolled back operation leaves no signal behind.
    """

    __tablename__ = "raffle_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    raffle_id: Mapped[int] = mapped_column(
        ForeignKey("raffles.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(40), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    emitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    raffle: Mapped["Raffle"] = relationship(back_populates="events")

    __table_args__ = (
        CheckConstraint(
            "name IN ('RaffleEnter','RequestedRaffleWinner','WinnerPicked')",
            name="name_enum",
        ),
        Index("ix_raffle_events_raffle_name", "raffle_id", "name"),
    )

    def __repr__(self) -> str:
        return f"<RaffleEvent(raffle_id={self.raffle_id}, name={self.name}, payload={self.payload})>"
