"""Database model for randomness requests issued to the VRF coordinator."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    select,
    text,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .types import Uint256

if TYPE_CHECKING:
    from .draw import RaffleDraw
    from .raffle import Raffle


class RandomnessRequest(Base):
    """Correlation ticket for an outstanding (or answered) randomness request."""

    __tablename__ = "randomness_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Surrogate primary key."""

    raffle_id: Mapped[int] = mapped_column(
        ForeignKey("raffles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    """Raffle that issued the request."""

    request_id: Mapped[int] = mapped_column(Uint256, nullable=False)
    """Identifier returned by the coordinator; the fulfillment must echo it."""

    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    """Round that was closed by this request."""

    participant_count: Mapped[int] = mapped_column(Integer, nullable=False)
    """Number of entries in the round when the request was issued."""

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    """``"pending"`` until the coordinator answers, then ``"fulfilled"``."""

    random_value: Mapped[Optional[int]] = mapped_column(Uint256, nullable=True)
    """First random word delivered by the coordinator."""

    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """When the request was handed to the coordinator."""

    fulfilled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """When the random value arrived."""

    raffle: Mapped["Raffle"] = relationship(back_populates="requests")
    draw: Mapped[Optional["RaffleDraw"]] = relationship(back_populates="request")

    __table_args__ = (
        CheckConstraint("status IN ('pending','fulfilled')", name="status_enum"),
        CheckConstraint("participant_count > 0", name="participant_count_positive"),
        UniqueConstraint("raffle_id", "request_id", name="uq_randomness_request_id"),
        Index("ix_randomness_requests_status", "raffle_id", "status"),
        # At most one outstanding request per raffle.
        Index(
            "uq_randomness_request_pending",
            "raffle_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    def __init__(
        self,
        *,
        raffle: Optional["Raffle"] = None,
        raffle_id: Optional[int] = None,
        request_id: int,
        round_number: int,
        participant_count: int,
        issued_at: Optional[datetime] = None,
    ) -> None:
        if raffle is not None:
            self.raffle = raffle
        if raffle_id is not None:
            self.raffle_id = raffle_id
        self.request_id = request_id
        self.round_number = round_number
        self.participant_count = participant_count
        self.status = "pending"
        if issued_at is not None:
            self.issued_at = issued_at

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<RandomnessRequest(raffle_id={self.raffle_id}, request_id={self.request_id}, "
            f"status={self.status}, participant_count={self.participant_count})>"
        )

    @classmethod
    def pending_for(cls, session: Session, raffle_id: int) -> Optional["RandomnessRequest"]:
        """Return the outstanding request of ``raffle_id``, if any."""

        return session.scalar(
            select(cls).where(cls.raffle_id == raffle_id, cls.status == "pending")
        )
