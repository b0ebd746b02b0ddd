from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .types import Uint256

if TYPE_CHECKING:
    from .raffle import Raffle
    from .request import RandomnessRequest


class RaffleDraw(Base):
    """Settled outcome of one raffle round."""

    __tablename__ = "raffle_draws"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    raffle_id: Mapped[int] = mapped_column(
        ForeignKey("raffles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    randomness_request_id: Mapped[int] = mapped_column(
        ForeignKey("randomness_requests.id", ondelete="RESTRICT"),
        nullable=False,
    )
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    random_value: Mapped[int] = mapped_column(Uint256, nullable=False)
    winner_index: Mapped[int] = mapped_column(Integer, nullable=False)
    winner: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[int] = mapped_column(Uint256, nullable=False)
    """Pool paid to the winner, in wei."""
    tx_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Hash of the payout transfer as reported by the wallet service."""
    settled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    raffle: Mapped["Raffle"] = relationship(back_populates="draws")
    request: Mapped["RandomnessRequest"] = relationship(back_populates="draw")

    __table_args__ = (
        UniqueConstraint("raffle_id", "round_number", name="uq_raffle_draw_round"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<RaffleDraw(raffle_id={self.raffle_id}, round={self.round_number}, "
            f"winner={self.winner}, amount={self.amount})>"
        )

    @classmethod
    def latest_for(cls, session: Session, raffle_id: int) -> Optional["RaffleDraw"]:
        """Return the most recently settled draw of ``raffle_id``."""

        stmt = (
            select(cls)
            .where(cls.raffle_id == raffle_id)
            .order_by(cls.round_number.desc())
        )
        return session.scalars(stmt).first()
