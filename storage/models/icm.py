"""
ICM Message Count ORM Model.

============================================================
PURPOSE
============================================================
Daily cross-chain (ICM / Teleporter) message counts per
source/destination chain pair.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Mutability: upsert on the natural key, count changes only
- Source: explorer ICM message listing, bucketed by UTC day
- Consumers: read API (daily pair counts)
- Retention: days older than the configured window are pruned

============================================================
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base


class IcmMessageCountRow(Base):
    """
    Messages sent from one chain to another during one UTC day.

    (day, source_chain_id, destination_chain_id) is unique.
    """

    __tablename__ = "icm_message_counts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    day: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Unix seconds of the UTC midnight opening the day"
    )

    source_chain_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Numeric EVM chain id of the sending chain"
    )

    destination_chain_id: Mapped[str] = mapped_column(String(64), nullable=False)

    message_count: Mapped[int] = mapped_column(Integer, nullable=False)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        UniqueConstraint(
            "day", "source_chain_id", "destination_chain_id",
            name="uq_icm_message_counts_natural_key",
        ),
        Index("ix_icm_message_counts_day", "day"),
    )

    def __repr__(self) -> str:
        return (
            f"<IcmMessageCountRow(day={self.day} "
            f"{self.source_chain_id}->{self.destination_chain_id} count={self.message_count})>"
        )
