"""
Metric Sample ORM Model.

============================================================
PURPOSE
============================================================
Daily time-series samples per chain and metric type.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Mutability: upsert on the natural key, value changes only
- Source: metrics API
- Consumers: read API (history, latest, network aggregates)

============================================================
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Float, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base


class MetricSampleRow(Base):
    """
    One (chain, metric, day) sample.

    (metric_type, chain_identifier, timestamp) is unique.
    """

    __tablename__ = "metric_samples"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    metric_type: Mapped[str] = mapped_column(String(32), nullable=False)

    chain_identifier: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Numeric EVM chain id the series is keyed on"
    )

    timestamp: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Unix seconds, start of the sampled interval"
    )

    value: Mapped[float] = mapped_column(Float, nullable=False)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        UniqueConstraint(
            "metric_type", "chain_identifier", "timestamp",
            name="uq_metric_samples_natural_key",
        ),
        Index("ix_metric_samples_type_timestamp", "metric_type", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<MetricSampleRow({self.metric_type} chain={self.chain_identifier} "
            f"ts={self.timestamp} value={self.value})>"
        )
