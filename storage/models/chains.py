"""
Chain Record ORM Model.

============================================================
PURPOSE
============================================================
One row per real-world network, reconciled from the registry
and the explorer/metrics API.

============================================================
COLUMN OWNERSHIP
============================================================
- Identity: primary_id (unique), legacy/ledger/platform ids
- Descriptive: written by registry syncs only
- Live: written by metrics-API syncs only
- Provenance: which source last wrote, when, from which folder

============================================================
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, JSONType, TimestampMixin


DESCRIPTIVE_COLUMNS = (
    "name",
    "description",
    "website",
    "logo_uri",
    "socials",
    "categories",
    "rpc_urls",
    "network",
    "vm_name",
    "vm_id",
    "native_token",
)

LIVE_COLUMNS = (
    "validators",
    "metric_snapshots",
    "status",
    "live_updated_at",
)

IDENTIFIER_COLUMNS = (
    "legacy_numeric_id",
    "ledger_id",
    "platform_id",
)

PROVENANCE_COLUMNS = (
    "source_tag",
    "last_synced_at",
    "origin_folder",
)


class ChainRecordRow(Base, TimestampMixin):
    """
    Canonical chain record.

    ============================================================
    INVARIANTS
    ============================================================
    - primary_id is unique; one row per network
    - secondary identifiers are indexed, not unique
    - rows are deleted only by the duplicate auditor

    ============================================================
    """

    __tablename__ = "chain_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identity
    primary_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        unique=True,
        comment="Subnet id, or a provisional key until the subnet id is known"
    )

    primary_id_provisional: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    legacy_numeric_id: Mapped[Optional[str]] = mapped_column(
        String(32),
        nullable=True,
        comment="EVM chain id"
    )

    ledger_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    platform_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    # Descriptive (registry-owned)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    logo_uri: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    socials: Mapped[Optional[list[Any]]] = mapped_column(JSONType, nullable=True)
    categories: Mapped[Optional[list[Any]]] = mapped_column(JSONType, nullable=True)
    rpc_urls: Mapped[Optional[list[Any]]] = mapped_column(JSONType, nullable=True)
    network: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    vm_name: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    vm_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    native_token: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    # Live (metrics-API-owned)
    validators: Mapped[Optional[list[Any]]] = mapped_column(JSONType, nullable=True)
    metric_snapshots: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    live_updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Provenance
    source_tag: Mapped[str] = mapped_column(String(32), nullable=False)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    origin_folder: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        Index("ix_chain_records_legacy_numeric_id", "legacy_numeric_id"),
        Index("ix_chain_records_ledger_id", "ledger_id"),
        Index("ix_chain_records_platform_id", "platform_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ChainRecordRow(primary_id={self.primary_id}, name={self.name}, "
            f"source={self.source_tag})>"
        )
