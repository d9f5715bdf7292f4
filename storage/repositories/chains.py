"""
Chain Record Repository.

============================================================
PURPOSE
============================================================
ChainRecordStore is the only gateway to the chain_records table.
It speaks ChainRecord (domain) on the outside and ChainRecordRow
(ORM) on the inside.

============================================================
WRITE MODEL
============================================================
Writes are single atomic statements:

- existing record:  UPDATE ... WHERE primary_id = :matched
                    (filter and set in one statement; also re-keys a
                    provisional primary id). Sets only the writing
                    source's columns and fills identifier gaps
- new record:       INSERT ... ON CONFLICT (primary_id) DO UPDATE
                    setting only the columns the writing source owns
                    and coalescing identifiers, so a concurrent pass
                    creating the same key cannot erase the other
                    source's fields

The caller owns the transaction (database.engine.session_scope).

============================================================
"""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import case, delete, func, literal, select, update
from sqlalchemy.orm import Session

from chain_sources.models import (
    ChainIdentifiers,
    DescriptiveFields,
    LiveData,
    SourceTag,
)
from core.clock import ensure_utc
from reconciliation.models import ChainRecord, Provenance
from storage.models.chains import (
    DESCRIPTIVE_COLUMNS,
    IDENTIFIER_COLUMNS,
    LIVE_COLUMNS,
    PROVENANCE_COLUMNS,
    ChainRecordRow,
)
from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import RecordNotFoundError


class ChainRecordStore(BaseRepository[ChainRecordRow]):
    """
    Repository for canonical chain records.

    Lookups used by identity resolution return lists: secondary
    identifiers are not unique, and the resolver decides.
    """

    def __init__(self, session: Session) -> None:
        super().__init__(session, ChainRecordRow, "ChainRecordStore")

    # =========================================================
    # READS
    # =========================================================

    def get(self, primary_id: str) -> Optional[ChainRecord]:
        row = self._execute_scalar(
            select(ChainRecordRow).where(ChainRecordRow.primary_id == primary_id)
        )
        return self._to_domain(row) if row is not None else None

    def get_or_raise(self, primary_id: str) -> ChainRecord:
        record = self.get(primary_id)
        if record is None:
            raise RecordNotFoundError(self._repository_name, primary_id)
        return record

    def find_by_primary_id(self, primary_id: str) -> List[ChainRecord]:
        record = self.get(primary_id)
        return [record] if record is not None else []

    def find_by_legacy_numeric_id(self, value: str) -> List[ChainRecord]:
        return self._find_by(ChainRecordRow.legacy_numeric_id, value)

    def find_by_ledger_id(self, value: str) -> List[ChainRecord]:
        return self._find_by(ChainRecordRow.ledger_id, value)

    def find_by_platform_id(self, value: str) -> List[ChainRecord]:
        return self._find_by(ChainRecordRow.platform_id, value)

    def list_all(
        self,
        category: Optional[str] = None,
        network: Optional[str] = None,
    ) -> List[ChainRecord]:
        """
        All records, ordered by primary id.

        Category filtering happens in Python: categories live in a JSON
        column and the table holds at most a few hundred rows.
        """
        stmt = select(ChainRecordRow).order_by(ChainRecordRow.primary_id)
        if network:
            stmt = stmt.where(ChainRecordRow.network == network)
        records = [self._to_domain(row) for row in self._execute_query(stmt)]
        if category:
            records = [r for r in records if category in r.descriptive.categories]
        return records

    def categories(self) -> List[str]:
        """Sorted distinct category tags across all records."""
        rows = self._execute_rows(select(ChainRecordRow.categories), "categories")
        tags = set()
        for (values,) in rows:
            tags.update(values or [])
        return sorted(tags)

    def names_by_legacy_numeric_id(self) -> Dict[str, str]:
        """Display name per legacy numeric id; a registry record wins a shared id."""
        stmt = (
            select(ChainRecordRow.legacy_numeric_id, ChainRecordRow.name, ChainRecordRow.source_tag)
            .where(ChainRecordRow.legacy_numeric_id.is_not(None), ChainRecordRow.name.is_not(None))
            .order_by(ChainRecordRow.id)
        )
        names: Dict[str, str] = {}
        for legacy_id, name, source in self._execute_rows(stmt, "names_by_legacy_numeric_id"):
            if legacy_id not in names or source == SourceTag.REGISTRY.value:
                names[legacy_id] = name
        return names

    def count(self) -> int:
        return self._count()

    def _find_by(self, column, value: Optional[str]) -> List[ChainRecord]:
        if not value:
            return []
        stmt = select(ChainRecordRow).where(column == value).order_by(ChainRecordRow.id)
        return [self._to_domain(row) for row in self._execute_query(stmt)]

    # =========================================================
    # WRITES
    # =========================================================

    def upsert(
        self,
        record: ChainRecord,
        source_tag: SourceTag,
        match_primary_id: Optional[str] = None,
    ) -> None:
        """
        Persist a merged record atomically.

        Both paths set only the columns ``source_tag`` owns, so a write
        built from an earlier read cannot revert what the other source
        committed in between.

        Args:
            record: Result of MergeEngine.merge
            source_tag: Source whose sync produced the merge
            match_primary_id: Stored primary id the resolver matched, if any
        """
        values = self._to_values(record)

        if match_primary_id is not None:
            stmt = (
                update(ChainRecordRow)
                .where(ChainRecordRow.primary_id == match_primary_id)
                .values(**self._owned_update_values(values, source_tag))
            )
            result = self._execute(
                stmt, "upsert", {"field": "primary_id", "value": record.primary_id}
            )
            if result.rowcount == 1:
                self._logger.debug(f"Updated {match_primary_id} -> {record.primary_id}")
                return
            self._logger.warning(
                f"Record {match_primary_id} disappeared before update; inserting instead"
            )

        insert_stmt = self._insert().values(**values)
        excluded = insert_stmt.excluded
        table = ChainRecordRow.__table__.c

        set_ = {
            column: func.coalesce(table[column], excluded[column])
            for column in IDENTIFIER_COLUMNS
        }
        if source_tag == SourceTag.REGISTRY:
            for column in DESCRIPTIVE_COLUMNS + PROVENANCE_COLUMNS:
                set_[column] = excluded[column]
            set_["primary_id_provisional"] = excluded.primary_id_provisional
        else:
            for column in LIVE_COLUMNS:
                set_[column] = func.coalesce(excluded[column], table[column])
        set_["updated_at"] = func.now()

        stmt = insert_stmt.on_conflict_do_update(
            index_elements=[ChainRecordRow.primary_id],
            set_=set_,
        )
        self._execute(stmt, "upsert", {"field": "primary_id", "value": record.primary_id})
        self._logger.debug(f"Inserted {record.primary_id} from {source_tag.value}")

    @staticmethod
    def _owned_update_values(values: dict, source_tag: SourceTag) -> dict:
        """
        SET clause for an existing row.

        Re-key columns come from the merge, identifiers only fill gaps.
        The registry writes descriptive and provenance columns; the
        metrics API writes live columns, and last_synced_at only while
        the row is still its own.
        """
        set_ = {
            "primary_id": values["primary_id"],
            "primary_id_provisional": values["primary_id_provisional"],
        }
        for column in IDENTIFIER_COLUMNS:
            set_[column] = func.coalesce(getattr(ChainRecordRow, column), values[column])

        if source_tag == SourceTag.REGISTRY:
            for column in DESCRIPTIVE_COLUMNS + PROVENANCE_COLUMNS:
                set_[column] = values[column]
        else:
            for column in LIVE_COLUMNS:
                set_[column] = values[column]
            set_["last_synced_at"] = case(
                (
                    ChainRecordRow.source_tag == source_tag.value,
                    literal(values["last_synced_at"], ChainRecordRow.last_synced_at.type),
                ),
                else_=ChainRecordRow.last_synced_at,
            )
        return set_

    def union_identifiers(self, primary_id: str, identifiers: ChainIdentifiers) -> None:
        """Fill identifier columns that are still empty; never overwrite."""
        values = {
            column: func.coalesce(getattr(ChainRecordRow, column), value)
            for column, value in identifiers.to_dict().items()
            if value
        }
        if not values:
            return
        stmt = (
            update(ChainRecordRow)
            .where(ChainRecordRow.primary_id == primary_id)
            .values(**values)
        )
        self._execute(stmt, "union_identifiers")

    def delete_many(self, primary_ids: Iterable[str]) -> int:
        ids = list(primary_ids)
        if not ids:
            return 0
        stmt = delete(ChainRecordRow).where(ChainRecordRow.primary_id.in_(ids))
        result = self._execute(stmt, "delete_many")
        self._logger.info(f"Deleted {result.rowcount} chain records: {ids}")
        return result.rowcount

    # =========================================================
    # MAPPING
    # =========================================================

    @staticmethod
    def _to_domain(row: ChainRecordRow) -> ChainRecord:
        return ChainRecord(
            primary_id=row.primary_id,
            primary_id_provisional=bool(row.primary_id_provisional),
            identifiers=ChainIdentifiers(
                legacy_numeric_id=row.legacy_numeric_id,
                ledger_id=row.ledger_id,
                platform_id=row.platform_id,
            ),
            descriptive=DescriptiveFields(
                name=row.name,
                description=row.description,
                website=row.website,
                logo_uri=row.logo_uri,
                socials=list(row.socials or []),
                categories=list(row.categories or []),
                rpc_urls=list(row.rpc_urls or []),
                network=row.network,
                vm_name=row.vm_name,
                vm_id=row.vm_id,
                native_token=row.native_token,
            ),
            live=LiveData(
                validators=row.validators,
                metric_snapshots=row.metric_snapshots,
                status=row.status,
                updated_at=ensure_utc(row.live_updated_at),
            ),
            provenance=Provenance(
                source_tag=SourceTag(row.source_tag),
                last_synced_at=ensure_utc(row.last_synced_at),
                origin_folder=row.origin_folder,
            ),
        )

    @staticmethod
    def _to_values(record: ChainRecord) -> dict:
        d = record.descriptive
        return {
            "primary_id": record.primary_id,
            "primary_id_provisional": record.primary_id_provisional,
            "legacy_numeric_id": record.identifiers.legacy_numeric_id,
            "ledger_id": record.identifiers.ledger_id,
            "platform_id": record.identifiers.platform_id,
            "name": d.name,
            "description": d.description,
            "website": d.website,
            "logo_uri": d.logo_uri,
            "socials": list(d.socials),
            "categories": list(d.categories),
            "rpc_urls": list(d.rpc_urls),
            "network": d.network,
            "vm_name": d.vm_name,
            "vm_id": d.vm_id,
            "native_token": d.native_token,
            "validators": record.live.validators,
            "metric_snapshots": record.live.metric_snapshots,
            "status": record.live.status,
            "live_updated_at": record.live.updated_at,
            "source_tag": record.provenance.source_tag.value,
            "last_synced_at": record.provenance.last_synced_at,
            "origin_folder": record.provenance.origin_folder,
        }
