"""BrandKitRepository: record store for brand kit documents.

Records are keyed by (id, owner_id). The document is never updated
field by field: replace_document swaps the whole kit_json value.
Follows the layered architecture pattern: API -> Service -> Repository -> Database.

Logging:
- method entry/exit at DEBUG with entity ids
- SQLAlchemy failures through db_logger.transaction_failure, then re-raised
- operations over one second reported as slow queries
"""

import time
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from brandkit.core.logging import db_logger, get_logger
from brandkit.models.brand_kit import BrandKit

logger = get_logger(__name__)


def _meta_version(kit_json: dict[str, Any]) -> int:
    meta = kit_json.get("meta")
    version = meta.get("version") if isinstance(meta, dict) else None
    if isinstance(version, int) and not isinstance(version, bool) and version > 0:
        return version
    return 1


class BrandKitRepository:
    """Repository for BrandKit records."""

    TABLE_NAME = "brand_kits"
    SLOW_OPERATION_THRESHOLD_MS = 1000  # 1 second

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _check_slow(self, query: str, start_time: float) -> float:
        duration_ms = (time.monotonic() - start_time) * 1000
        if duration_ms > self.SLOW_OPERATION_THRESHOLD_MS:
            db_logger.slow_query(query=query, duration_ms=duration_ms, table=self.TABLE_NAME)
        return duration_ms

    async def create(
        self,
        owner_id: str,
        mode: str,
        business: str,
        vibe: str,
        kit_json: dict[str, Any],
    ) -> BrandKit:
        """Insert a new kit record.

        Raises:
            SQLAlchemyError: On database errors
        """
        start_time = time.monotonic()
        logger.debug("Creating brand kit", extra={"owner_id": owner_id, "mode": mode})

        try:
            kit = BrandKit(
                owner_id=owner_id,
                mode=mode,
                business=business,
                vibe=vibe,
                kit_json=kit_json,
                version=_meta_version(kit_json),
            )
            self.session.add(kit)
            await self.session.flush()
            await self.session.refresh(kit)

            self._check_slow("INSERT INTO brand_kits", start_time)
            logger.info(
                "Brand kit created",
                extra={"kit_id": kit.id, "owner_id": owner_id},
            )
            return kit

        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e,
                table=self.TABLE_NAME,
                context=f"Creating brand_kit for owner_id={owner_id}",
            )
            raise

    async def get_by_id(self, kit_id: str) -> BrandKit | None:
        """Fetch a kit regardless of owner (diagnostics only)."""
        start_time = time.monotonic()
        try:
            result = await self.session.execute(select(BrandKit).where(BrandKit.id == kit_id))
            kit = result.scalar_one_or_none()
            self._check_slow(f"SELECT FROM brand_kits WHERE id={kit_id}", start_time)
            return kit

        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e, table=self.TABLE_NAME, context=f"Fetching brand_kit_id={kit_id}"
            )
            raise

    async def get_by_id_and_owner(self, kit_id: str, owner_id: str) -> BrandKit | None:
        start_time = time.monotonic()
        try:
            result = await self.session.execute(
                select(BrandKit).where(BrandKit.id == kit_id, BrandKit.owner_id == owner_id)
            )
            kit = result.scalar_one_or_none()

            duration_ms = self._check_slow(
                f"SELECT FROM brand_kits WHERE id={kit_id} AND owner_id", start_time
            )
            logger.debug(
                "Brand kit fetch completed",
                extra={
                    "kit_id": kit_id,
                    "found": kit is not None,
                    "duration_ms": round(duration_ms, 2),
                },
            )
            return kit

        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e,
                table=self.TABLE_NAME,
                context=f"Fetching brand_kit_id={kit_id} for owner",
            )
            raise

    async def list_by_owner(self, owner_id: str) -> list[BrandKit]:
        """All kits of an owner, newest first."""
        start_time = time.monotonic()
        try:
            result = await self.session.execute(
                select(BrandKit)
                .where(BrandKit.owner_id == owner_id)
                .order_by(BrandKit.created_at.desc())
            )
            kits = list(result.scalars().all())
            self._check_slow("SELECT FROM brand_kits WHERE owner_id", start_time)
            return kits

        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e, table=self.TABLE_NAME, context="Listing brand_kits by owner"
            )
            raise

    async def delete_by_id_and_owner(self, kit_id: str, owner_id: str) -> int:
        """Delete an owner's kit. Returns the number of rows deleted."""
        start_time = time.monotonic()
        try:
            result = await self.session.execute(
                delete(BrandKit).where(BrandKit.id == kit_id, BrandKit.owner_id == owner_id)
            )
            await self.session.flush()
            deleted_count = result.rowcount

            self._check_slow(f"DELETE FROM brand_kits WHERE id={kit_id}", start_time)
            if deleted_count:
                logger.info("Brand kit deleted", extra={"kit_id": kit_id})
            return deleted_count

        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e, table=self.TABLE_NAME, context=f"Deleting brand_kit_id={kit_id}"
            )
            raise

    async def replace_document(
        self,
        kit_id: str,
        kit_json: dict[str, Any],
        expected_version: int | None = None,
    ) -> bool:
        """Replace the whole kit document.

        With expected_version set the update only applies while the stored
        version still equals it. Returns False when no row was updated.
        """
        start_time = time.monotonic()
        new_version = _meta_version(kit_json)
        logger.debug(
            "Replacing brand kit document",
            extra={
                "kit_id": kit_id,
                "version": new_version,
                "expected_version": expected_version,
            },
        )

        try:
            statement = update(BrandKit).where(BrandKit.id == kit_id)
            if expected_version is not None:
                statement = statement.where(BrandKit.version == expected_version)
            result = await self.session.execute(
                statement.values(kit_json=kit_json, version=new_version)
            )
            await self.session.flush()
            replaced = result.rowcount > 0

            self._check_slow(f"UPDATE brand_kits WHERE id={kit_id}", start_time)
            if not replaced:
                logger.warning(
                    "Brand kit document not replaced",
                    extra={"kit_id": kit_id, "expected_version": expected_version},
                )
            return replaced

        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e,
                table=self.TABLE_NAME,
                context=f"Replacing document of brand_kit_id={kit_id}",
            )
            raise
