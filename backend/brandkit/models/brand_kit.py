"""BrandKit model: one row per kit with the whole document in JSONB.

The kit document (palette, profile, voice, campaigns, meta) lives in
`kit_json` and is always replaced as a whole. `version` mirrors
`kit_json.meta.version` so writes can optionally be made conditional on it.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import DateTime, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from brandkit.core.database import Base


class BrandKit(Base):
    """Brand kit record owned by a single user.

    Attributes:
        id: UUID primary key
        owner_id: Id of the user that owns the kit
        mode: Generation mode chosen at creation (e.g. "business")
        business: Free-text business description
        vibe: Free-text vibe/style description
        kit_json: The brand kit document
        version: Copy of kit_json.meta.version
        created_at: Timestamp when the kit was created
        updated_at: Timestamp when the kit was last written
    """

    __tablename__ = "brand_kits"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    owner_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )

    mode: Mapped[str] = mapped_column(String(50), nullable=False)

    business: Mapped[str] = mapped_column(Text, nullable=False)

    vibe: Mapped[str] = mapped_column(Text, nullable=False)

    kit_json: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
        server_default=text("'{}'::jsonb"),
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default=text("1"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
        index=True,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
        onupdate=lambda: datetime.now(UTC),
    )

    def __repr__(self) -> str:
        return f"<BrandKit(id={self.id!r}, owner_id={self.owner_id!r}, version={self.version!r})>"
