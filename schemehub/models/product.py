import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Integer, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from schemehub.database import Base
from schemehub.db_types import UUIDType


class Product(Base):
    """
    Product master data.

    Identity is the composite natural key (item_id, style, configuration).
    Rows are created and refreshed by the master-data sync and may also be
    edited by hand. No unique constraint is declared because the key parts
    are nullable; duplicates are reported and cleaned by ProductService.
    """
    __tablename__ = "products"
    __table_args__ = (
        Index("ix_products_natural_key", "item_id", "style", "configuration"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Natural key
    item_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    style: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    configuration: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Attributes
    item_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    brand_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    flavour_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    pack_type_group_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    pack_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    nob: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Number of bottles per pack"
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    @property
    def natural_key(self) -> tuple:
        return (self.item_id, self.style, self.configuration)

    def __repr__(self) -> str:
        return f"<Product(item_id='{self.item_id}', style='{self.style}', configuration='{self.configuration}')>"
