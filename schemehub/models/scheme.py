"""
Scheme models.

A scheme is a time-bounded discount campaign. Product line items are
stored as snapshots (copied at creation time, never joined to the
product master). The audit trail lives in its own table so every
lifecycle action is a single INSERT rather than a rewrite of the scheme row.
"""
import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, Integer, Date, DateTime, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from schemehub.database import Base
from schemehub.db_types import UUIDType, JSONType

if TYPE_CHECKING:
    from schemehub.models.user import User


class SchemeStatus(str, Enum):
    """Scheme status."""
    PENDING_VERIFICATION = "Pending Verification"
    VERIFIED = "Verified"
    ACTIVE = "Active"            # Reserved, not reached by lifecycle operations
    COMPLETED = "Completed"      # Reserved, not reached by lifecycle operations
    REJECTED = "Rejected"


class DistributorType(str, Enum):
    """How the distributors list of a scheme is interpreted."""
    INDIVIDUAL = "individual"    # Distributor record ids
    GROUP = "group"              # Opaque customer group codes


class HistoryAction(str, Enum):
    """Scheme history action."""
    CREATED = "created"
    VERIFIED = "verified"
    REJECTED = "rejected"
    MODIFIED = "modified"


class Scheme(Base):
    """Trade promotion scheme."""
    __tablename__ = "schemes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Identification (immutable after creation)
    scheme_code: Mapped[str] = mapped_column(
        String(40),
        unique=True,
        nullable=False,
        index=True
    )

    # Validity
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Targets
    distributor_type: Mapped[str] = mapped_column(
        String(20),
        default=DistributorType.INDIVIDUAL.value,
        nullable=False
    )
    distributors: Mapped[list] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        comment="Distributor ids (individual) or customer group codes (group)"
    )
    products: Mapped[list] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        comment="Product line snapshots with discount_price and custom_fields"
    )

    # Status
    status: Mapped[str] = mapped_column(
        String(30),
        default=SchemeStatus.PENDING_VERIFICATION.value,
        nullable=False,
        index=True
    )

    # Audit
    created_by: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )
    verified_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    # Timestamps
    created_date: Mapped[datetime] = mapped_column(
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

    # Relationships
    creator: Mapped["User"] = relationship("User", foreign_keys=[created_by])
    verifier: Mapped[Optional["User"]] = relationship("User", foreign_keys=[verified_by])
    history: Mapped[List["SchemeHistory"]] = relationship(
        "SchemeHistory",
        back_populates="scheme",
        order_by="SchemeHistory.id",
    )

    @property
    def is_individual(self) -> bool:
        return self.distributor_type == DistributorType.INDIVIDUAL.value

    def __repr__(self) -> str:
        return f"<Scheme(code='{self.scheme_code}', status='{self.status}')>"


class SchemeHistory(Base):
    """
    Append-only audit entry for one lifecycle action on a scheme.
    Rows are only ever inserted; the integer key preserves append order.
    """
    __tablename__ = "scheme_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    scheme_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("schemes.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    action: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="created, verified, rejected, modified"
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )

    # Relationships
    scheme: Mapped["Scheme"] = relationship("Scheme", back_populates="history")
    user: Mapped[Optional["User"]] = relationship("User")

    def __repr__(self) -> str:
        return f"<SchemeHistory(scheme={self.scheme_id}, action='{self.action}')>"
