"""
Scheme Lifecycle Service.

Creates, reads, edits, reviews and deletes schemes. Every lifecycle action
appends exactly one SchemeHistory row in the same transaction as the
change it records.

Scheme codes follow SCH-YYYYMMDD-NNNN (UTC date, random 4-digit suffix).
Product lines are normalized through the alias table and stored as
snapshots; they are never re-resolved against the product master.
"""
import logging
import random
import uuid
from datetime import date, datetime, timedelta, timezone
from math import ceil
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, func, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from schemehub.config import settings
from schemehub.core.exceptions import ValidationError, NotFoundError, ConflictError
from schemehub.core.filters import FilterField, FilterSet
from schemehub.core.permissions import (
    Principal, PermissionChecker, SCHEME_CREATE_ROLES, SCHEME_REVIEW_ROLES, ADMIN_ROLES,
)
from schemehub.models.distributor import Distributor
from schemehub.models.scheme import (
    Scheme, SchemeHistory, SchemeStatus, DistributorType, HistoryAction,
)
from schemehub.schemas.distributor import DistributorBrief
from schemehub.schemas.scheme import (
    SchemeCreate, SchemeUpdate, SchemeResponse, SchemeHistoryResponse,
    ProductLine, PageRef, Pagination,
)
from schemehub.schemas.user import UserBrief
from schemehub.services.product_aliases import normalize_product_lines
from schemehub.services.scheme_state_machine import validate_transition, history_action_for


logger = logging.getLogger(__name__)

SCHEME_CODE_PREFIX = "SCH"
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
DEFAULT_SORT = "-created_date"

SCHEME_FILTERS = FilterSet(
    fields={
        "scheme_code": FilterField.string(Scheme.scheme_code),
        "status": FilterField.string(Scheme.status),
        "distributor_type": FilterField.string(Scheme.distributor_type),
        "start_date": FilterField.date(Scheme.start_date),
        "end_date": FilterField.date(Scheme.end_date),
        "created_by": FilterField.uuid(Scheme.created_by),
        "verified_by": FilterField.uuid(Scheme.verified_by),
    },
    sortable={
        "created_date": Scheme.created_date,
        "updated_at": Scheme.updated_at,
        "start_date": Scheme.start_date,
        "end_date": Scheme.end_date,
        "scheme_code": Scheme.scheme_code,
        "status": Scheme.status,
    },
)


def generate_scheme_code(today: Optional[date] = None) -> str:
    """Build a SCH-YYYYMMDD-NNNN code for the given (default: current UTC) date."""
    today = today or datetime.now(timezone.utc).date()
    return f"{SCHEME_CODE_PREFIX}-{today.strftime('%Y%m%d')}-{random.randint(1000, 9999)}"


def parse_calendar_date(value: Any, field_name: str = "date") -> date:
    """
    Reduce a date, datetime or ISO string to a calendar date.

    Aware datetimes are converted to UTC before the date is taken,
    naive ones are read as UTC.

    Raises:
        ValidationError: missing or unparseable value
    """
    if value is None or value == "":
        raise ValidationError(f"Please provide {field_name}")

    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) <= 10:
                return date.fromisoformat(text)
            value = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"Invalid {field_name}: '{value}'")

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value

    raise ValidationError(f"Invalid {field_name}: '{value}'")


def normalize_scheme_date(value: Any, offset_days: Optional[int] = None, field_name: str = "date") -> date:
    """
    Calendar date stored for a date submitted on scheme creation.

    The scheme form sends the user's local midnight as a UTC instant, which
    lands on the previous UTC day for users east of UTC. The configured
    offset (SCHEME_DATE_OFFSET_DAYS, default 1) shifts it back onto the
    picked calendar day.
    """
    if offset_days is None:
        offset_days = settings.SCHEME_DATE_OFFSET_DAYS
    return parse_calendar_date(value, field_name) + timedelta(days=offset_days)


def _check_date_range(start: date, end: date) -> None:
    if end < start:
        raise ValidationError("End date cannot be before start date")


class SchemeService:
    """Service for the scheme lifecycle."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== HELPERS ====================

    async def _append_history(
        self,
        scheme_id: uuid.UUID,
        action: HistoryAction,
        user_id: Optional[uuid.UUID],
        notes: Optional[str],
    ) -> None:
        self.db.add(SchemeHistory(
            scheme_id=scheme_id,
            action=action.value,
            user_id=user_id,
            notes=notes,
        ))

    async def _code_exists(self, scheme_code: str) -> bool:
        result = await self.db.execute(
            select(Scheme.id).where(Scheme.scheme_code == scheme_code)
        )
        return result.scalar_one_or_none() is not None

    async def _unique_code(self) -> str:
        for _ in range(5):
            code = generate_scheme_code()
            if not await self._code_exists(code):
                return code
        raise ConflictError("Could not allocate a unique scheme code, please retry")

    async def _validate_distributors(
        self,
        distributor_type: str,
        distributors: Iterable[str],
    ) -> List[str]:
        """
        Check the distributors list against the scheme's distributor_type.

        Individual schemes must reference existing distributor ids;
        group schemes carry opaque customer group codes.
        """
        values = [str(d).strip() for d in distributors if d is not None and str(d).strip()]
        if not values:
            raise ValidationError("Please select at least one distributor")

        if distributor_type == DistributorType.GROUP.value:
            return values

        ids = []
        invalid = []
        for value in values:
            try:
                ids.append(uuid.UUID(value))
            except ValueError:
                invalid.append(value)
        if invalid:
            raise ValidationError(f"Invalid distributor id(s): {', '.join(invalid)}")

        result = await self.db.execute(select(Distributor.id).where(Distributor.id.in_(ids)))
        found = set(result.scalars().all())
        missing = [str(i) for i in ids if i not in found]
        if missing:
            raise ValidationError(f"Distributor(s) not found: {', '.join(missing)}")

        return [str(i) for i in ids]

    async def _flush_unique(self) -> None:
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise ValidationError("Scheme code already exists")

    def _base_query(self):
        return select(Scheme).options(
            selectinload(Scheme.creator),
            selectinload(Scheme.verifier),
            selectinload(Scheme.history).selectinload(SchemeHistory.user),
        )

    async def _get_by_id(self, scheme_id: uuid.UUID) -> Scheme:
        result = await self.db.execute(select(Scheme).where(Scheme.id == scheme_id))
        scheme = result.scalar_one_or_none()
        if not scheme:
            raise NotFoundError("Scheme not found")
        return scheme

    async def get_by_code(self, scheme_code: str) -> Scheme:
        """Load a scheme with creator, verifier and history."""
        result = await self.db.execute(
            self._base_query()
            .where(Scheme.scheme_code == scheme_code)
            .execution_options(populate_existing=True)
        )
        scheme = result.scalar_one_or_none()
        if not scheme:
            raise NotFoundError("Scheme not found")
        return scheme

    async def resolve_distributors(self, schemes: Iterable[Scheme]) -> Dict[str, Distributor]:
        """Load every distributor referenced by the individual schemes given."""
        ids = set()
        for scheme in schemes:
            if not scheme.is_individual:
                continue
            for value in scheme.distributors or []:
                try:
                    ids.add(uuid.UUID(str(value)))
                except ValueError:
                    continue
        if not ids:
            return {}
        result = await self.db.execute(select(Distributor).where(Distributor.id.in_(ids)))
        return {str(d.id): d for d in result.scalars().all()}

    def to_response(self, scheme: Scheme, distributor_map: Dict[str, Distributor]) -> SchemeResponse:
        """
        Render a scheme for clients.

        Individual schemes show distributor display fields; ids that no
        longer resolve are dropped. Group codes are returned as-is.
        """
        if scheme.is_individual:
            distributors = [
                DistributorBrief.model_validate(distributor_map[str(value)])
                for value in scheme.distributors or []
                if str(value) in distributor_map
            ]
        else:
            distributors = list(scheme.distributors or [])

        return SchemeResponse(
            id=scheme.id,
            scheme_code=scheme.scheme_code,
            start_date=scheme.start_date,
            end_date=scheme.end_date,
            distributor_type=scheme.distributor_type,
            distributors=distributors,
            products=[ProductLine(**line) for line in scheme.products or []],
            status=scheme.status,
            created_by=scheme.created_by,
            creator=UserBrief.model_validate(scheme.creator) if scheme.creator else None,
            verified_by=scheme.verified_by,
            verifier=UserBrief.model_validate(scheme.verifier) if scheme.verifier else None,
            created_date=scheme.created_date,
            updated_at=scheme.updated_at,
            history=[
                SchemeHistoryResponse(
                    action=entry.action,
                    user_id=entry.user_id,
                    user_name=entry.user.name if entry.user else None,
                    notes=entry.notes,
                    timestamp=entry.timestamp,
                )
                for entry in scheme.history
            ],
        )

    # ==================== LIFECYCLE ====================

    async def create(self, actor: Principal, data: SchemeCreate) -> Scheme:
        """
        Create a scheme in Pending Verification.

        Raises:
            ForbiddenError: actor is neither creator nor admin
            ValidationError: missing dates, bad range, unknown distributors,
                malformed products or a scheme code already in use
        """
        PermissionChecker(actor).require_roles(SCHEME_CREATE_ROLES)

        start_date = normalize_scheme_date(data.start_date, field_name="startDate")
        end_date = normalize_scheme_date(data.end_date, field_name="endDate")
        _check_date_range(start_date, end_date)

        distributor_type = DistributorType(data.distributor_type).value
        distributors = await self._validate_distributors(distributor_type, data.distributors)
        products = normalize_product_lines(data.products)

        scheme_code = (data.scheme_code or "").strip()
        if scheme_code:
            if await self._code_exists(scheme_code):
                raise ValidationError(f"Scheme code '{scheme_code}' already exists")
        else:
            scheme_code = await self._unique_code()

        scheme = Scheme(
            scheme_code=scheme_code,
            start_date=start_date,
            end_date=end_date,
            distributor_type=distributor_type,
            distributors=distributors,
            products=products,
            status=SchemeStatus.PENDING_VERIFICATION.value,
            created_by=actor.id,
        )
        self.db.add(scheme)
        await self._flush_unique()

        await self._append_history(scheme.id, HistoryAction.CREATED, actor.id, "Scheme created")
        await self.db.commit()

        logger.info(f"Scheme {scheme_code} created by {actor.id}")
        return await self.get_by_code(scheme_code)

    async def get_schemes(
        self,
        params: Iterable[Tuple[str, str]] = (),
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        sort: Optional[str] = None,
    ) -> Tuple[List[Scheme], int, Pagination]:
        """
        List schemes with allow-listed filters, sort and pagination.

        Returns:
            (schemes on this page, total matching, pagination links)
        """
        if page < 1:
            raise ValidationError("page must be 1 or greater")
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

        clauses = SCHEME_FILTERS.build(params)
        order = SCHEME_FILTERS.order_by(sort, DEFAULT_SORT)

        count_stmt = select(func.count(Scheme.id))
        stmt = self._base_query()
        if clauses:
            count_stmt = count_stmt.where(*clauses)
            stmt = stmt.where(*clauses)

        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = stmt.order_by(*order, Scheme.id).offset((page - 1) * limit).limit(limit)
        result = await self.db.execute(stmt)
        schemes = list(result.scalars().all())

        pages = ceil(total / limit) if total else 0
        pagination = Pagination(
            next=PageRef(page=page + 1, limit=limit) if page < pages else None,
            prev=PageRef(page=page - 1, limit=limit) if page > 1 else None,
        )
        return schemes, total, pagination

    async def update(self, scheme_id: uuid.UUID, actor: Principal, data: SchemeUpdate) -> Scheme:
        """
        Edit a scheme. Only its creator or an admin may do so.

        Dates are stored as given (no display offset). Status may be set to
        any value. The history trail cannot be edited; one 'modified' entry
        is appended instead.

        Raises:
            NotFoundError: unknown scheme id
            ForbiddenError: actor is neither the creator nor an admin
            ValidationError: invalid dates, distributors or products
        """
        scheme = await self._get_by_id(scheme_id)
        PermissionChecker(actor).require_scheme_owner(scheme.created_by)

        values = data.model_dump(exclude_unset=True)
        changes: Dict[str, Any] = {}

        start_date = scheme.start_date
        end_date = scheme.end_date
        if values.get("start_date") is not None:
            start_date = changes["start_date"] = parse_calendar_date(values["start_date"], "startDate")
        if values.get("end_date") is not None:
            end_date = changes["end_date"] = parse_calendar_date(values["end_date"], "endDate")
        _check_date_range(start_date, end_date)

        distributor_type = scheme.distributor_type
        if values.get("distributor_type") is not None:
            distributor_type = DistributorType(values["distributor_type"]).value
            if distributor_type != scheme.distributor_type and values.get("distributors") is None:
                raise ValidationError("Please provide distributors when changing distributorType")
            changes["distributor_type"] = distributor_type
        if values.get("distributors") is not None:
            changes["distributors"] = await self._validate_distributors(
                distributor_type, values["distributors"]
            )

        if values.get("products") is not None:
            changes["products"] = normalize_product_lines(values["products"])

        if values.get("status") is not None:
            changes["status"] = SchemeStatus(values["status"]).value

        for key, value in changes.items():
            setattr(scheme, key, value)

        await self._append_history(
            scheme.id, HistoryAction.MODIFIED, actor.id, data.notes or "Scheme updated"
        )
        await self.db.commit()

        logger.info(f"Scheme {scheme.scheme_code} updated by {actor.id}: {sorted(changes)}")
        return await self.get_by_code(scheme.scheme_code)

    async def _review(
        self,
        scheme_code: str,
        actor: Principal,
        new_status: SchemeStatus,
        notes: Optional[str],
        default_notes: str,
    ) -> Scheme:
        PermissionChecker(actor).require_roles(SCHEME_REVIEW_ROLES)
        scheme = await self.get_by_code(scheme_code)
        current_status = scheme.status
        validate_transition(current_status, new_status.value)

        values: Dict[str, Any] = {"status": new_status.value}
        if new_status == SchemeStatus.VERIFIED:
            values["verified_by"] = actor.id

        stmt = update(Scheme).where(Scheme.id == scheme.id)
        if settings.SCHEME_STRICT_TRANSITIONS:
            # Compare-and-set so two concurrent reviews cannot both win
            stmt = stmt.where(Scheme.status == current_status)
        result = await self.db.execute(stmt.values(**values))
        if result.rowcount == 0:
            await self.db.rollback()
            raise ConflictError("Scheme was reviewed by someone else, reload and retry")

        await self._append_history(
            scheme.id, history_action_for(new_status.value), actor.id, notes or default_notes
        )
        await self.db.commit()

        logger.info(f"Scheme {scheme_code} {current_status} -> {new_status.value} by {actor.id}")
        return await self.get_by_code(scheme_code)

    async def verify(self, scheme_code: str, actor: Principal, notes: Optional[str] = None) -> Scheme:
        """Mark a scheme Verified and record the verifier."""
        return await self._review(scheme_code, actor, SchemeStatus.VERIFIED, notes, "Scheme verified")

    async def reject(self, scheme_code: str, actor: Principal, notes: Optional[str] = None) -> Scheme:
        """Mark a scheme Rejected."""
        return await self._review(scheme_code, actor, SchemeStatus.REJECTED, notes, "Scheme rejected")

    async def delete(self, scheme_code: str, actor: Principal) -> None:
        """
        Hard-delete a scheme and its history (admin only).

        Raises:
            ForbiddenError: actor is not an admin
            NotFoundError: unknown scheme code
        """
        PermissionChecker(actor).require_roles(ADMIN_ROLES)
        result = await self.db.execute(
            select(Scheme.id).where(Scheme.scheme_code == scheme_code)
        )
        scheme_id = result.scalar_one_or_none()
        if scheme_id is None:
            raise NotFoundError("Scheme not found")

        await self.db.execute(delete(SchemeHistory).where(SchemeHistory.scheme_id == scheme_id))
        await self.db.execute(delete(Scheme).where(Scheme.id == scheme_id))
        await self.db.commit()

        logger.info(f"Scheme {scheme_code} deleted by {actor.id}")
