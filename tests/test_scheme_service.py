"""Scheme lifecycle: creation, review, editing and deletion."""

from __future__ import annotations

import re
import uuid
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import func, select

from schemehub.config import settings
from schemehub.core.permissions import Principal
from schemehub.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from schemehub.models import Product, Scheme, SchemeHistory, SchemeStatus, UserRole
from schemehub.schemas.scheme import SchemeCreate, SchemeUpdate
from schemehub.services.scheme_service import SchemeService, generate_scheme_code


PRODUCTS = [
    {"itemCode": "P001", "itemName": "Product A", "brandName": "Brand X", "style": "Standard",
     "mrp": "120", "nob": 12, "discountPrice": 5.5},
    {"ITEMID": "P002", "ITEMNAME": "Product B", "PACKTYPE": "Bottle", "Configuration": "180"},
]


def _payload(distributors, /, **overrides) -> SchemeCreate:
    data = {
        "startDate": "2026-03-31T18:30:00.000Z",
        "endDate": "2026-04-29T18:30:00.000Z",
        "distributorType": "individual",
        "distributors": [str(d.id) for d in distributors],
        "products": PRODUCTS,
    }
    data.update(overrides)
    return SchemeCreate.model_validate(data)


async def _history_actions(db, scheme_id) -> list[str]:
    result = await db.execute(
        select(SchemeHistory.action).where(SchemeHistory.scheme_id == scheme_id).order_by(SchemeHistory.id)
    )
    return list(result.scalars().all())


def test_generated_code_format():
    code = generate_scheme_code(date(2026, 4, 1))
    match = re.fullmatch(r"SCH-20260401-(\d{4})", code)
    assert match is not None
    assert 1000 <= int(match.group(1)) <= 9999


async def test_create_generates_code_and_seeds_history(db, creator, distributors):
    scheme = await SchemeService(db).create(Principal.from_user(creator), _payload(distributors))

    today = datetime.now(timezone.utc).strftime("%Y%m%d")
    assert re.fullmatch(rf"SCH-{today}-\d{{4}}", scheme.scheme_code)
    assert scheme.status == SchemeStatus.PENDING_VERIFICATION.value
    assert scheme.created_by == creator.id
    assert [h.action for h in scheme.history] == ["created"]
    assert scheme.history[0].user_id == creator.id


async def test_create_applies_date_offset(db, creator, distributors):
    scheme = await SchemeService(db).create(Principal.from_user(creator), _payload(distributors))

    # IST midnight of 1 April arrives as 31 March 18:30 UTC
    assert scheme.start_date == date(2026, 4, 1)
    assert scheme.end_date == date(2026, 4, 30)


async def test_create_normalizes_product_aliases(db, creator, distributors):
    scheme = await SchemeService(db).create(Principal.from_user(creator), _payload(distributors))

    assert len(scheme.products) == 2
    first, second = scheme.products
    assert first["item_id"] == "P001"
    assert first["configuration"] == "120"
    assert first["discount_price"] == 5.5
    assert second["item_id"] == "P002"
    assert second["pack_type"] == "Bottle"
    assert second["discount_price"] == 0
    assert second["custom_fields"] == {}


async def test_product_snapshot_survives_master_edits(db, creator, distributors):
    product = Product(item_id="P001", item_name="Product A", style="Standard", configuration="120")
    db.add(product)
    await db.commit()

    service = SchemeService(db)
    created = await service.create(Principal.from_user(creator), _payload(distributors))

    product.item_name = "Renamed"
    await db.commit()

    scheme = await service.get_by_code(created.scheme_code)
    assert scheme.products[0]["item_name"] == "Product A"


async def test_create_rejects_missing_products(db, creator, distributors):
    with pytest.raises(ValidationError, match="products"):
        await SchemeService(db).create(Principal.from_user(creator), _payload(distributors, products=None))


async def test_create_rejects_duplicate_code(db, creator, distributors):
    service = SchemeService(db)
    await service.create(Principal.from_user(creator), _payload(distributors, schemeCode="SCH-FIXED-1"))

    with pytest.raises(ValidationError, match="already exists"):
        await service.create(Principal.from_user(creator), _payload(distributors, schemeCode="SCH-FIXED-1"))


async def test_create_rejects_unknown_distributor(db, creator, distributors):
    payload = _payload(distributors, distributors=[str(uuid.uuid4())])
    with pytest.raises(ValidationError, match="not found"):
        await SchemeService(db).create(Principal.from_user(creator), payload)


async def test_create_rejects_inverted_range(db, creator, distributors):
    payload = _payload(distributors, startDate="2026-05-01", endDate="2026-04-01")
    with pytest.raises(ValidationError, match="End date"):
        await SchemeService(db).create(Principal.from_user(creator), payload)


async def test_create_requires_creator_role(db, viewer, distributors):
    with pytest.raises(ForbiddenError):
        await SchemeService(db).create(Principal.from_user(viewer), _payload(distributors))


async def test_group_scheme_keeps_codes_opaque(db, creator):
    service = SchemeService(db)
    payload = SchemeCreate.model_validate({
        "startDate": "2026-04-01",
        "endDate": "2026-04-30",
        "distributorType": "group",
        "distributors": ["PREMIUM", " STANDARD "],
        "products": PRODUCTS,
    })
    scheme = await service.create(Principal.from_user(creator), payload)

    response = service.to_response(scheme, await service.resolve_distributors([scheme]))
    assert response.distributors == ["PREMIUM", "STANDARD"]


async def test_read_resolves_individual_distributors(db, creator, distributors):
    service = SchemeService(db)
    created = await service.create(Principal.from_user(creator), _payload(distributors))

    scheme = await service.get_by_code(created.scheme_code)
    response = service.to_response(scheme, await service.resolve_distributors([scheme]))

    assert [d.customer_account for d in response.distributors] == ["ABC001", "XYZ002"]
    assert response.history[0].user_name == creator.name


async def test_get_by_code_unknown(db):
    with pytest.raises(NotFoundError):
        await SchemeService(db).get_by_code("SCH-00000000-0000")


async def test_verify_sets_verifier_and_appends_history(db, creator, verifier, distributors):
    service = SchemeService(db)
    created = await service.create(Principal.from_user(creator), _payload(distributors))

    scheme = await service.verify(created.scheme_code, Principal.from_user(verifier), "Looks good")

    assert scheme.status == SchemeStatus.VERIFIED.value
    assert scheme.verified_by == verifier.id
    assert await _history_actions(db, scheme.id) == ["created", "verified"]
    assert scheme.history[-1].notes == "Looks good"


async def test_reject_appends_history(db, creator, verifier, distributors):
    service = SchemeService(db)
    created = await service.create(Principal.from_user(creator), _payload(distributors))

    scheme = await service.reject(created.scheme_code, Principal.from_user(verifier))

    assert scheme.status == SchemeStatus.REJECTED.value
    assert scheme.verified_by is None
    assert await _history_actions(db, scheme.id) == ["created", "rejected"]
    assert scheme.history[-1].notes == "Scheme rejected"


async def test_reject_after_verify_is_permitted_by_default(db, creator, verifier, distributors):
    service = SchemeService(db)
    created = await service.create(Principal.from_user(creator), _payload(distributors))
    await service.verify(created.scheme_code, Principal.from_user(verifier))

    scheme = await service.reject(created.scheme_code, Principal.from_user(verifier))

    assert scheme.status == SchemeStatus.REJECTED.value
    assert await _history_actions(db, scheme.id) == ["created", "verified", "rejected"]


async def test_strict_transitions_block_second_review(db, creator, verifier, distributors, monkeypatch):
    monkeypatch.setattr(settings, "SCHEME_STRICT_TRANSITIONS", True)
    service = SchemeService(db)
    created = await service.create(Principal.from_user(creator), _payload(distributors))
    await service.verify(created.scheme_code, Principal.from_user(verifier))

    with pytest.raises(ValidationError, match="Pending Verification"):
        await service.reject(created.scheme_code, Principal.from_user(verifier))

    assert await _history_actions(db, created.id) == ["created", "verified"]


async def test_review_requires_verifier_role(db, creator, distributors):
    service = SchemeService(db)
    created = await service.create(Principal.from_user(creator), _payload(distributors))

    with pytest.raises(ForbiddenError):
        await service.verify(created.scheme_code, Principal.from_user(creator))


async def test_update_by_owner_appends_modified(db, creator, distributors):
    service = SchemeService(db)
    created = await service.create(Principal.from_user(creator), _payload(distributors))

    update = SchemeUpdate.model_validate({"endDate": "2026-05-15", "notes": "Extended"})
    scheme = await service.update(created.id, Principal.from_user(creator), update)

    # No display offset on update
    assert scheme.end_date == date(2026, 5, 15)
    assert scheme.start_date == date(2026, 4, 1)
    assert [h.action for h in scheme.history] == ["created", "modified"]
    assert scheme.history[-1].notes == "Extended"


async def test_update_may_overwrite_status(db, creator, admin, distributors):
    service = SchemeService(db)
    created = await service.create(Principal.from_user(creator), _payload(distributors))

    scheme = await service.update(
        created.id, Principal.from_user(admin), SchemeUpdate.model_validate({"status": "Active"})
    )

    assert scheme.status == SchemeStatus.ACTIVE.value
    assert scheme.history[-1].action == "modified"
    assert scheme.history[-1].notes == "Scheme updated"


async def test_update_by_other_user_is_forbidden_and_leaves_record(db, creator, make_user, distributors):
    other = await make_user(UserRole.CREATOR, email="other@example.com")
    service = SchemeService(db)
    created = await service.create(Principal.from_user(creator), _payload(distributors))

    with pytest.raises(ForbiddenError):
        await service.update(
            created.id, Principal.from_user(other), SchemeUpdate.model_validate({"status": "Verified"})
        )

    scheme = await service.get_by_code(created.scheme_code)
    assert scheme.status == SchemeStatus.PENDING_VERIFICATION.value
    assert await _history_actions(db, scheme.id) == ["created"]


async def test_update_unknown_scheme(db, admin):
    with pytest.raises(NotFoundError):
        await SchemeService(db).update(uuid.uuid4(), Principal.from_user(admin), SchemeUpdate())


async def test_update_distributor_type_needs_distributors(db, creator, distributors):
    service = SchemeService(db)
    created = await service.create(Principal.from_user(creator), _payload(distributors))

    with pytest.raises(ValidationError, match="distributors"):
        await service.update(
            created.id, Principal.from_user(creator), SchemeUpdate.model_validate({"distributorType": "group"})
        )


async def test_list_paginates_and_filters(db, creator, verifier, distributors):
    service = SchemeService(db)
    codes = []
    for index in range(3):
        scheme = await service.create(
            Principal.from_user(creator), _payload(distributors, schemeCode=f"SCH-LIST-{index}")
        )
        codes.append(scheme.scheme_code)
    await service.verify(codes[0], Principal.from_user(verifier))

    schemes, total, pagination = await service.get_schemes(page=1, limit=2)
    assert total == 3
    assert len(schemes) == 2
    assert pagination.next is not None and pagination.next.page == 2
    assert pagination.prev is None

    schemes, total, _ = await service.get_schemes([("status", "Verified")])
    assert total == 1
    assert schemes[0].scheme_code == codes[0]

    schemes, _, _ = await service.get_schemes(sort="scheme_code")
    assert [s.scheme_code for s in schemes] == sorted(codes)


async def test_list_rejects_unknown_filter(db):
    with pytest.raises(ValidationError, match="not supported"):
        await SchemeService(db).get_schemes([("password", "x")])


async def test_delete_removes_scheme_and_history(db, creator, admin, distributors):
    service = SchemeService(db)
    created = await service.create(Principal.from_user(creator), _payload(distributors))

    await service.delete(created.scheme_code, Principal.from_user(admin))

    assert (await db.execute(select(func.count(Scheme.id)))).scalar() == 0
    assert (await db.execute(select(func.count(SchemeHistory.id)))).scalar() == 0
    with pytest.raises(NotFoundError):
        await service.delete(created.scheme_code, Principal.from_user(admin))


async def test_delete_requires_admin(db, creator, distributors):
    service = SchemeService(db)
    created = await service.create(Principal.from_user(creator), _payload(distributors))

    with pytest.raises(ForbiddenError):
        await service.delete(created.scheme_code, Principal.from_user(creator))


async def test_concurrent_review_conflict_in_strict_mode(db, creator, verifier, distributors, monkeypatch):
    monkeypatch.setattr(settings, "SCHEME_STRICT_TRANSITIONS", True)
    service = SchemeService(db)
    created = await service.create(Principal.from_user(creator), _payload(distributors))

    # Another reviewer wins between this reviewer's read and write
    async def stale_get_by_code(scheme_code):
        scheme = await SchemeService.get_by_code(service, scheme_code)
        await db.execute(
            Scheme.__table__.update().where(Scheme.id == scheme.id).values(status="Rejected")
        )
        return scheme

    monkeypatch.setattr(service, "get_by_code", stale_get_by_code)
    with pytest.raises(ConflictError):
        await service.verify(created.scheme_code, Principal.from_user(verifier))
