from datetime import datetime, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.quotes import service as quotes_service
from app.core.models import AuditLog, PaymentSchedule, QuoteItem


def _utc(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


def _quote_body(student, pack, **overrides):
    body = {
        "student_id": str(student.id),
        "packs": [{"pack_id": str(pack.id)}],
        "payment_schedule": [
            {"due_date": "2025-01-15T00:00:00Z", "amount": 100000, "currency": "EUR"},
            {"due_date": "2025-03-15T00:00:00Z", "amount": 200000, "currency": "EUR"},
        ],
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_create_quote(
    client: AsyncClient, db_session: AsyncSession, admin_headers, student, pack
) -> None:
    response = await client.post("/api/v1/admin/quotes", json=_quote_body(student, pack), headers=admin_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "DRAFT"
    assert data["total_amount"] == 300000
    assert data["currency"] == "EUR"
    assert data["quote_number"].startswith("QUOTE-")
    assert data["quote_number"].endswith("-001")
    assert [i["pack_name"] for i in data["items"]] == ["Premium"]
    assert [s["amount"] for s in data["payment_schedules"]] == [100000, 200000]
    assert {s["status"] for s in data["payment_schedules"]} == {"PENDING"}

    schedules = (await db_session.execute(select(PaymentSchedule))).scalars().all()
    assert {s.student_id for s in schedules} == {student.id}

    response = await client.post("/api/v1/admin/quotes", json=_quote_body(student, pack), headers=admin_headers)
    assert response.json()["quote_number"].endswith("-002")


@pytest.mark.asyncio
async def test_create_quote_with_custom_price(
    client: AsyncClient, db_session: AsyncSession, admin_headers, student, pack
) -> None:
    body = _quote_body(
        student,
        pack,
        packs=[{"pack_id": str(pack.id), "custom_price": 250000}],
        payment_schedule=[{"due_date": "2025-01-15T00:00:00Z", "amount": 250000, "currency": "EUR"}],
    )
    response = await client.post("/api/v1/admin/quotes", json=body, headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["total_amount"] == 250000

    item = (await db_session.execute(select(QuoteItem))).scalar_one()
    assert item.amount == 250000


@pytest.mark.asyncio
async def test_create_quote_rejects_inconsistent_plans(client: AsyncClient, admin_headers, student, pack) -> None:
    mismatched_total = _quote_body(
        student,
        pack,
        payment_schedule=[{"due_date": "2025-01-15T00:00:00Z", "amount": 100000, "currency": "EUR"}],
    )
    response = await client.post("/api/v1/admin/quotes", json=mismatched_total, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Payment schedule total (100000) does not match quote total (300000)"

    mixed_currency = _quote_body(
        student,
        pack,
        payment_schedule=[
            {"due_date": "2025-01-15T00:00:00Z", "amount": 100000, "currency": "EUR"},
            {"due_date": "2025-03-15T00:00:00Z", "amount": 200000, "currency": "MAD"},
        ],
    )
    response = await client.post("/api/v1/admin/quotes", json=mixed_currency, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "All payment schedules must use the same currency"

    response = await client.post(
        "/api/v1/admin/quotes", json=_quote_body(student, pack, packs=[]), headers=admin_headers
    )
    assert response.status_code == 400

    unknown_pack = _quote_body(student, pack, packs=[{"pack_id": str(student.id)}])
    response = await client.post("/api/v1/admin/quotes", json=unknown_pack, headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_send_quote(
    client: AsyncClient, db_session: AsyncSession, admin_headers, student, make_quote
) -> None:
    quote = await make_quote(student_id=student.id)

    response = await client.post(f"/api/v1/admin/quotes/{quote.id}/send", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "SENT"
    assert response.json()["sent_at"] is not None

    response = await client.post(f"/api/v1/admin/quotes/{quote.id}/send", headers=admin_headers)
    assert response.status_code == 403
    assert "Only DRAFT quotes can be sent" in response.json()["detail"]

    actions = (await db_session.execute(select(AuditLog.action))).scalars().all()
    assert actions == ["SEND_QUOTE"]


@pytest.mark.asyncio
async def test_validate_quote_activates_schedules(
    db_session: AsyncSession, admin_user, student, make_quote, make_schedule
) -> None:
    quote = await make_quote(student_id=student.id, status="SENT")
    past = await make_schedule(amount=100000, due_date=_utc(2024, 1, 1), student_id=student.id, quote_id=quote.id)
    future = await make_schedule(amount=200000, due_date=_utc(2024, 12, 1), student_id=student.id, quote_id=quote.id)

    result = await quotes_service.validate_quote(db_session, quote.id, admin_user.id, now=_utc(2024, 6, 1))

    assert result.status == "VALIDATED"
    assert result.validated_at is not None
    assert [s.status for s in result.payment_schedules] == ["OVERDUE", "PENDING"]
    await db_session.refresh(past)
    await db_session.refresh(future)
    assert (past.status, future.status) == ("OVERDUE", "PENDING")

    audit = (await db_session.execute(select(AuditLog).where(AuditLog.action == "VALIDATE_QUOTE"))).scalar_one()
    assert audit.resource_id == str(quote.id)


@pytest.mark.asyncio
async def test_validate_quote_keeps_paid_amounts_reflected_in_status(
    db_session: AsyncSession, admin_user, student, make_quote, make_schedule
) -> None:
    quote = await make_quote(student_id=student.id, status="SENT")
    paid = await make_schedule(
        amount=100000, due_date=_utc(2099, 1, 1), paid_amount=100000, status="PAID",
        student_id=student.id, quote_id=quote.id,
    )
    partial = await make_schedule(
        amount=200000, due_date=_utc(2024, 1, 1), paid_amount=50000, status="PARTIAL",
        student_id=student.id, quote_id=quote.id,
    )

    result = await quotes_service.validate_quote(db_session, quote.id, admin_user.id, now=_utc(2024, 6, 1))

    assert [s.status for s in result.payment_schedules] == ["PARTIAL", "PAID"]
    await db_session.refresh(paid)
    await db_session.refresh(partial)
    assert (paid.status, paid.paid_amount) == ("PAID", 100000)
    assert (partial.status, partial.paid_amount) == ("PARTIAL", 50000)


@pytest.mark.asyncio
async def test_validate_quote_rolls_back_when_activation_fails(
    client: AsyncClient, db_session: AsyncSession, admin_headers, student, make_quote, make_schedule, monkeypatch
) -> None:
    quote = await make_quote(student_id=student.id, status="SENT")
    schedule = await make_schedule(amount=300000, due_date=_utc(2024, 1, 1), student_id=student.id, quote_id=quote.id)

    real_activate = quotes_service.activate_schedules

    async def failing_activate(db, quote_id, now):
        await real_activate(db, quote_id, now)
        raise RuntimeError("schedule store unavailable")

    monkeypatch.setattr(quotes_service, "activate_schedules", failing_activate)

    response = await client.post(f"/api/v1/admin/quotes/{quote.id}/validate", headers=admin_headers)
    assert response.status_code == 500
    assert response.json()["detail"] == "Internal server error"

    await db_session.refresh(quote)
    await db_session.refresh(schedule)
    assert quote.status == "SENT"
    assert quote.validated_at is None
    assert schedule.status == "PENDING"


@pytest.mark.asyncio
async def test_validate_draft_quote_is_refused(
    client: AsyncClient, db_session: AsyncSession, admin_headers, student, make_quote, make_schedule
) -> None:
    quote = await make_quote(student_id=student.id, status="DRAFT")
    schedule = await make_schedule(amount=300000, due_date=_utc(2024, 1, 1), student_id=student.id, quote_id=quote.id)

    response = await client.post(f"/api/v1/admin/quotes/{quote.id}/validate", headers=admin_headers)
    assert response.status_code == 403
    assert response.json()["detail"] == (
        "Cannot validate quote with status DRAFT. Only SENT quotes can be validated."
    )

    await db_session.refresh(quote)
    await db_session.refresh(schedule)
    assert quote.status == "DRAFT"
    assert schedule.status == "PENDING"


@pytest.mark.asyncio
async def test_list_and_get_quotes(client: AsyncClient, admin_headers, student, make_quote) -> None:
    draft = await make_quote(student_id=student.id)
    await make_quote(student_id=student.id, status="SENT")

    response = await client.get("/api/v1/admin/quotes", params={"status": "SENT"}, headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["quotes"][0]["status"] == "SENT"

    response = await client.get(f"/api/v1/admin/quotes/{draft.id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["quote_number"] == draft.quote_number
    assert response.json()["items"] == []

    response = await client.get(f"/api/v1/admin/quotes/{student.id}", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_send_quote_unexpected_error(
    client: AsyncClient, admin_headers, student, make_quote, monkeypatch
) -> None:
    quote = await make_quote(student_id=student.id)

    async def broken_send(*args, **kwargs):
        raise RuntimeError("mailer unavailable")

    monkeypatch.setattr(quotes_service, "send_quote", broken_send)

    response = await client.post(f"/api/v1/admin/quotes/{quote.id}/send", headers=admin_headers)
    assert response.status_code == 500
    assert response.json()["detail"] == "Internal server error"
