from datetime import timedelta
from pathlib import Path
from typing import AsyncIterator

import pytest
import pytest_asyncio
from billboard_booking.config import get_settings
from billboard_booking.deps import get_session
from billboard_booking.domain.status import ReservationStatus
from billboard_booking.models import Base, Location, Reservation, User
from billboard_booking.routers import locations, reservations, status
from billboard_booking.utils.auth import create_access_token
from billboard_booking.utils.time import utc_now_naive
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

OWNER_ID = 1


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    monkeypatch.setenv("AUTH_SECRET", "testsecret")
    get_settings.cache_clear()

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'routes.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    now = utc_now_naive()
    async with factory() as session, session.begin():
        session.add(User(id=OWNER_ID, email="owner@example.com", name="Owner", role="user", created_at=now, updated_at=now))
        session.add(Location(name="Station A", active=True, created_at=now, updated_at=now))
        session.add(
            Reservation(
                id=5,
                location_name="Station A",
                owner_id=OWNER_ID,
                advertiser_name="Acme",
                customer_name="Jane",
                starts_at=now + timedelta(days=10),
                ends_at=now + timedelta(days=12),
                status=ReservationStatus.WAITING,
                created_at=now,
                updated_at=now,
            )
        )
    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncClient]:
    app = FastAPI()

    async def override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.include_router(locations.router)
    app.include_router(reservations.router)
    app.include_router(status.router)

    token = create_access_token(user_id=OWNER_ID, secret="testsecret")
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers={"Authorization": f"Bearer {token}"}
    ) as ac:
        yield ac


@pytest.mark.asyncio
async def test_transition_complete_and_delete_after_auth_lookup(client: AsyncClient) -> None:
    res = await client.patch("/status/reservations/5/status", json={"status": "ACTIVE"})
    assert res.status_code == 200, res.text
    assert (res.json()["old_status"], res.json()["new_status"]) == ("WAITING", "ACTIVE")

    res = await client.patch("/status/reservations/5/complete")
    assert res.status_code == 200, res.text
    assert res.json()["new_status"] == "COMPLETED"

    res = await client.delete("/reservations/5")
    assert res.status_code == 204, res.text
    res = await client.get("/reservations/5")
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_auto_update_commits(client: AsyncClient, session_factory: async_sessionmaker[AsyncSession]) -> None:
    now = utc_now_naive()
    async with session_factory() as session, session.begin():
        session.add(
            Reservation(
                id=6,
                location_name="Station A",
                owner_id=OWNER_ID,
                advertiser_name="Acme",
                customer_name="Jane",
                starts_at=now - timedelta(hours=1),
                ends_at=now + timedelta(days=3),
                status=ReservationStatus.WAITING,
                created_at=now,
                updated_at=now,
            )
        )

    res = await client.post("/status/auto-update")
    assert res.status_code == 200, res.text
    assert res.json() == {"activated_count": 1, "ending_soon_count": 0}

    async with session_factory() as session:
        assert await session.scalar(select(Reservation.status).where(Reservation.id == 6)) == ReservationStatus.ACTIVE


@pytest.mark.asyncio
async def test_new_location_takes_bookings_until_deactivated(client: AsyncClient) -> None:
    res = await client.post("/locations", json={"name": "Station C"})
    assert res.status_code == 201, res.text
    res = await client.post("/locations", json={"name": "Station C"})
    assert res.status_code == 409

    booking = {
        "advertiser_name": "Acme",
        "customer_name": "Jane",
        "location": "Station C",
        "starts_at": "2030-01-01T08:00:00+00:00",
        "ends_at": "2030-01-01T12:00:00+00:00",
    }
    res = await client.post("/reservations", json=booking)
    assert res.status_code == 201, res.text
    created_id = res.json()["reservation_id"]

    res = await client.post("/reservations", json={**booking, "starts_at": "2030-01-01T10:00:00+00:00"})
    assert res.status_code == 409
    assert res.json()["detail"]["conflicts"][0]["id"] == created_id

    res = await client.patch(f"/reservations/{created_id}", json={"location": " Station A "})
    assert res.status_code == 200, res.text
    assert res.json()["location"] == "Station A"

    res = await client.delete("/locations/Station C")
    assert res.status_code == 204
    res = await client.get("/locations", params={"active": "false"})
    assert [loc["name"] for loc in res.json()] == ["Station C"]

    res = await client.post("/reservations", json={**booking, "starts_at": "2030-02-01T08:00:00+00:00", "ends_at": "2030-02-01T09:00:00+00:00"})
    assert res.status_code == 400
