from datetime import datetime
from typing import Any, cast

import pytest
from billboard_booking.domain.errors import AlreadyExistsError, NotFoundError
from billboard_booking.models import Location
from billboard_booking.routers import locations as router
from billboard_booking.schemas import LocationCreate, LocationUpdate
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession


class DummySession:
    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        return self


def _session() -> AsyncSession:
    return cast(AsyncSession, DummySession())


def _location(name: str = "Station C", active: bool = True) -> Location:
    now = datetime(2025, 12, 1, 8)
    return Location(id=3, name=name, active=active, created_at=now, updated_at=now)


@pytest.fixture
def audit_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(router, "SqlAlchemyLocationRepository", lambda s: s)  # type: ignore[assignment]
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))
    return calls


@pytest.mark.asyncio
async def test_create_location_audits(monkeypatch: pytest.MonkeyPatch, audit_calls) -> None:
    async def fake_create(*args: object, **kwargs: Any) -> Location:
        return _location(kwargs["name"])

    monkeypatch.setattr(router.location_usecase, "create_location", fake_create)

    result = await router.create_location(payload=LocationCreate(name="Station C"), session=_session(), user_id=7)
    assert result.name == "Station C"
    assert audit_calls[0]["action"] == "location.created"
    assert audit_calls[0]["location"] == "Station C"


@pytest.mark.asyncio
async def test_duplicate_location_is_409(monkeypatch: pytest.MonkeyPatch, audit_calls) -> None:
    async def fake_create(*args: object, **kwargs: object) -> Location:
        raise AlreadyExistsError("location 'Station A' already exists")

    monkeypatch.setattr(router.location_usecase, "create_location", fake_create)

    with pytest.raises(HTTPException) as excinfo:
        await router.create_location(payload=LocationCreate(name="Station A"), session=_session(), user_id=7)
    assert excinfo.value.status_code == 409
    assert audit_calls == []


@pytest.mark.asyncio
async def test_deactivate_audits_only_on_change(monkeypatch: pytest.MonkeyPatch, audit_calls) -> None:
    previous_flags = iter([True, False])

    async def fake_set_active(*args: object, **kwargs: Any) -> tuple[Location, bool]:
        assert kwargs["name"] == "Station C"
        return _location(active=kwargs["active"]), next(previous_flags)

    monkeypatch.setattr(router.location_usecase, "set_location_active", fake_set_active)

    response = await router.deactivate_location(name=" Station C ", session=_session(), user_id=7)
    assert response.status_code == 204
    await router.deactivate_location(name="Station C", session=_session(), user_id=7)

    assert len(audit_calls) == 1
    assert audit_calls[0]["action"] == "location.updated"
    assert audit_calls[0]["extra"] == {"active": False}


@pytest.mark.asyncio
async def test_reactivate_unknown_location_is_404(monkeypatch: pytest.MonkeyPatch, audit_calls) -> None:
    async def fake_set_active(*args: object, **kwargs: object) -> tuple[Location, bool]:
        raise NotFoundError("location not found")

    monkeypatch.setattr(router.location_usecase, "set_location_active", fake_set_active)

    with pytest.raises(HTTPException) as excinfo:
        await router.update_location(
            payload=LocationUpdate(active=True), name="Nowhere", session=_session(), user_id=7
        )
    assert excinfo.value.status_code == 404
