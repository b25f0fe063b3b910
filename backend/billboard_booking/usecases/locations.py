from ..domain.errors import AlreadyExistsError, InvalidInputError, NotFoundError
from ..domain.repositories import LocationRepository
from ..models import Location
from ..utils.time import utc_now_naive


async def create_location(loc_repo: LocationRepository, *, name: str, active: bool = True) -> Location:
    name = name.strip()
    if not name:
        raise InvalidInputError("location name is required")
    if await loc_repo.get_by_name(name) is not None:
        raise AlreadyExistsError(f"location {name!r} already exists")
    return await loc_repo.create(name=name, active=active)


async def get_location(loc_repo: LocationRepository, *, name: str) -> Location:
    location = await loc_repo.get_by_name(name)
    if location is None:
        raise NotFoundError("location not found")
    return location


async def list_locations(loc_repo: LocationRepository, *, active: bool | None = None) -> list[Location]:
    return await loc_repo.list(active=active)


async def set_location_active(loc_repo: LocationRepository, *, name: str, active: bool) -> tuple[Location, bool]:
    """Toggle whether a location takes new bookings; existing reservations are left as they are.

    Returns the location and its previous flag.
    """
    location = await loc_repo.lock_by_name(name)
    if location is None:
        raise NotFoundError("location not found")
    previous = location.active
    if previous != active:
        location.active = active
        location.updated_at = utc_now_naive()
        location = await loc_repo.save(location)
    return location, previous
