from fastapi import HTTPException, status

from ..domain.errors import (
    AlreadyCompletedError,
    AlreadyExistsError,
    ConflictError,
    DomainError,
    ForbiddenError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
)

_STATUS_CODES: dict[type[DomainError], int] = {
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
    InvalidTransitionError: status.HTTP_400_BAD_REQUEST,
    AlreadyCompletedError: status.HTTP_400_BAD_REQUEST,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    AlreadyExistsError: status.HTTP_409_CONFLICT,
}


def to_http_error(exc: DomainError) -> HTTPException:
    code = next(
        (code for kind, code in _STATUS_CODES.items() if isinstance(exc, kind)),
        status.HTTP_400_BAD_REQUEST,
    )
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=code, detail={"message": str(exc), "conflicts": exc.details()})
    return HTTPException(status_code=code, detail=str(exc))
