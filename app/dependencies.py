from fastapi import HTTPException, Request, status

from app.services.errors import (
    InvalidTransition,
    OrderNotFound,
    PermissionDenied,
    PurchaseError,
    StorageError,
    ValidationFailed,
)

ERROR_STATUS = {
    PermissionDenied: status.HTTP_403_FORBIDDEN,
    ValidationFailed: status.HTTP_400_BAD_REQUEST,
    InvalidTransition: status.HTTP_409_CONFLICT,
    OrderNotFound: status.HTTP_404_NOT_FOUND,
    StorageError: status.HTTP_502_BAD_GATEWAY,
}


def get_client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get('x-forwarded-for')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    if request.client:
        return request.client.host
    return None


def http_error(exc: PurchaseError) -> HTTPException:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
