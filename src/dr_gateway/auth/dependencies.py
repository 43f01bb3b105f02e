"""FastAPI dependencies: get_current_user, require_admin.

The caller is identified from token claims alone; user records belong to
the user-management service and are not looked up here.

Usage in any protected router:
    @router.get("/protected")
    async def protected(user: Annotated[CurrentUser, Depends(get_current_user)]):
        ...
"""

from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from src.dr_common.enums import UserType
from src.dr_common.errors import InvalidCredentialsError, PermissionDeniedError
from src.dr_gateway.auth.jwt_handler import decode_token

# tokenUrl points at the platform auth service (used by Swagger's "Authorize" button)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserType.ADMIN


async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """Raises HTTP 401 if the token is missing, invalid, or expired."""
    try:
        payload = decode_token(token)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None

    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or not role:
        raise _CREDENTIALS_EXCEPTION
    return CurrentUser(id=str(user_id), role=str(role))


async def require_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """403 (code 1006) unless the caller carries the ADMIN role."""
    if not current_user.is_admin:
        raise PermissionDeniedError("Admin role required")
    return current_user
