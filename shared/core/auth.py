from uuid import UUID
from fastapi import Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from shared.models.owners import Owner
from shared.utils.app_status_code import AppStatusCode
from shared.utils.enums import UserAccountType
from shared.core.config import settings
from shared.helpers.json_response_helper import error_response
from shared.core.schemas import UserToken
from shared.core.database import get_billing_db as get_db

security = HTTPBearer()


def create_access_token(data: dict) -> str:
    return jwt.encode(data.copy(), settings.JWT_SECRET,
                      algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> UserToken:
    """Verify and decode a JWT token."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET,
                             algorithms=[settings.JWT_ALGORITHM])
        user = UserToken(**payload)
    except (JWTError, ValueError):
        return error_response(
            message="Invalid or expired token",
            status_code=AppStatusCode.UNAUTHORIZED,
            http_status=status.HTTP_401_UNAUTHORIZED
        )

    if not user.user_id:
        return error_response(
            message="Invalid token structure",
            status_code=AppStatusCode.UNAUTHORIZED,
            http_status=status.HTTP_401_UNAUTHORIZED
        )
    return user


def validate_current_token(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> UserToken:
    user_data = verify_token(credentials.credentials)

    try:
        owner_id = UUID(user_data.user_id)
    except ValueError:
        return error_response(
            message="Invalid token structure",
            status_code=AppStatusCode.UNAUTHORIZED,
            http_status=status.HTTP_401_UNAUTHORIZED
        )

    owner = db.query(Owner).filter(Owner.id == owner_id).first()

    if not owner:
        return error_response(
            message="User not found",
            status_code=AppStatusCode.NOT_FOUND,
            http_status=404
        )

    if owner.status.lower() != "active":
        return error_response(
            message="User is not active. Access denied",
            status_code=AppStatusCode.FORBIDDEN,
            http_status=403
        )

    user_data.status = owner.status
    return user_data


def allow_super_admin(current_user: UserToken = Depends(validate_current_token)):
    if current_user.account_type.lower() != UserAccountType.SUPER_ADMIN.value:
        return error_response(
            message="Access forbidden: Super admins only",
            status_code=AppStatusCode.FORBIDDEN,
            http_status=403
        )

    return current_user
