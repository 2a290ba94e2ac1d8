"""
Authentication middleware.

Access tokens are issued by the external auth provider after its
email/password or magic-link sign-in; this service only verifies them.
"""

from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from intake_app.config import settings
from intake_app.errors import NotAuthenticated


security = HTTPBearer(auto_error=False)


def _not_authenticated(error: NotAuthenticated) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=error.message,
        headers={"WWW-Authenticate": "Bearer", "X-Login-Url": settings.LOGIN_URL},
    )


def decode_user_id(token: str) -> str:
    """
    Verify an access token and return its user ID.

    Args:
        token: Bearer token from the auth provider

    Returns:
        User ID from the 'sub' claim

    Raises:
        NotAuthenticated: If the token is invalid, expired or has no subject
    """
    try:
        payload = jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=["HS256"],
            audience=settings.AUTH_JWT_AUDIENCE,
            options={"verify_aud": bool(settings.AUTH_JWT_AUDIENCE)},
        )
    except JWTError as e:
        raise NotAuthenticated(f"Invalid token: {str(e)}")

    user_id = payload.get("sub")
    if not user_id:
        raise NotAuthenticated("Invalid token: missing user ID")
    return user_id


async def verify_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """
    Verify the bearer token and return the user ID.

    Args:
        request: Incoming request, used for the audit log
        credentials: HTTP authorization credentials containing the bearer token

    Returns:
        User ID extracted from the token

    Raises:
        HTTPException: 401 with the login URL if there is no valid session
    """
    try:
        if credentials is None:
            raise NotAuthenticated()
        return decode_user_id(credentials.credentials)
    except NotAuthenticated as e:
        audit_logger = getattr(request.app.state, "audit_logger", None)
        if audit_logger and credentials is not None:
            audit_logger.log_authentication_failed(
                e.message,
                ip_address=request.client.host if request.client else None
            )
        raise _not_authenticated(e)


async def get_current_user(user_id: str = Depends(verify_token)) -> str:
    """
    Get the current authenticated user.

    Args:
        user_id: User ID from verified token

    Returns:
        User ID
    """
    return user_id
