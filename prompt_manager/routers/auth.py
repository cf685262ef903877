from fastapi import APIRouter, HTTPException, Depends, Request
from fastapi.security import OAuth2PasswordBearer
from typing import Optional
from datetime import datetime, timedelta
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from prompt_manager.config import settings
from prompt_manager.database import get_db
from prompt_manager.services.identity_service import CurrentUser, IdentityProvider

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token", auto_error=False)

AUTH_COOKIE = "auth_token"


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Issue a session token for ``user_id``. Login itself happens upstream."""
    expire = datetime.utcnow() + (expires_delta or timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS))
    to_encode = {
        "sub": str(user_id),
        "exp": expire,
        "iat": datetime.utcnow(),
        "type": "access_token",
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def get_token(request: Request, bearer: Optional[str] = Depends(oauth2_scheme)) -> Optional[str]:
    """Bearer header first, then the HTTP-only cookie."""
    return bearer or request.cookies.get(AUTH_COOKIE)


def decode_user_id(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    return payload.get("sub")


async def get_current_user(
    token: Optional[str] = Depends(get_token),
    db: Session = Depends(get_db),
) -> CurrentUser:
    """Resolve the request's user (required - raises 401 if not authenticated)."""
    user_id = decode_user_id(token)
    user = await IdentityProvider(db).get_user(user_id) if user_id else None
    if user is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


@router.get("/me", response_model=CurrentUser)
async def get_current_user_info(current_user: CurrentUser = Depends(get_current_user)):
    """Get current user id and metadata"""
    return current_user
