"""
Identidad del usuario que llama.

Los tokens los emite el proveedor de identidad; aquí solo se verifican y se
extrae el id entero del claim ``sub``, que se guarda como ``created_by``.
"""
from typing import Annotated
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt

from billdesk.core.config import settings

# Security scheme
security = HTTPBearer()


def get_current_user_id(credentials: HTTPAuthorizationCredentials = Depends(security)) -> int:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.APP_SECRET_STRING,
            algorithms=[settings.ALGORITHM]
        )
        user_id = payload.get("sub")
        if user_id is None:
            raise credentials_exception
        return int(user_id)
    except (jwt.PyJWTError, ValueError, TypeError):
        raise credentials_exception


CurrentUserId = Annotated[int, Depends(get_current_user_id)]
