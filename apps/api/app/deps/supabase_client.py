from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from app.deps.deps import get_supabase


def require_bearer_token(authorization: Optional[str] = Header(None)) -> str:
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
        )
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format",
        )
    return token.strip()


def get_current_user_id(
    user_token: str = Depends(require_bearer_token), client=Depends(get_supabase)
) -> str:
    """Resolve the current user id (UUID) from GoTrue using the user's token."""
    try:
        resp = client.auth.get_user(user_token)
        user = getattr(resp, "user", None) or getattr(resp, "data", None)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
            )
        user_id = getattr(user, "id", None) or user.get("id")
        if not user_id:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user in token"
            )
        return user_id
    except HTTPException:
        raise
    except Exception as exc:
        # GoTrue failures surface as auth errors
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Failed to resolve user: {exc}",
        )
