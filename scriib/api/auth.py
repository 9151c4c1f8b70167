import hmac
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from sqlalchemy.orm import Session

from scriib.core import identity, policy
from scriib.core.errors import AuthenticationError, NotFound
from scriib.db import get_db
from scriib.settings import settings

COOKIE_NAME = settings.session_cookie_name

serializer = URLSafeTimedSerializer(settings.session_secret, salt="scriib-identity")

def sign_identity(external_id: str) -> str:
    # issued by the identity provider side; payload is the provider's subject
    return serializer.dumps({"sub": external_id})

def verify_identity(token: str, max_age_seconds: Optional[int] = None) -> Optional[dict]:
    try:
        return serializer.loads(token, max_age=max_age_seconds or settings.identity_token_max_age)
    except (BadSignature, SignatureExpired):
        return None

def _bearer(value: Optional[str]) -> Optional[str]:
    if value and value.lower().startswith("bearer "):
        return value[7:].strip() or None
    return None

@dataclass
class AuthContext:
    user_id: uuid.UUID
    external_id: str
    db: Session

def current_subject(request: Request, authorization: Optional[str] = Header(default=None)) -> str:
    token = _bearer(authorization) or request.cookies.get(COOKIE_NAME)
    if not token:
        raise AuthenticationError()
    payload = verify_identity(token)
    if not payload or not payload.get("sub"):
        raise AuthenticationError()
    return payload["sub"]

def require_auth(subject: str = Depends(current_subject), db: Session = Depends(get_db)) -> AuthContext:
    user_id = identity.resolve_user_id(db, subject)
    if user_id is None:
        raise NotFound("User mapping not found")
    return AuthContext(user_id=user_id, external_id=subject, db=db)

def require_admin(ctx: AuthContext = Depends(require_auth)) -> AuthContext:
    policy.require_administrator(ctx.db, ctx.user_id)
    return ctx

def require_cron(authorization: Optional[str] = Header(default=None)) -> str:
    if not settings.cron_secret:
        if settings.is_production:
            raise AuthenticationError("Unauthorized")
        return "cron_open"

    token = _bearer(authorization) or ""
    if not hmac.compare_digest(token.encode(), settings.cron_secret.encode()):
        raise AuthenticationError("Unauthorized")
    return "cron"
