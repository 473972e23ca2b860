from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from coupon_engine.core.database import get_db
from coupon_engine.core.errors import storage_errors
from coupon_engine.core.settings import settings
from coupon_engine.models.profile import Profile
from coupon_engine.services.cache import TTLCache


logger = logging.getLogger(__name__)

_USERNAME_STRIP = re.compile(r"[^a-z0-9]")
_REMOTE_ROLE_CACHE = TTLCache(max_items=20000, ttl_s=60)


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str
    role: str


@dataclass(frozen=True)
class _TokenIdentity:
    user_id: str
    email: str
    username: str | None
    claims_admin: bool


def _clean(value: Any) -> str:
    return str(value or "").strip().lower()


def _normalize_username(value: Any) -> str | None:
    """Affiliate handles keep only lowercase letters and digits."""
    cleaned = _USERNAME_STRIP.sub("", _clean(value))
    return cleaned or None


def _supabase_base() -> str:
    base = (settings.supabase_url or "").strip().rstrip("/")
    if not base:
        raise HTTPException(status_code=500, detail="SUPABASE_URL is not configured")
    return base


@lru_cache(maxsize=4)
def _jwks_client(jwks_url: str):
    import jwt

    return jwt.PyJWKClient(jwks_url)


def _verify_token(token: str) -> dict[str, Any]:
    import jwt

    base = _supabase_base()
    try:
        key = _jwks_client(f"{base}/auth/v1/.well-known/jwks.json").get_signing_key_from_jwt(token).key
        return dict(
            jwt.decode(
                token,
                key,
                algorithms=["ES256", "RS256"],
                audience=settings.supabase_jwt_audience or "authenticated",
                issuer=settings.supabase_jwt_issuer or f"{base}/auth/v1",
                options={"require": ["exp", "sub"]},
            )
        )
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid bearer token")


def _identity_from_claims(claims: dict[str, Any]) -> _TokenIdentity:
    user_id = str(claims.get("sub") or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    app_meta = claims.get("app_metadata")
    user_meta = claims.get("user_metadata")
    app_meta = app_meta if isinstance(app_meta, dict) else {}
    user_meta = user_meta if isinstance(user_meta, dict) else {}
    return _TokenIdentity(
        user_id=user_id,
        email=str(claims.get("email") or "").strip(),
        username=_normalize_username(user_meta.get("username")),
        claims_admin="admin" in (_clean(app_meta.get("role")), _clean(claims.get("role"))),
    )


def _remote_profile_role(user_id: str, token: str) -> str | None:
    """Role stored on the hosted profiles table, when the API keys allow reading it."""
    import requests

    base = (settings.supabase_url or "").strip().rstrip("/")
    api_key = (settings.supabase_service_role_key or settings.supabase_anon_key or "").strip()
    if not base or not api_key:
        return None
    cached = _REMOTE_ROLE_CACHE.get(user_id)
    if cached:
        return cached

    try:
        resp = requests.get(
            f"{base}/rest/v1/profiles",
            params={"select": "role", "id": f"eq.{user_id}"},
            headers={
                "apikey": api_key,
                "authorization": f"Bearer {settings.supabase_service_role_key or token}",
                "accept": "application/json",
            },
            timeout=8,
        )
    except requests.RequestException:
        logger.warning("security.remote_role.unreachable user_id=%s", user_id)
        return None
    if resp.status_code != 200:
        logger.info("security.remote_role.status user_id=%s status=%s", user_id, resp.status_code)
        return None
    rows = resp.json()
    role = _clean(rows[0].get("role")) if isinstance(rows, list) and rows and isinstance(rows[0], dict) else ""
    if role:
        _REMOTE_ROLE_CACHE.set(user_id, role)
    return role or None


def _decide_role(
    *,
    email_is_admin: bool,
    claim_is_admin: bool,
    db_role: str | None,
    supabase_role: str | None,
) -> tuple[str, str]:
    local = _clean(db_role)
    admin_sources = (
        ("db_profile", local == "admin"),
        ("admin_emails", email_is_admin),
        ("jwt_claim", claim_is_admin),
        ("supabase_profiles", _clean(supabase_role) == "admin"),
    )
    for reason, granted in admin_sources:
        if granted:
            return "admin", reason
    if local:
        return local, "db_profile"
    return "user", "default"


def _sync_profile(db: Session, identity: _TokenIdentity, role: str) -> None:
    with storage_errors(db, "security.profile"):
        profile = db.get(Profile, identity.user_id)
        if profile is None:
            db.add(Profile(id=identity.user_id, email=identity.email, username=identity.username, role=role))
            db.commit()
            logger.info("security.profile.created user_id=%s role=%s", identity.user_id, role)
            return
        dirty = False
        if (profile.role or "") != role:
            profile.role = role
            dirty = True
        if identity.email and profile.email != identity.email:
            profile.email = identity.email
            dirty = True
        if not profile.username and identity.username:
            profile.username = identity.username
            dirty = True
        if dirty:
            db.commit()


def _bearer_token(request: Request) -> str:
    scheme, _, token = (request.headers.get("authorization") or "").partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return token


def get_current_user(request: Request, db: Session = Depends(get_db)) -> CurrentUser:
    token = _bearer_token(request)
    identity = _identity_from_claims(_verify_token(token))
    email_is_admin = bool(identity.email) and _clean(identity.email) in (settings.admin_emails or set())

    profile = db.get(Profile, identity.user_id)
    local_role = _clean(profile.role if profile else None)
    remote_role = None
    if local_role != "admin" and not (email_is_admin or identity.claims_admin):
        remote_role = _remote_profile_role(identity.user_id, token)

    role, reason = _decide_role(
        email_is_admin=email_is_admin,
        claim_is_admin=identity.claims_admin,
        db_role=local_role,
        supabase_role=remote_role,
    )
    logger.debug("security.role user_id=%s role=%s reason=%s", identity.user_id, role, reason)
    _sync_profile(db, identity, role)
    return CurrentUser(id=identity.user_id, email=identity.email, role=role)


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if _clean(user.role) != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
