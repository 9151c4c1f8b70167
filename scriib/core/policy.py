"""
Authorization policy.

All "may this user do X" questions are answered here so routes and workers
never compare emails or ids inline.
"""
from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy.orm import Session

from scriib.core.errors import PermissionDenied
from scriib.db_models import Post, Profile

OWNER = "owner"
APPROVER = "approver"
GHOSTWRITER = "ghostwriter"


def can_administer(db: Session, user_id: uuid.UUID) -> bool:
    profile = db.query(Profile).filter(Profile.user_id == user_id).first()
    return bool(profile and profile.is_admin)


def require_administrator(db: Session, user_id: uuid.UUID) -> None:
    if not can_administer(db, user_id):
        raise PermissionDenied("Forbidden - Admin access required")


def post_role(post: Post, user_id: uuid.UUID) -> Optional[str]:
    if post.user_id == user_id:
        return OWNER
    if post.approver_id and post.approver_id == user_id:
        return APPROVER
    if post.ghostwriter_id and post.ghostwriter_id == user_id:
        return GHOSTWRITER
    return None


def require_post_actor(post: Post, user_id: uuid.UUID, action: str, roles: tuple = (OWNER, APPROVER, GHOSTWRITER)) -> str:
    role = post_role(post, user_id)
    if role is None or role not in roles:
        raise PermissionDenied(f"You do not have permission to {action} this post")
    return role
