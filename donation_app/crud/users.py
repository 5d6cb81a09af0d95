"""User lookups used when a donation names its acting user."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.errors import NotFoundError
from ..models.user import User


@dataclass(frozen=True)
class UserById:
    id: int


@dataclass(frozen=True)
class UserByEmail:
    email: str


UserReference = Union[UserById, UserByEmail]


def get_user(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> User | None:
    stmt = select(User).where(func.lower(User.email) == email.strip().lower())
    return db.execute(stmt).scalars().first()


def resolve_user(db: Session, ref: UserReference) -> User:
    if isinstance(ref, UserById):
        user = get_user(db, ref.id)
        if user is None:
            raise NotFoundError(f"No user with the given id: {ref.id}")
        return user
    user = get_user_by_email(db, ref.email)
    if user is None:
        raise NotFoundError(f"No user with the given email: {ref.email}")
    return user
