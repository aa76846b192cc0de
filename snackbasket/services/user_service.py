from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from snackbasket.models import User, UserRole
from snackbasket.security.passwords import MIN_PASSWORD_LENGTH, check_password, hash_password
from snackbasket.services.errors import NotFoundError, ValidationFailure
from snackbasket.services.time_utils import now_utc

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or '').strip().lower()


def parse_role(value: str | UserRole) -> UserRole:
    if isinstance(value, UserRole):
        return value
    try:
        return UserRole((value or '').strip().lower())
    except ValueError as exc:
        raise ValidationFailure('Role must be admin or employee') from exc


def _validate_password(password: str) -> str:
    if len(password.strip()) < MIN_PASSWORD_LENGTH:
        raise ValidationFailure(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    return password


def get_user(db: Session, user_id: int) -> User:
    user = db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        raise NotFoundError('User not found')
    return user


def get_user_by_email(db: Session, email: str) -> User | None:
    clean_email = normalize_email(email)
    if not clean_email:
        return None
    return db.execute(select(User).where(User.email == clean_email)).scalar_one_or_none()


def list_users(db: Session) -> list[User]:
    return db.execute(select(User).order_by(User.role.asc(), User.email.asc())).scalars().all()


def add_user(
    db: Session,
    *,
    email: str,
    name: str,
    role: str | UserRole = UserRole.EMPLOYEE,
    is_active: bool = True,
    password: str | None = None,
) -> User:
    clean_email = normalize_email(email)
    if not clean_email or '@' not in clean_email:
        raise ValidationFailure('A valid email is required')
    if not (name or '').strip():
        raise ValidationFailure('Name is required')
    if get_user_by_email(db, clean_email):
        raise ValidationFailure('A user with this email already exists')

    now = now_utc()
    user = User(
        email=clean_email,
        name=name.strip(),
        role=parse_role(role),
        is_active=bool(is_active),
        password_hash=hash_password(_validate_password(password)) if password else None,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    db.flush()
    logger.info('Added user %s with role %s', user.email, user.role.value)
    return user


def update_user(
    db: Session,
    *,
    user_id: int,
    name: str | None = None,
    role: str | UserRole | None = None,
    is_active: bool | None = None,
    actor_user_id: int | None = None,
) -> User:
    user = get_user(db, user_id)
    if name is not None:
        if not name.strip():
            raise ValidationFailure('Name is required')
        user.name = name.strip()
    if role is not None:
        new_role = parse_role(role)
        if actor_user_id == user.id and new_role != UserRole.ADMIN:
            raise ValidationFailure('You cannot remove your own admin role')
        user.role = new_role
    if is_active is not None:
        if actor_user_id == user.id and not is_active:
            raise ValidationFailure('You cannot deactivate your own account')
        user.is_active = bool(is_active)
    user.updated_at = now_utc()
    db.flush()
    return user


def set_user_password(db: Session, *, user_id: int, new_password: str) -> User:
    user = get_user(db, user_id)
    user.password_hash = hash_password(_validate_password(new_password))
    user.updated_at = now_utc()
    db.flush()
    return user


def delete_user(db: Session, *, user_id: int, actor_user_id: int | None = None) -> None:
    user = get_user(db, user_id)
    if actor_user_id == user.id:
        raise ValidationFailure('You cannot delete your own account')
    db.delete(user)
    db.flush()
    logger.info('Deleted user %s', user.email)


def sync_user_from_identity(db: Session, *, email: str, name: str) -> User:
    user = get_user_by_email(db, email)
    if user:
        return user
    display_name = (name or '').strip() or normalize_email(email).split('@', 1)[0]
    return add_user(db, email=email, name=display_name, role=UserRole.EMPLOYEE, is_active=True)


def authenticate(db: Session, *, email: str, password: str) -> tuple[User | None, str | None]:
    user = get_user_by_email(db, email)
    if not user:
        return None, 'UNKNOWN_EMAIL'
    if not user.is_active:
        return user, 'INACTIVE_USER'
    valid, upgraded_hash = check_password(password, user.password_hash)
    if not valid:
        return user, 'BAD_PASSWORD'
    if upgraded_hash:
        user.password_hash = upgraded_hash
        db.flush()
    return user, None
