import logging
import uuid

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.security import hash_password
from app.models.user import User
from app.schemas.user import UserCreate, UserUpdate
from app.services.audit_service import log_audit
from app.services.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


def list_users(db: Session, *, role: str | None = None, q: str | None = None) -> list[User]:
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if q:
        ql = f"%{q.lower()}%"
        query = query.filter(func.lower(User.email).like(ql) | func.lower(User.full_name).like(ql))
    return query.order_by(User.created_at.desc()).all()


def create_user(db: Session, data: UserCreate, *, actor: str) -> User:
    email = str(data.email).strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise ConflictError("email already exists")
    u = User(
        id=str(uuid.uuid4()),
        email=email,
        full_name=data.fullName,
        role=data.role,
        password_hash=hash_password(data.password),
        is_active=True,
    )
    db.add(u)
    log_audit(db, actor, "user.created", "user", u.id, {"email": email, "role": u.role})
    db.commit()
    logger.info("staff account %s created with role %s", email, u.role)
    return u


def update_user(db: Session, user_id: str, patch: UserUpdate, *, actor: str) -> User:
    """Change name, role, active flag or password of a staff account."""
    u = db.get(User, user_id)
    if not u:
        raise NotFoundError("User not found")
    fields = patch.model_dump(exclude_unset=True)
    if u.id == actor and (fields.get("isActive") is False or (fields.get("role") or u.role) != u.role):
        raise ValueError("you cannot deactivate or demote your own account")
    if fields.get("fullName") is not None:
        u.full_name = fields["fullName"]
    if fields.get("role"):
        u.role = fields["role"]
    if fields.get("isActive") is not None:
        u.is_active = fields["isActive"]
    if fields.get("password"):
        u.password_hash = hash_password(fields["password"])
    log_audit(db, actor, "user.updated", "user", u.id, {
        "role": u.role,
        "isActive": u.is_active,
        "passwordReset": bool(fields.get("password")),
    })
    db.commit()
    return u
