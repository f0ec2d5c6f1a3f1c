import logging
import os
import uuid
from decimal import Decimal

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError

from app.db.session import SessionLocal
from app.core.security import hash_password
from app.models.user import User
from app.models.houseboat import HouseboatModel, Boat
from app.models.tariff import Tariff, ModelPrice
from app.models.extra import Extra

logger = logging.getLogger(__name__)


def ensure_user(db: Session, email: str, password: str, role: str, name: str):
    u = db.query(User).filter(User.email == email).first()
    if u:
        return
    db.add(
        User(
            id=str(uuid.uuid4()),
            email=email,
            full_name=name,
            role=role,
            password_hash=hash_password(password),
            is_active=True,
        )
    )
    db.commit()


# (name, slug, optimal, maximum, units, low weekday/weekend, high weekday/weekend)
MODELS = [
    ("Nomad S", "nomad-s", 2, 4, 3, ("120", "150"), ("180", "220")),
    ("Nomad M", "nomad-m", 4, 6, 2, ("160", "195"), ("230", "280")),
]

TARIFFS = [
    ("Low season", [{"start": "10-01", "end": "04-30"}]),
    ("High season", [{"start": "05-01", "end": "09-30"}]),
]

EXTRAS = [
    ("Late check-out", "35", "per_stay"),
    ("Stand-up paddle", "20", "per_day"),
    ("Breakfast basket", "12", "per_person"),
]


def ensure_catalog(db: Session):
    if db.query(HouseboatModel).first():
        return
    tariffs = []
    for name, periods in TARIFFS:
        t = Tariff(id=str(uuid.uuid4()), name=name, periods=periods)
        db.add(t)
        tariffs.append(t)
    for name, slug, optimal, maximum, units, low, high in MODELS:
        m = HouseboatModel(id=str(uuid.uuid4()), name=name, slug=slug, optimal_capacity=optimal, maximum_capacity=maximum)
        db.add(m)
        for i in range(units):
            db.add(Boat(id=str(uuid.uuid4()), name=f"{name} #{i + 1}", model_id=m.id))
        for tariff, (weekday, weekend) in zip(tariffs, (low, high)):
            db.add(ModelPrice(
                id=str(uuid.uuid4()),
                model_id=m.id,
                tariff_id=tariff.id,
                weekday_price=Decimal(weekday),
                weekend_price=Decimal(weekend),
            ))
    for name, price, price_type in EXTRAS:
        db.add(Extra(id=str(uuid.uuid4()), name=name, price=Decimal(price), price_type=price_type, active=True))
    db.commit()


def run(db=None):
    if db is None:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM users LIMIT 1"))
        except (ProgrammingError, OperationalError):
            db.rollback()
            logger.warning("users table not found yet; skipping seed (run alembic upgrade head)")
            return

        ensure_user(db, os.getenv("SEED_ADMIN_EMAIL", "admin@moorings.local"), os.getenv("SEED_ADMIN_PASSWORD", "admin12345"), "admin", "Admin")
        ensure_user(db, "staff@moorings.local", "staff12345", "staff", "Front desk")
        ensure_user(db, "finance@moorings.local", "finance12345", "finance", "Finance")
        ensure_catalog(db)
    finally:
        db.close()


if __name__ == "__main__":
    run()
