import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.extra import Extra
from app.models.houseboat import Boat, HouseboatModel
from app.models.tariff import ModelPrice, Tariff
from app.schemas.catalog import BoatCreate, ExtraCreate, ModelCreate, ModelPriceIn, TariffCreate
from app.services.audit_service import log_audit
from app.services.errors import ConflictError, NotFoundError


def create_model(db: Session, data: ModelCreate, *, actor: str) -> HouseboatModel:
    if data.maximumCapacity < data.optimalCapacity:
        raise ValueError("maximum capacity cannot be below optimal capacity")
    m = HouseboatModel(
        id=str(uuid.uuid4()),
        name=data.name,
        slug=data.slug.lower(),
        optimal_capacity=data.optimalCapacity,
        maximum_capacity=data.maximumCapacity,
    )
    db.add(m)
    log_audit(db, actor, "catalog.model_created", "houseboat_model", m.id, {"slug": m.slug})
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"slug '{data.slug}' already exists")
    return m


def create_boat(db: Session, data: BoatCreate, *, actor: str) -> Boat:
    if not db.get(HouseboatModel, data.modelId):
        raise NotFoundError("Houseboat model not found")
    b = Boat(id=str(uuid.uuid4()), name=data.name, model_id=data.modelId)
    db.add(b)
    log_audit(db, actor, "catalog.boat_created", "boat", b.id, {"model_id": data.modelId})
    db.commit()
    return b


def create_tariff(db: Session, data: TariffCreate, *, actor: str) -> Tariff:
    t = Tariff(id=str(uuid.uuid4()), name=data.name, periods=[p.model_dump() for p in data.periods])
    db.add(t)
    log_audit(db, actor, "catalog.tariff_created", "tariff", t.id, {"name": t.name})
    db.commit()
    return t


def set_model_price(db: Session, data: ModelPriceIn, *, actor: str) -> ModelPrice:
    """Upsert the nightly rates of one model in one tariff season."""
    if not db.get(HouseboatModel, data.modelId):
        raise NotFoundError("Houseboat model not found")
    if not db.get(Tariff, data.tariffId):
        raise NotFoundError("Tariff not found")
    row = db.query(ModelPrice).filter_by(model_id=data.modelId, tariff_id=data.tariffId).first()
    if not row:
        row = ModelPrice(id=str(uuid.uuid4()), model_id=data.modelId, tariff_id=data.tariffId)
        db.add(row)
    row.weekday_price = data.weekday
    row.weekend_price = data.weekend
    log_audit(db, actor, "catalog.price_set", "model_price", row.id, data.model_dump(mode="json"))
    db.commit()
    return row


def create_extra(db: Session, data: ExtraCreate, *, actor: str) -> Extra:
    e = Extra(id=str(uuid.uuid4()), name=data.name, price=data.price, price_type=data.priceType, active=data.active)
    db.add(e)
    log_audit(db, actor, "catalog.extra_created", "extra", e.id, {"name": e.name})
    db.commit()
    return e
