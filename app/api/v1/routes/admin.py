from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import http_error, require_roles, require_staff
from app.models.houseboat import Boat, HouseboatModel
from app.models.tariff import ModelPrice, Tariff
from app.models.user import User
from app.schemas.catalog import BoatCreate, ExtraCreate, ModelCreate, ModelPriceIn, TariffCreate
from app.schemas.user import UserCreate, UserUpdate
from app.services import catalog_service, user_service
from app.services.errors import ServiceError

router = APIRouter(prefix="/admin", tags=["admin"])

require_admin = require_roles("admin")


def _run(fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except ServiceError as e:
        raise http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/models")
def create_model(body: ModelCreate, db: Session = Depends(get_db), user: User = Depends(require_admin)):
    m = _run(catalog_service.create_model, db, body, actor=user.id)
    return {"id": m.id, "name": m.name, "slug": m.slug}


@router.get("/boats")
def list_boats(db: Session = Depends(get_db), user: User = Depends(require_staff)):
    names = {m.id: m.name for m in db.query(HouseboatModel).all()}
    return [
        {"id": b.id, "name": b.name, "modelId": b.model_id, "modelName": names.get(b.model_id)}
        for b in db.query(Boat).order_by(Boat.created_at.asc(), Boat.id.asc()).all()
    ]


@router.post("/boats")
def create_boat(body: BoatCreate, db: Session = Depends(get_db), user: User = Depends(require_admin)):
    b = _run(catalog_service.create_boat, db, body, actor=user.id)
    return {"id": b.id, "name": b.name, "modelId": b.model_id}


@router.get("/tariffs")
def list_tariffs(db: Session = Depends(get_db), user: User = Depends(require_staff)):
    prices = db.query(ModelPrice).all()
    return [
        {
            "id": t.id,
            "name": t.name,
            "periods": t.periods or [],
            "prices": [
                {"modelId": p.model_id, "weekday": float(p.weekday_price), "weekend": float(p.weekend_price)}
                for p in prices if p.tariff_id == t.id
            ],
        }
        for t in db.query(Tariff).order_by(Tariff.name.asc()).all()
    ]


@router.post("/tariffs")
def create_tariff(body: TariffCreate, db: Session = Depends(get_db), user: User = Depends(require_admin)):
    t = _run(catalog_service.create_tariff, db, body, actor=user.id)
    return {"id": t.id, "name": t.name, "periods": t.periods}


@router.put("/prices")
def set_price(body: ModelPriceIn, db: Session = Depends(get_db), user: User = Depends(require_admin)):
    p = _run(catalog_service.set_model_price, db, body, actor=user.id)
    return {"id": p.id, "modelId": p.model_id, "tariffId": p.tariff_id, "weekday": float(p.weekday_price), "weekend": float(p.weekend_price)}


@router.post("/extras")
def create_extra(body: ExtraCreate, db: Session = Depends(get_db), user: User = Depends(require_admin)):
    e = _run(catalog_service.create_extra, db, body, actor=user.id)
    return {"id": e.id, "name": e.name, "price": float(e.price), "priceType": e.price_type}


def user_dict(u: User) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "fullName": u.full_name,
        "role": u.role,
        "isActive": u.is_active,
        "lastLoginAt": u.last_login_at.isoformat() if u.last_login_at else None,
        "createdAt": u.created_at.isoformat() if u.created_at else None,
    }


@router.get("/users")
def list_users(role: str | None = None, q: str | None = None, db: Session = Depends(get_db), user: User = Depends(require_admin)):
    users = user_service.list_users(db, role=role, q=q)
    return {"total": len(users), "items": [user_dict(u) for u in users]}


@router.post("/users")
def create_user(body: UserCreate, db: Session = Depends(get_db), user: User = Depends(require_admin)):
    return user_dict(_run(user_service.create_user, db, body, actor=user.id))


@router.patch("/users/{user_id}")
def update_user(user_id: str, body: UserUpdate, db: Session = Depends(get_db), user: User = Depends(require_admin)):
    return user_dict(_run(user_service.update_user, db, user_id, body, actor=user.id))
