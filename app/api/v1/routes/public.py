from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.core.dates import stay_window
from app.models.extra import Extra
from app.models.houseboat import Boat, HouseboatModel
from app.schemas.checkout import QuoteRequest
from app.services.availability_service import find_available_unit
from app.services.pricing_service import quote_stay

router = APIRouter(tags=["public"])


@router.get("/public/houseboats")
def list_models(db: Session = Depends(get_db)):
    models = db.query(HouseboatModel).order_by(HouseboatModel.name.asc()).all()
    counts = {}
    for b in db.query(Boat).all():
        counts[b.model_id] = counts.get(b.model_id, 0) + 1
    return [
        {
            "id": m.id,
            "name": m.name,
            "slug": m.slug,
            "optimalCapacity": m.optimal_capacity,
            "maximumCapacity": m.maximum_capacity,
            "units": counts.get(m.id, 0),
        }
        for m in models
    ]


@router.get("/public/extras")
def list_extras(db: Session = Depends(get_db)):
    return [
        {"id": e.id, "name": e.name, "price": float(e.price), "priceType": e.price_type}
        for e in db.query(Extra).filter(Extra.active == True).order_by(Extra.name.asc()).all()
    ]


@router.post("/public/quote")
def quote(body: QuoteRequest, db: Session = Depends(get_db)):
    try:
        q = quote_stay(
            db, body.modelId, body.checkIn, body.checkOut,
            guests=body.guests,
            extras=[e.model_dump() for e in body.extras],
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return q.to_dict()


@router.get("/public/availability")
def availability(
    modelId: str,
    checkIn: date,
    checkOut: date,
    checkInTime: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    if checkOut <= checkIn:
        raise HTTPException(status_code=400, detail="checkOut must be after checkIn")
    try:
        start, end = stay_window(checkIn, checkOut, checkInTime)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    found = find_available_unit(db, modelId, start, end)
    return {"available": found.available, "boatId": found.unit_id}
