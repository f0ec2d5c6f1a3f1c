from datetime import datetime, timezone

from app.services.availability_service import find_available_unit, overlaps, unit_is_free


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_touching_stays_do_not_overlap():
    assert not overlaps(_utc(2024, 6, 10), _utc(2024, 6, 15), _utc(2024, 6, 15), _utc(2024, 6, 20))
    assert overlaps(_utc(2024, 6, 10), _utc(2024, 6, 15), _utc(2024, 6, 14), _utc(2024, 6, 16))


def test_turnover_day_is_bookable(db, catalog, make_booking):
    make_booking(houseboat_id="boat-1", start=_utc(2024, 6, 10), nights=5)

    assert unit_is_free(db, "boat-1", _utc(2024, 6, 15), _utc(2024, 6, 20))
    assert not unit_is_free(db, "boat-1", _utc(2024, 6, 14), _utc(2024, 6, 16))


def test_cancelled_bookings_do_not_block(db, catalog, make_booking):
    make_booking(houseboat_id="boat-1", start=_utc(2024, 6, 10), nights=5, status="Cancelled")

    assert unit_is_free(db, "boat-1", _utc(2024, 6, 11), _utc(2024, 6, 13))


def test_maintenance_blocks_like_a_booking(db, catalog, make_booking):
    make_booking(houseboat_id="boat-1", start=_utc(2024, 6, 10), nights=5, status="Maintenance", total="0")

    assert not unit_is_free(db, "boat-1", _utc(2024, 6, 11), _utc(2024, 6, 13))


def test_first_free_boat_in_listing_order(db, catalog, make_booking):
    found = find_available_unit(db, "model-s", _utc(2024, 6, 10), _utc(2024, 6, 12))
    assert found.available and found.unit_id == "boat-1"

    make_booking(houseboat_id="boat-1", start=_utc(2024, 6, 10), nights=5)
    found = find_available_unit(db, "model-s", _utc(2024, 6, 14), _utc(2024, 6, 16))
    assert found.unit_id == "boat-2"


def test_no_boat_left(db, catalog, make_booking):
    make_booking(houseboat_id="boat-1", start=_utc(2024, 6, 10), nights=5)
    make_booking(houseboat_id="boat-2", start=_utc(2024, 6, 12), nights=5)

    found = find_available_unit(db, "model-s", _utc(2024, 6, 13), _utc(2024, 6, 14))
    assert not found.available
    assert found.unit_id is None


def test_excluded_units_are_skipped(db, catalog):
    found = find_available_unit(db, "model-s", _utc(2024, 6, 10), _utc(2024, 6, 12), exclude_unit_ids=("boat-1",))
    assert found.unit_id == "boat-2"


def test_unknown_model_has_nothing_available(db, catalog):
    assert not find_available_unit(db, "model-x", _utc(2024, 6, 10), _utc(2024, 6, 12)).available
