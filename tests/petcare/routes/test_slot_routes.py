import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from conftest import OTHER_SHOP_ID, SHOP_ID, STAFF_ONE, STAFF_TWO, USER_ID
from petcare.auth.dependencies import Identity
from petcare.core.errors import ConflictError, InputValidationError, NotFoundError
from petcare.routes.slot_routes import (
    CreateSlotRequest,
    UpdateSlotRequest,
    cancel_slot,
    create_slot,
    delete_slot,
    get_slot,
    list_available_slots,
    list_booked_slots,
    list_shop_slots,
    list_slots_on_date,
    update_slot,
)

SHOP = Identity(subject=SHOP_ID, role='shop')
OTHER_SHOP = Identity(subject=OTHER_SHOP_ID, role='shop')


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('petcare.routes.slot_routes.ensure_database_ready', lambda: None)


def _request(staff_id=STAFF_ONE, start_time='09:00', end_time='09:30', slot_date='2024-05-01') -> CreateSlotRequest:
    return CreateSlotRequest(
        staff_id=staff_id,
        slot_date=slot_date,
        start_time=start_time,
        end_time=end_time,
        duration_in_minutes=30,
    )


def test_create_slot_request_strips_whitespace() -> None:
    request = CreateSlotRequest(
        staff_id=f' {STAFF_ONE} ',
        slot_date=' 2024-05-01 ',
        start_time=' 09:00',
        end_time='09:30 ',
        duration_in_minutes='30',
    )

    assert request.staff_id == STAFF_ONE
    assert request.slot_date == '2024-05-01'
    assert (request.start_time, request.end_time) == ('09:00', '09:30')
    assert request.duration_in_minutes == 30


def test_create_slot_request_requires_all_fields() -> None:
    with pytest.raises(ValidationError):
        CreateSlotRequest(staff_id=STAFF_ONE, slot_date='2024-05-01', start_time='09:00')


def test_create_slot_uses_shop_from_identity(db) -> None:
    response = create_slot(data=_request(), identity=SHOP, db=db)

    assert response['success'] is True
    assert response['message'] == 'Slot created successfully'
    assert response['data'].shop_id == SHOP_ID
    assert response['data'].is_active is True
    assert response['data'].is_cancelled is False


def test_create_slot_rejects_non_shop_identity(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_slot(data=_request(), identity=Identity(subject=USER_ID, role='user'), db=db)

    assert exception_info.value.status_code == 403


def test_create_slot_surfaces_conflict_and_validation_errors(db) -> None:
    create_slot(data=_request(), identity=SHOP, db=db)

    with pytest.raises(ConflictError) as conflict:
        create_slot(data=_request(start_time='09:15', end_time='09:45'), identity=SHOP, db=db)
    assert conflict.value.status_code == 400

    with pytest.raises(InputValidationError) as invalid:
        create_slot(data=_request(slot_date='01-05-2024'), identity=SHOP, db=db)
    assert invalid.value.status_code == 400
    assert invalid.value.detail == 'Invalid slot_date format (YYYY-MM-DD required).'

    created = create_slot(data=_request(staff_id=STAFF_TWO, start_time='09:15', end_time='09:45'), identity=SHOP, db=db)
    assert created['data'].staff_id == STAFF_TWO


def test_only_owning_shop_can_change_slot(db) -> None:
    slot = create_slot(data=_request(), identity=SHOP, db=db)['data']

    with pytest.raises(HTTPException) as exception_info:
        cancel_slot(slot_id=slot.id, identity=OTHER_SHOP, db=db)

    assert exception_info.value.status_code == 403
    assert get_slot(slot_id=slot.id, db=db)['data'].is_active is True


def test_update_slot_applies_only_fields_sent(db) -> None:
    slot = create_slot(data=_request(), identity=SHOP, db=db)['data']

    response = update_slot(
        slot_id=slot.id,
        data=UpdateSlotRequest(start_time='10:00', end_time='10:30'),
        identity=SHOP,
        db=db,
    )

    assert response['data'].start_time == '10:00'
    assert response['data'].end_time == '10:30'
    assert response['data'].staff_id == STAFF_ONE
    assert response['data'].duration_in_minutes == 30


def test_cancel_then_delete_slot(db) -> None:
    slot = create_slot(data=_request(), identity=SHOP, db=db)['data']

    cancelled = cancel_slot(slot_id=slot.id, identity=SHOP, db=db)['data']
    assert (cancelled.is_active, cancelled.is_cancelled) == (False, True)

    deleted = delete_slot(slot_id=slot.id, identity=SHOP, db=db)['data']
    assert deleted.deleted_at is not None

    with pytest.raises(NotFoundError) as exception_info:
        get_slot(slot_id=slot.id, db=db)
    assert exception_info.value.status_code == 404

    assert list_shop_slots(shop_id=SHOP_ID, start_date=None, end_date=None, db=db)['data'] == []


def test_list_routes_return_envelopes(db) -> None:
    first = create_slot(data=_request(), identity=SHOP, db=db)['data']
    second = create_slot(data=_request(slot_date='2024-05-03'), identity=SHOP, db=db)['data']
    update_slot(slot_id=second.id, data=UpdateSlotRequest(is_booked=True), identity=SHOP, db=db)

    ranged = list_shop_slots(shop_id=SHOP_ID, start_date='2024-05-01', end_date='2024-05-02', db=db)
    assert [slot.id for slot in ranged['data']] == [first.id]

    single_day = list_shop_slots(shop_id=SHOP_ID, start_date='2024-05-03', end_date=None, db=db)
    assert [slot.id for slot in single_day['data']] == [second.id]

    booked = list_booked_slots(shop_id=SHOP_ID, db=db)
    assert [slot.id for slot in booked['data']] == [second.id]

    available = list_available_slots(shop_id=SHOP_ID, slot_date='2024-05-01', db=db)
    assert [slot.id for slot in available['data']] == [first.id]

    on_date = list_slots_on_date(slot_date='2024-05-03', db=db)
    assert on_date['success'] is True
    assert [slot.id for slot in on_date['data']] == [second.id]
