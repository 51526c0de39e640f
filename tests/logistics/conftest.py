import json

import pytest
from protean import current_domain


@pytest.fixture(scope="session")
def _logistics_domain():
    """Initialize the logistics domain once per session."""
    from logistics.domain import logistics

    logistics.init()
    return logistics


@pytest.fixture(scope="session", autouse=True)
def setup_db(_logistics_domain):
    from logistics.utils.db import drop_db, setup_db

    setup_db(_logistics_domain)

    yield

    drop_db(_logistics_domain)


@pytest.fixture(autouse=True)
def run_around_tests(_logistics_domain):
    """Push domain context before each test, cleanup after."""
    ctx = _logistics_domain.domain_context()
    ctx.push()

    yield

    from logistics.identity import reset_identity_provider

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    for _, broker in current_domain.brokers.items():
        broker._data_reset()

    current_domain.event_store.store._data_reset()
    reset_identity_provider()
    ctx.pop()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
def _register(**fields) -> str:
    from logistics.user.registration import RegisterUser

    return current_domain.process(RegisterUser(**fields), asynchronous=False)


@pytest.fixture()
def admin():
    return _register(name="Ayesha Admin", email="admin@parcelhub.test", role="Admin", base_salary=90000)


@pytest.fixture()
def warehouse():
    return _register(
        name="Hamza Hub",
        email="hub@parcelhub.test",
        role="Warehouse_Manager",
        base_salary=60000,
    )


@pytest.fixture()
def driver():
    return _register(
        name="Danish Driver",
        email="danish@parcelhub.test",
        role="Driver",
        delivery_zones=json.dumps(["Zone 1", "Zone 2"]),
        base_salary=30000,
        per_pickup_commission=20,
        per_delivery_commission=30,
    )


@pytest.fixture()
def second_driver():
    return _register(
        name="Sana Driver",
        email="sana@parcelhub.test",
        role="Driver",
        delivery_zones=json.dumps(["Zone 1"]),
    )


@pytest.fixture()
def brand(driver):
    """A brand with a rate card of 0.5kg → 100, 1kg → 150, 2kg → 200 and a 10% fuel surcharge."""
    return _register(
        name="Kapray Co",
        email="ops@kapray.test",
        role="Brand",
        office_address="45 Gulberg, Lahore",
        company_phone="042-111-222",
        pickup_locations=json.dumps(
            [{"location_code": "LHR-1", "address": "12 Mall Road, Lahore", "assigned_driver_id": driver}]
        ),
        weight_tiers=json.dumps({"0.5": 100, "1.0": 150, "2.0": 200}),
        fuel_surcharge=10,
    )


@pytest.fixture()
def other_brand():
    return _register(
        name="Joota Ltd",
        email="ops@joota.test",
        role="Brand",
        pickup_locations=json.dumps([{"location_code": "KHI-1", "address": "7 Clifton, Karachi"}]),
        weight_tiers=json.dumps({"1.0": 120}),
    )


# ---------------------------------------------------------------------------
# Parcels
# ---------------------------------------------------------------------------
@pytest.fixture()
def book(brand):
    """Book a parcel for ``brand``; 0.7kg with 2000 COD unless overridden."""
    from logistics.parcel.booking import BookParcel

    def _book(**overrides) -> str:
        fields = {
            "brand_id": brand,
            "pickup_location_id": "LHR-1",
            "recipient_name": "Bilal Khan",
            "recipient_address": "9 Canal View, Lahore",
            "recipient_phone": "0300-1234567",
            "cod_amount": 2000.0,
            "weight": 0.7,
        }
        fields.update(overrides)
        return current_domain.process(BookParcel(**fields), asynchronous=False)

    return _book


@pytest.fixture()
def move():
    """Process a TransitionParcel command."""
    from logistics.parcel.lifecycle import TransitionParcel

    def _move(parcel_id: str, target: str, actor_id: str, **details) -> str:
        command = TransitionParcel(parcel_id=parcel_id, target_status=target, actor_id=actor_id, **details)
        return current_domain.process(command, asynchronous=False)

    return _move


@pytest.fixture()
def out_for_delivery(book, move, driver, warehouse):
    """Book a parcel and walk it to OUT_FOR_DELIVERY with ``driver``."""

    def _out_for_delivery(**overrides) -> str:
        parcel_id = book(**overrides)
        move(parcel_id, "Picked_Up", driver)
        move(parcel_id, "At_Hub", warehouse, delivery_zone="Zone 1")
        move(parcel_id, "Out_For_Delivery", warehouse, driver_id=driver)
        return parcel_id

    return _out_for_delivery


@pytest.fixture()
def delivered(out_for_delivery, move, driver):
    """Book a parcel and walk it all the way to DELIVERED."""

    def _delivered(**overrides) -> str:
        parcel_id = out_for_delivery(**overrides)
        move(parcel_id, "Delivered", driver)
        return parcel_id

    return _delivered
