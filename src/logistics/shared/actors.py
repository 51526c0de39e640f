"""Loading the users a command acts as or on, with their role checks."""

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from logistics.user.user import User, UserRole


def load_user(user_id: str) -> User:
    return current_domain.repository_for(User).get(user_id)


def load_actor(actor_id: str) -> User:
    """The user performing an operation. Inactive users cannot act."""
    actor = load_user(actor_id)
    if not actor.is_active:
        raise ValidationError({"actor": [f"User {actor.name} is inactive"]})
    return actor


def load_brand(brand_id: str) -> User:
    brand = load_user(brand_id)
    if not brand.has_role(UserRole.BRAND):
        raise ObjectNotFoundError(f"Brand {brand_id} does not exist")
    return brand


def load_driver(driver_id: str) -> User:
    """A driver, active or not; settling cash does not need the driver on duty."""
    driver = load_user(driver_id)
    if not driver.has_role(UserRole.DRIVER):
        raise ValidationError({"driver_id": [f"User {driver.name} is not a driver"]})
    return driver


def load_assignable_driver(driver_id: str, zone: str | None = None) -> User:
    """An active driver, optionally one that covers ``zone``."""
    driver = load_user(driver_id)
    if not driver.has_role(UserRole.DRIVER):
        raise ValidationError({"driver_id": [f"User {driver.name} is not a driver"]})
    if not driver.is_active:
        raise ValidationError({"driver_id": [f"Driver {driver.name} is inactive"]})
    if zone is not None and not driver.covers_zone(zone):
        raise ValidationError({"driver_id": [f"Driver {driver.name} does not cover {zone}"]})
    return driver


def assert_brand_or_admin(actor: User, brand_id: str) -> None:
    """Brands may only act on their own parcels and profile; admins may act for any brand."""
    if actor.has_role(UserRole.ADMIN):
        return
    if actor.has_role(UserRole.BRAND) and str(actor.id) == str(brand_id):
        return
    raise ValidationError({"actor": [f"{actor.name} cannot act for brand {brand_id}"]})
