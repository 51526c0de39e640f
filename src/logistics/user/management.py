"""User management: status, rate card, pickup locations and commission terms.

Everything here changes what later quotes, invoices or salaries come to, so
each command names the acting user. Only admins may change another user's
status, rate card or pay terms; a brand may maintain its own pickup
locations.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, Text
from protean.utils.globals import current_domain

from logistics.domain import logistics
from logistics.shared.actors import assert_brand_or_admin, load_actor
from logistics.user.user import User, UserRole

logger = structlog.get_logger(__name__)


@logistics.command(part_of="User")
class ToggleUserStatus:
    user_id = Identifier(required=True)
    actor_id = Identifier(required=True)


@logistics.command(part_of="User")
class UpdateRateCard:
    """Replace a brand's weight tiers and optionally its fuel surcharge."""

    user_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    weight_tiers = Text(required=True)  # JSON {"max_weight": charge}
    fuel_surcharge = Float(min_value=0.0)


@logistics.command(part_of="User")
class UpdatePickupLocations:
    user_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    locations = Text(required=True)  # JSON list of {location_code, address, assigned_driver_id}


@logistics.command(part_of="User")
class UpdateCommissionTerms:
    user_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    base_salary = Float(min_value=0.0)
    commission_rate = Float(min_value=0.0, max_value=100.0)
    per_pickup_commission = Float(min_value=0.0)
    per_delivery_commission = Float(min_value=0.0)
    brand_commissions = Text()  # JSON {"brand_id": pct}


def _load_admin(actor_id: str) -> User:
    actor = load_actor(actor_id)
    if not actor.has_role(UserRole.ADMIN):
        raise ValidationError({"actor": [f"{actor.name} is not an admin"]})
    return actor


def _assert_assignable_driver(driver_id):
    driver = current_domain.repository_for(User).get(driver_id)
    if not driver.has_role(UserRole.DRIVER) or not driver.is_active:
        raise ValidationError({"assigned_driver_id": [f"User {driver_id} is not an active driver"]})


@logistics.command_handler(part_of=User)
class UserManagementHandler:
    @handle(ToggleUserStatus)
    def toggle_user_status(self, command):
        actor = _load_admin(command.actor_id)
        if str(actor.id) == str(command.user_id):
            raise ValidationError({"user_id": ["Admins cannot deactivate themselves"]})

        repo = current_domain.repository_for(User)
        user = repo.get(command.user_id)
        user.toggle_status()
        repo.add(user)
        logger.info("User status toggled", user_id=str(user.id), status=user.status, by=actor.name)
        return user.status

    @handle(UpdateRateCard)
    def update_rate_card(self, command):
        actor = _load_admin(command.actor_id)
        tiers = json.loads(command.weight_tiers) if isinstance(command.weight_tiers, str) else command.weight_tiers
        repo = current_domain.repository_for(User)
        user = repo.get(command.user_id)
        user.update_rate_card(tiers, command.fuel_surcharge)
        repo.add(user)
        logger.info("Rate card updated", brand_id=str(user.id), tiers=len(tiers), by=actor.name)

    @handle(UpdatePickupLocations)
    def update_pickup_locations(self, command):
        actor = load_actor(command.actor_id)
        assert_brand_or_admin(actor, command.user_id)
        locations = json.loads(command.locations) if isinstance(command.locations, str) else command.locations
        for location in locations:
            if location.get("assigned_driver_id"):
                _assert_assignable_driver(location["assigned_driver_id"])

        repo = current_domain.repository_for(User)
        user = repo.get(command.user_id)
        user.replace_pickup_locations(locations)
        repo.add(user)

    @handle(UpdateCommissionTerms)
    def update_commission_terms(self, command):
        actor = _load_admin(command.actor_id)
        brand_commissions = json.loads(command.brand_commissions) if command.brand_commissions else None
        repo = current_domain.repository_for(User)
        user = repo.get(command.user_id)
        user.update_commission_terms(
            base_salary=command.base_salary,
            commission_rate=command.commission_rate,
            per_pickup_commission=command.per_pickup_commission,
            per_delivery_commission=command.per_delivery_commission,
            brand_commissions=brand_commissions,
        )
        repo.add(user)
        logger.info("Commission terms updated", user_id=str(user.id), by=actor.name)
