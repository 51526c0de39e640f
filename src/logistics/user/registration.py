"""User registration: command and handler."""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, String, Text
from protean.utils.globals import current_domain

from logistics.domain import logistics
from logistics.user.user import User


@logistics.command(part_of="User")
class RegisterUser:
    """Register a brand, driver or staff member."""

    name = String(required=True, max_length=150)
    email = String(required=True, max_length=254)
    role = String(required=True, max_length=50)
    username = String(max_length=100)
    phone = String(max_length=30)
    office_address = String(max_length=500)
    company_phone = String(max_length=30)
    bank_details = Text()  # JSON dict
    pickup_locations = Text()  # JSON list of {location_code, address, assigned_driver_id}
    weight_tiers = Text()  # JSON {"max_weight": charge}
    fuel_surcharge = Float(default=0.0)
    delivery_zones = Text()  # JSON list of zone names
    base_salary = Float(default=0.0)
    commission_rate = Float(default=0.0)
    per_pickup_commission = Float(default=0.0)
    per_delivery_commission = Float(default=0.0)
    brand_commissions = Text()  # JSON {"brand_id": pct}


def _loads(value, default):
    if not value:
        return default
    return json.loads(value) if isinstance(value, str) else value


@logistics.command_handler(part_of=User)
class RegisterUserHandler:
    @handle(RegisterUser)
    def register_user(self, command):
        repo = current_domain.repository_for(User)

        if repo.find_by_email(command.email) is not None:
            raise ValidationError({"email": ["A user with this email already exists"]})
        if command.username and repo.find_by_username(command.username) is not None:
            raise ValidationError({"username": ["This username is already taken"]})

        user = User.register(
            name=command.name,
            email=command.email,
            role=command.role,
            username=command.username,
            phone=command.phone,
            office_address=command.office_address,
            company_phone=command.company_phone,
            bank_details=_loads(command.bank_details, None),
            pickup_locations=_loads(command.pickup_locations, []),
            weight_tiers=_loads(command.weight_tiers, {}),
            fuel_surcharge=command.fuel_surcharge,
            delivery_zones=_loads(command.delivery_zones, []),
            base_salary=command.base_salary,
            commission_rate=command.commission_rate,
            per_pickup_commission=command.per_pickup_commission,
            per_delivery_commission=command.per_delivery_commission,
            brand_commissions=_loads(command.brand_commissions, {}),
        )
        repo.add(user)
        return str(user.id)
