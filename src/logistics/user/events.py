"""User domain events."""

from protean.fields import Boolean, DateTime, Float, Identifier, String, Text

from logistics.domain import logistics


@logistics.event(part_of="User")
class UserRegistered:
    """A brand, driver or staff member was registered."""

    __version__ = 1

    user_id = Identifier(required=True)
    name = String(required=True)
    email = String(required=True)
    role = String(required=True)
    registered_at = DateTime(required=True)


@logistics.event(part_of="User")
class UserStatusChanged:
    """A user was activated or deactivated."""

    __version__ = 1

    user_id = Identifier(required=True)
    status = String(required=True)
    changed_at = DateTime(required=True)


@logistics.event(part_of="User")
class DutyStatusChanged:
    """A driver went on or off duty."""

    __version__ = 1

    user_id = Identifier(required=True)
    on_duty = Boolean(required=True)
    changed_at = DateTime(required=True)


@logistics.event(part_of="User")
class RateCardUpdated:
    """A brand's weight tiers or fuel surcharge changed."""

    __version__ = 1

    user_id = Identifier(required=True)
    weight_tiers = Text(required=True)  # JSON {"tier": charge}
    fuel_surcharge = Float(required=True)
    updated_at = DateTime(required=True)


@logistics.event(part_of="User")
class PickupLocationsUpdated:
    """A brand's pickup locations or their driver assignments changed."""

    __version__ = 1

    user_id = Identifier(required=True)
    locations = Text(required=True)  # JSON list of location dicts
    updated_at = DateTime(required=True)


@logistics.event(part_of="User")
class CommissionTermsUpdated:
    """A staff member's salary or commission terms changed."""

    __version__ = 1

    user_id = Identifier(required=True)
    terms = Text(required=True)  # JSON dict
    updated_at = DateTime(required=True)
