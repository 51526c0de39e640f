"""Free-text annotations on a parcel: command and handler."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Text
from protean.utils.globals import current_domain

from logistics.domain import logistics
from logistics.parcel.parcel import Parcel
from logistics.shared.actors import assert_brand_or_admin, load_actor
from logistics.user.user import UserRole


@logistics.command(part_of="Parcel")
class AddBrandRemark:
    """A brand's note to operations about one of its parcels."""

    parcel_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    remark = Text(required=True)


@logistics.command(part_of="Parcel")
class AddShipperAdvice:
    """Operations' advice back to the brand (e.g. after a failed attempt)."""

    parcel_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    advice = Text(required=True)


@logistics.command_handler(part_of=Parcel)
class ParcelRemarksHandler:
    @handle(AddBrandRemark)
    def add_brand_remark(self, command):
        repo = current_domain.repository_for(Parcel)
        parcel = repo.get(command.parcel_id)
        assert_brand_or_admin(load_actor(command.actor_id), parcel.brand_id)
        parcel.add_brand_remark(command.remark)
        repo.add(parcel)

    @handle(AddShipperAdvice)
    def add_shipper_advice(self, command):
        repo = current_domain.repository_for(Parcel)
        parcel = repo.get(command.parcel_id)
        actor = load_actor(command.actor_id)
        if not actor.has_role(UserRole.ADMIN, UserRole.WAREHOUSE_MANAGER):
            raise ValidationError({"actor": ["Only operations staff can give shipper advice"]})
        parcel.add_shipper_advice(command.advice)
        repo.add(parcel)
