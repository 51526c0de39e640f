"""Driver duty state and position pings."""

from protean import handle
from protean.fields import Float, Identifier
from protean.utils.globals import current_domain

from logistics.domain import logistics
from logistics.user.user import User


@logistics.command(part_of="User")
class ToggleDutyStatus:
    user_id = Identifier(required=True)


@logistics.command(part_of="User")
class UpdateDriverLocation:
    """Record a driver's position. Fire-and-forget: callers do not wait on it."""

    user_id = Identifier(required=True)
    lat = Float(required=True, min_value=-90.0, max_value=90.0)
    lng = Float(required=True, min_value=-180.0, max_value=180.0)


@logistics.command_handler(part_of=User)
class DriverDutyHandler:
    @handle(ToggleDutyStatus)
    def toggle_duty_status(self, command):
        repo = current_domain.repository_for(User)
        driver = repo.get(command.user_id)
        driver.toggle_duty()
        repo.add(driver)
        return driver.on_duty

    @handle(UpdateDriverLocation)
    def update_driver_location(self, command):
        repo = current_domain.repository_for(User)
        driver = repo.get(command.user_id)
        driver.update_location(command.lat, command.lng)
        repo.add(driver)
