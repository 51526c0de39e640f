"""Repository for the User aggregate."""

from logistics.domain import logistics
from logistics.user.user import User, UserRole

_SCAN_LIMIT = 10_000


@logistics.repository(part_of=User)
class UserRepository:
    def find_by_email(self, email: str) -> User | None:
        results = self._dao.query.filter(email=email.strip().lower()).all().items
        return results[0] if results else None

    def find_by_username(self, username: str) -> User | None:
        results = self._dao.query.filter(username=username).all().items
        return results[0] if results else None

    def with_role(self, role: UserRole) -> list[User]:
        return self._dao.query.filter(role=role.value).limit(_SCAN_LIMIT).all().items
