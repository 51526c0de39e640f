"""Identity port: resolves the acting user behind an incoming request.

Authentication lives outside the logistics domain. Adapters translate
whatever credential the edge received into the id of a registered user;
the domain then reads the user's role from its own records.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ResolvedActor:
    """An authenticated caller."""

    user_id: str
    display_name: str | None = None


class IdentityProvider(ABC):
    """Abstract interface for identity adapters."""

    @abstractmethod
    def resolve(self, credential: str) -> ResolvedActor:
        """Resolve a credential to an actor.

        Raises:
            UpstreamError: the provider could not be reached or rejected
                the credential.
        """
        ...
