"""Fake identity adapter: treats the credential as the user id.

Used in development and tests. Can be switched into a failing mode to
exercise upstream error handling.
"""

from logistics.errors import UpstreamError
from logistics.identity.port import IdentityProvider, ResolvedActor


class FakeIdentityProvider(IdentityProvider):
    def __init__(self):
        self.should_succeed = True
        self.failure_reason = "Identity provider unavailable"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Identity provider unavailable"):
        """Configure the fake provider behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def resolve(self, credential: str) -> ResolvedActor:
        if not self.should_succeed:
            raise UpstreamError(self.failure_reason, source="identity")
        if not credential or not credential.strip():
            raise UpstreamError("Missing actor credential", source="identity")
        return ResolvedActor(user_id=credential.strip())
