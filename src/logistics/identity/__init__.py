"""Identity adapter abstraction: pluggable resolution of the acting user."""

import os

_provider_instance = None


def get_identity_provider():
    """Return the configured identity adapter (singleton).

    Uses FakeIdentityProvider by default. Select another adapter with the
    IDENTITY_ADAPTER environment variable.
    """
    global _provider_instance
    if _provider_instance is None:
        adapter = os.environ.get("IDENTITY_ADAPTER", "fake")
        if adapter == "fake":
            from logistics.identity.fake_adapter import FakeIdentityProvider

            _provider_instance = FakeIdentityProvider()
        else:
            raise ValueError(f"Unknown identity adapter: {adapter}")
    return _provider_instance


def set_identity_provider(provider):
    global _provider_instance
    _provider_instance = provider


def reset_identity_provider():
    """Reset the identity singleton (useful for testing)."""
    global _provider_instance
    _provider_instance = None
