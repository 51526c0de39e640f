"""Schema management for relational providers.

The memory provider needs no schema; PostgreSQL (and SQLite in local runs)
get their tables from the SQLAlchemy metadata Protean builds per provider.
"""

from protean.domain import Domain
from sqlalchemy import create_engine

_RELATIONAL_PROVIDERS = ("sqlite", "postgresql")


def _register_models(domain: Domain, provider_name: str) -> None:
    # Touching the DAO forces Protean to build and register the SQLAlchemy
    # model for each element stored in this provider.
    registries = (
        domain.registry.aggregates,
        domain.registry.entities,
        domain.registry.projections,
    )
    for registry in registries:
        for _, record in registry.items():
            if record.cls.meta_.provider == provider_name:
                domain.repository_for(record.cls)._dao  # noqa: B018


def setup_db(domain: Domain) -> None:
    """Create tables for every relational provider."""
    with domain.domain_context():
        for name, provider in domain.providers.items():
            if provider.conn_info["provider"] not in _RELATIONAL_PROVIDERS:
                continue
            engine = create_engine(provider.conn_info["database_uri"])
            _register_models(domain, name)
            provider._metadata.create_all(engine)


def drop_db(domain: Domain) -> None:
    """Drop tables for every relational provider."""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] not in _RELATIONAL_PROVIDERS:
                continue
            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.drop_all(engine)
