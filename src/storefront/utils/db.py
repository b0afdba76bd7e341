"""Schema helpers for SQL-backed providers.

The memory provider needs no schema. For ``sqlite`` and ``postgresql``
providers the tables of every storefront aggregate and entity are created
or dropped through SQLAlchemy.
"""

from protean.domain import Domain
from sqlalchemy import create_engine

from storefront.domain import logger

SQL_PROVIDERS = ("sqlite", "postgresql")


def _register_tables(domain: Domain, provider_name: str) -> None:
    # Touching ``_dao`` registers the element's table with the provider metadata.
    for record in domain.registry.aggregates.values():
        if record.cls.meta_.provider == provider_name:
            domain.repository_for(record.cls)._dao  # noqa: B018
    for record in domain.registry.entities.values():
        if record.cls.meta_.provider == provider_name:
            domain.repository_for(record.cls)._dao  # noqa: B018


def setup_db(domain: Domain) -> int:
    """Create tables on every SQL provider. Returns the number of providers touched."""
    touched = 0
    with domain.domain_context():
        for name, provider in domain.providers.items():
            if provider.conn_info["provider"] not in SQL_PROVIDERS:
                continue
            _register_tables(domain, name)
            provider._metadata.create_all(create_engine(provider.conn_info["database_uri"]))
            logger.info("Database schema created", provider=name)
            touched += 1
    return touched


def drop_db(domain: Domain) -> int:
    """Drop tables on every SQL provider. Returns the number of providers touched."""
    touched = 0
    with domain.domain_context():
        for name, provider in domain.providers.items():
            if provider.conn_info["provider"] not in SQL_PROVIDERS:
                continue
            provider._metadata.drop_all(create_engine(provider.conn_info["database_uri"]))
            logger.info("Database schema dropped", provider=name)
            touched += 1
    return touched
