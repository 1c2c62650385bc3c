"""Repository adapters - Database and in-memory implementations."""

from dataclasses import dataclass

from psycopg_pool import ConnectionPool

from src.domain.ports import RegistrationRepository, TransactionRepository, VerificationRepository

from .memory import InMemoryRegistrationRepository, InMemoryTransactionRepository, InMemoryVerificationRepository
from .postgres import (
    PostgresRegistrationRepository,
    PostgresTransactionRepository,
    PostgresVerificationRepository,
    run_migrations,
)


@dataclass(frozen=True)
class Repositories:
    verifications: VerificationRepository
    registrations: RegistrationRepository
    transactions: TransactionRepository


def build_repositories(pool: ConnectionPool | None = None) -> Repositories:
    """Postgres-backed repositories for a pool, in-memory ones without."""
    if pool is None:
        return Repositories(
            verifications=InMemoryVerificationRepository(),
            registrations=InMemoryRegistrationRepository(),
            transactions=InMemoryTransactionRepository(),
        )
    return Repositories(
        verifications=PostgresVerificationRepository(pool),
        registrations=PostgresRegistrationRepository(pool),
        transactions=PostgresTransactionRepository(pool),
    )


__all__ = [
    "InMemoryRegistrationRepository",
    "InMemoryTransactionRepository",
    "InMemoryVerificationRepository",
    "PostgresRegistrationRepository",
    "PostgresTransactionRepository",
    "PostgresVerificationRepository",
    "Repositories",
    "build_repositories",
    "run_migrations",
]
