"""
PostgreSQL repository adapters - Implement the domain repository protocols.

This module provides the PostgreSQL implementations of the domain's
repository ports using psycopg3 with raw SQL.

Concurrency Design:
------------------
1. **Unique identity**: ``registrations.email`` and
   ``registrations.contact_number`` carry UNIQUE constraints. A racing
   insert surfaces as ``UniqueViolation`` and is reported to the domain as
   ``DuplicateIdentity``.

2. **Optimistic writes**: ``update`` only matches the row when the stored
   ``version`` equals the one the caller read, and bumps it in the same
   statement. Zero rows means another writer got there first.

3. **Atomic attempt counting**: ``increment_attempts`` is a single
   ``UPDATE ... RETURNING`` so parallel guesses each see their own count.

4. **Append-only transactions**: inserts use ``ON CONFLICT DO NOTHING``
   on the id and the idempotency key; the domain retries or replays.
"""

import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any

from psycopg.errors import UniqueViolation
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from src.domain.exceptions import ConcurrentModification, DuplicateIdentity
from src.domain.models import Registration, RegistrationStats, Transaction, VerificationRecord
from src.domain.ports import PaymentStatus, RegistrationStatus
from src.domain.sections import StructuredForm

logger = logging.getLogger(__name__)

_VERIFICATION_COLUMNS = """
    id, email, contact_number, code, created_at, verified, verified_at,
    attempts, token_hash, requester_ip, requester_agent
"""

_REGISTRATION_COLUMNS = """
    id, email, contact_number, form, registration_date, last_updated,
    current_step, completed_steps, form_submission_complete,
    registration_status, payment_status, contribution_amount, payment_id,
    applied_transaction_ids, version
"""

_TRANSACTION_COLUMNS = """
    transaction_id, registration_id, amount, payment_method, completed_at,
    gateway_response, purpose, is_anonymous, notes, idempotency_key
"""


class PostgresVerificationRepository:
    """
    Implements VerificationRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def replace(self, record: VerificationRecord) -> None:
        """
        Store a fresh record, invalidating every earlier one for the identity.

        Records sharing either identifier are removed first; the exact pair
        is then upserted so a re-request resets code, attempts and token.
        """
        delete_sql = """
            DELETE FROM verification_records
            WHERE (email = %s OR contact_number = %s)
              AND NOT (email = %s AND contact_number = %s)
        """
        upsert_sql = f"""
            INSERT INTO verification_records ({_VERIFICATION_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (email, contact_number) DO UPDATE
            SET id = EXCLUDED.id,
                code = EXCLUDED.code,
                created_at = EXCLUDED.created_at,
                verified = FALSE,
                verified_at = NULL,
                attempts = 0,
                token_hash = NULL,
                requester_ip = EXCLUDED.requester_ip,
                requester_agent = EXCLUDED.requester_agent
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                delete_sql,
                (record.email, record.contact_number, record.email, record.contact_number),
            )
            cursor.execute(
                upsert_sql,
                (
                    record.id,
                    record.email,
                    record.contact_number,
                    record.code,
                    record.created_at,
                    record.verified,
                    record.verified_at,
                    record.attempts,
                    record.token_hash,
                    record.requester_ip,
                    record.requester_agent,
                ),
            )
            conn.commit()

    def find(self, email: str, contact_number: str) -> VerificationRecord | None:
        """Most recent record matching either identifier, exact pair first."""
        sql = f"""
            SELECT {_VERIFICATION_COLUMNS}
            FROM verification_records
            WHERE email = %s OR contact_number = %s
            ORDER BY (email = %s AND contact_number = %s) DESC, created_at DESC
            LIMIT 1
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (email, contact_number, email, contact_number))
            row = cursor.fetchone()
        return _verification_from_row(row) if row else None

    def find_pair(self, email: str, contact_number: str) -> VerificationRecord | None:
        sql = f"""
            SELECT {_VERIFICATION_COLUMNS}
            FROM verification_records
            WHERE email = %s AND contact_number = %s
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (email, contact_number))
            row = cursor.fetchone()
        return _verification_from_row(row) if row else None

    def increment_attempts(self, record_id: str) -> int | None:
        sql = """
            UPDATE verification_records
            SET attempts = attempts + 1
            WHERE id = %s
            RETURNING attempts
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (record_id,))
            row = cursor.fetchone()
            conn.commit()
        return row[0] if row else None

    def mark_verified(self, record_id: str, verified_at: datetime, token_hash: str) -> None:
        sql = """
            UPDATE verification_records
            SET verified = TRUE, verified_at = %s, token_hash = %s
            WHERE id = %s
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (verified_at, token_hash, record_id))
            conn.commit()

    def delete(self, record_id: str) -> None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("DELETE FROM verification_records WHERE id = %s", (record_id,))
            conn.commit()


class PostgresRegistrationRepository:
    """
    Implements RegistrationRepository protocol via psycopg3.

    The structured form is stored as one JSONB document in its wire shape.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def add(self, registration: Registration) -> None:
        """
        Insert a new registration.

        Raises:
            DuplicateIdentity: If the email or contact number is already taken
        """
        sql = f"""
            INSERT INTO registrations ({_REGISTRATION_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """

        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(
                    sql,
                    (
                        registration.id,
                        registration.email,
                        registration.contact_number,
                        Jsonb(registration.form.to_wire()),
                        registration.registration_date,
                        registration.last_updated,
                        registration.current_step,
                        sorted(registration.completed_steps),
                        registration.form_submission_complete,
                        registration.registration_status.value,
                        registration.payment_status.value,
                        registration.contribution_amount,
                        registration.payment_id,
                        list(registration.applied_transaction_ids),
                        registration.version,
                    ),
                )
                conn.commit()
        except UniqueViolation as e:
            raise DuplicateIdentity(
                "A registration with this email or contact number already exists"
            ) from e

    def get(self, registration_id: str) -> Registration | None:
        sql = f"SELECT {_REGISTRATION_COLUMNS} FROM registrations WHERE id = %s"

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (registration_id,))
            row = cursor.fetchone()
        return _registration_from_row(row) if row else None

    def find_by_identity(self, email: str, contact_number: str) -> Registration | None:
        sql = f"""
            SELECT {_REGISTRATION_COLUMNS}
            FROM registrations
            WHERE email = %s OR contact_number = %s
            LIMIT 1
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (email, contact_number))
            row = cursor.fetchone()
        return _registration_from_row(row) if row else None

    def update(self, registration: Registration) -> Registration:
        """
        Conditionally write a registration read at ``registration.version``.

        Identity columns are never touched.

        Raises:
            ConcurrentModification: If the stored version moved on
        """
        sql = """
            UPDATE registrations
            SET form = %s,
                last_updated = %s,
                current_step = %s,
                completed_steps = %s,
                form_submission_complete = %s,
                registration_status = %s,
                payment_status = %s,
                contribution_amount = %s,
                payment_id = %s,
                applied_transaction_ids = %s,
                version = version + 1
            WHERE id = %s AND version = %s
            RETURNING version
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                sql,
                (
                    Jsonb(registration.form.to_wire()),
                    registration.last_updated,
                    registration.current_step,
                    sorted(registration.completed_steps),
                    registration.form_submission_complete,
                    registration.registration_status.value,
                    registration.payment_status.value,
                    registration.contribution_amount,
                    registration.payment_id,
                    list(registration.applied_transaction_ids),
                    registration.id,
                    registration.version,
                ),
            )
            row = cursor.fetchone()
            conn.commit()

        if row is None:
            raise ConcurrentModification("Registration was modified concurrently")
        return replace(registration, version=row[0])

    def stats(self) -> RegistrationStats:
        totals_sql = """
            SELECT
                COUNT(*) AS total,
                COUNT(*) FILTER (
                    WHERE (form -> 'eventAttendance' ->> 'isAttending') = 'true'
                ) AS attending,
                COALESCE(SUM(contribution_amount) FILTER (WHERE payment_status = %s), 0) AS collected
            FROM registrations
        """
        counts_sql = """
            SELECT payment_status, COUNT(*) AS n
            FROM registrations
            GROUP BY payment_status
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(totals_sql, (PaymentStatus.COMPLETED.value,))
            totals = cursor.fetchone()
            cursor.execute(counts_sql)
            counts = {row["payment_status"]: row["n"] for row in cursor.fetchall()}

        return RegistrationStats(
            total_registrations=totals["total"],
            attending=totals["attending"],
            not_attending=totals["total"] - totals["attending"],
            payment_counts=counts,
            total_amount_collected=int(totals["collected"]),
        )


class PostgresTransactionRepository:
    """Implements TransactionRepository protocol via psycopg3."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def add(self, transaction: Transaction) -> bool:
        """
        Append a transaction.

        Returns:
            False if the id or the idempotency key is already taken
        """
        sql = f"""
            INSERT INTO transactions ({_TRANSACTION_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT DO NOTHING
        """
        gateway = Jsonb(dict(transaction.gateway_response)) if transaction.gateway_response else None

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                sql,
                (
                    transaction.transaction_id,
                    transaction.registration_id,
                    transaction.amount,
                    transaction.payment_method,
                    transaction.completed_at,
                    gateway,
                    transaction.purpose,
                    transaction.is_anonymous,
                    transaction.notes,
                    transaction.idempotency_key,
                ),
            )
            conn.commit()
            return cursor.rowcount == 1

    def get_by_idempotency_key(self, key: str) -> Transaction | None:
        sql = f"SELECT {_TRANSACTION_COLUMNS} FROM transactions WHERE idempotency_key = %s"

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (key,))
            row = cursor.fetchone()
        return _transaction_from_row(row) if row else None

    def list_for_registration(self, registration_id: str) -> list[Transaction]:
        sql = f"""
            SELECT {_TRANSACTION_COLUMNS}
            FROM transactions
            WHERE registration_id = %s
            ORDER BY completed_at, transaction_id
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (registration_id,))
            rows = cursor.fetchall()
        return [_transaction_from_row(row) for row in rows]


def _verification_from_row(row: dict[str, Any]) -> VerificationRecord:
    return VerificationRecord(**row)


def _registration_from_row(row: dict[str, Any]) -> Registration:
    return Registration(
        id=row["id"],
        email=row["email"],
        contact_number=row["contact_number"],
        form=StructuredForm.from_wire(row["form"]),
        registration_date=row["registration_date"],
        last_updated=row["last_updated"],
        current_step=row["current_step"],
        completed_steps=frozenset(row["completed_steps"]),
        form_submission_complete=row["form_submission_complete"],
        registration_status=RegistrationStatus(row["registration_status"]),
        payment_status=PaymentStatus(row["payment_status"]),
        contribution_amount=row["contribution_amount"],
        payment_id=row["payment_id"],
        applied_transaction_ids=tuple(row["applied_transaction_ids"]),
        version=row["version"],
    )


def _transaction_from_row(row: dict[str, Any]) -> Transaction:
    return Transaction(**row)


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning("Migrations directory not found: %s", migrations_dir)
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))
    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info("Running %d migration(s)", len(sql_files))
    for sql_file in sql_files:
        try:
            with pool.connection() as conn:
                conn.execute(sql_file.read_text())
        except Exception as e:
            logger.error("Migration failed: %s - %s", sql_file.name, e)
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
        logger.info("Migration complete: %s", sql_file.name)
