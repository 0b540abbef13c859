"""
PostgreSQL repository adapter - Implements UserStore protocol.

This module provides the PostgreSQL implementation of the domain's
user store port using psycopg3 with raw SQL.

Transaction Design:
-------------------
1. **create_user_and_company**: The company row (if any) and the user row
   are inserted inside one ``conn.transaction()`` block. Either both commit
   or neither does, so a failed registration never leaves a company without
   its owner.

2. **Uniqueness**: ``users.email`` and ``users.username`` carry UNIQUE
   constraints. Two concurrent registrations for the same email can both pass
   the orchestrator's duplicate check; the constraint guarantees that at most
   one INSERT commits. The loser gets UserStoreError("unique violation").

3. **Error translation**: every psycopg error (including pool timeouts) is
   converted into UserStoreError with a short, data-free detail string.
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

import psycopg
from psycopg import errors
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from src.domain.exceptions import UserStoreError
from src.domain.models import AccountType, CompanyRecord, LocalUserRecord

logger = logging.getLogger(__name__)

_SELECT_USER = """
    SELECT u.id, u.account_type, u.first_name, u.last_name, u.username, u.email,
           u.phone_number, u.password_hash, u.country, u.disabled,
           c.id AS company_id, c.company_name, c.tax_id,
           c.phone_number AS company_phone_number, c.country AS company_country,
           c.city AS company_city, c.zip_code AS company_zip_code
    FROM users u
    LEFT JOIN companies c ON c.id = u.company_id
"""


class PostgresUserStore:
    """
    Implements UserStore protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize store with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def find_by_email(self, email: str) -> LocalUserRecord | None:
        return self._find_one("WHERE u.email = %s", (email,))

    def find_by_username(self, username: str) -> LocalUserRecord | None:
        return self._find_one("WHERE u.username = %s", (username,))

    def find_by_id(self, user_id: int) -> LocalUserRecord | None:
        return self._find_one("WHERE u.id = %s", (user_id,))

    def create_user_and_company(self, user: LocalUserRecord) -> LocalUserRecord:
        """
        Insert the user and its optional company in a single transaction.

        Args:
            user: New record with bcrypt password hash, ``id`` unset

        Returns:
            Copy of the record with user and company ids assigned

        Raises:
            UserStoreError: If the transaction does not commit
        """
        company_sql = """
            INSERT INTO companies (company_name, tax_id, phone_number, country, city, zip_code)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING id
        """
        user_sql = """
            INSERT INTO users (account_type, first_name, last_name, username, email,
                               phone_number, password_hash, country, disabled, company_id)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id
        """

        try:
            with self._pool.connection() as conn, conn.transaction(), conn.cursor() as cursor:
                company = user.company
                if company is not None:
                    cursor.execute(
                        company_sql,
                        (
                            company.company_name,
                            company.tax_id,
                            company.phone_number,
                            company.country,
                            company.city,
                            company.zip_code,
                        ),
                    )
                    company = replace(company, id=cursor.fetchone()[0])

                cursor.execute(
                    user_sql,
                    (
                        user.account_type.value,
                        user.first_name,
                        user.last_name,
                        user.username,
                        user.email,
                        user.phone_number,
                        user.password_hash,
                        user.country,
                        user.disabled,
                        company.id if company is not None else None,
                    ),
                )
                user_id = cursor.fetchone()[0]
        except psycopg.Error as exc:
            raise _store_error("create user", exc) from exc

        logger.info("User persisted: %s (id %s)", user.username, user_id)
        return replace(user, id=user_id, company=company)

    def update_user(self, user: LocalUserRecord) -> LocalUserRecord:
        """
        Write back user fields and, when present, the owned company row.

        Raises:
            UserStoreError: If the transaction does not commit
        """
        user_sql = """
            UPDATE users
            SET first_name = %s, last_name = %s, email = %s, phone_number = %s,
                password_hash = %s, country = %s, disabled = %s
            WHERE id = %s
        """
        company_sql = """
            UPDATE companies
            SET company_name = %s, tax_id = %s, phone_number = %s,
                country = %s, city = %s, zip_code = %s
            WHERE id = %s
        """

        try:
            with self._pool.connection() as conn, conn.transaction(), conn.cursor() as cursor:
                cursor.execute(
                    user_sql,
                    (
                        user.first_name,
                        user.last_name,
                        user.email,
                        user.phone_number,
                        user.password_hash,
                        user.country,
                        user.disabled,
                        user.id,
                    ),
                )
                company = user.company
                if company is not None and company.id is not None:
                    cursor.execute(
                        company_sql,
                        (
                            company.company_name,
                            company.tax_id,
                            company.phone_number,
                            company.country,
                            company.city,
                            company.zip_code,
                            company.id,
                        ),
                    )
        except psycopg.Error as exc:
            raise _store_error("update user", exc) from exc
        return user

    def _find_one(self, where: str, params: tuple[Any, ...]) -> LocalUserRecord | None:
        try:
            with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
                cursor.execute(_SELECT_USER + where, params)
                row = cursor.fetchone()
        except psycopg.Error as exc:
            raise _store_error("find user", exc) from exc
        return _row_to_user(row) if row is not None else None


def _row_to_user(row: dict[str, Any]) -> LocalUserRecord:
    company = None
    if row["company_id"] is not None:
        company = CompanyRecord(
            id=row["company_id"],
            company_name=row["company_name"],
            tax_id=row["tax_id"],
            phone_number=row["company_phone_number"],
            country=row["company_country"],
            city=row["company_city"],
            zip_code=row["company_zip_code"],
        )
    return LocalUserRecord(
        id=row["id"],
        account_type=AccountType(row["account_type"] or AccountType.PERSONAL.value),
        first_name=row["first_name"],
        last_name=row["last_name"],
        username=row["username"],
        email=row["email"],
        phone_number=row["phone_number"],
        password_hash=row["password_hash"],
        country=row["country"],
        disabled=row["disabled"],
        company=company,
    )


def _store_error(operation: str, exc: psycopg.Error) -> UserStoreError:
    """Translate a psycopg error without leaking row data into the detail."""
    if isinstance(exc, errors.UniqueViolation):
        detail = "unique violation"
    elif isinstance(exc, psycopg.IntegrityError):
        detail = "integrity violation"
    elif isinstance(exc, psycopg.OperationalError):
        detail = "database unavailable"
    else:
        detail = "database error"
    logger.error("%s failed: %s (%s)", operation, detail, type(exc).__name__)
    return UserStoreError(detail)


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
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
