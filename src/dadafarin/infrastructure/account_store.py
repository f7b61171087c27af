"""Accounts, subscription validity, prices and payment transactions (SQLite)."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from loguru import logger

from dadafarin.domain.models import PaymentStatus, Price, Transaction, User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    first_name TEXT,
    last_name TEXT,
    valid_until TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS prices (
    time INTEGER PRIMARY KEY,
    price REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    valid_until TEXT NOT NULL,
    amount_paid REAL NOT NULL,
    payment_status TEXT NOT NULL CHECK(payment_status IN ('PENDING', 'COMPLETED')),
    id_get TEXT NOT NULL,
    trans_id TEXT,
    external_payment_id TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_transactions_id_get ON transactions(id_get);
"""


def _utcnow() -> str:
    return datetime.now(UTC).isoformat(timespec="seconds")


class AccountStore:
    """CRUD over users, prices and transactions stored in a SQLite file.

    ``valid_until`` values are stored as ISO-8601 strings with their UTC offset;
    values written without an offset are read back as *tz* local time.
    """

    def __init__(self, db_path: Path, tz: str = "Asia/Tehran") -> None:
        self.db_path = db_path
        self.tz = ZoneInfo(tz)
        self.conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Open (or create) the database and ensure the schema exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self.conn.executescript(_SCHEMA_SQL)
        self.conn.commit()
        logger.info("Account store ready at {}", self.db_path)

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(
        self,
        email: str,
        password_hash: str,
        first_name: str | None,
        last_name: str | None,
        valid_until: datetime | None,
    ) -> User:
        """Insert a new user. Raises ``sqlite3.IntegrityError`` on a duplicate email."""
        assert self.conn
        now = _utcnow()
        cur = self.conn.execute(
            "INSERT INTO users (email, password_hash, first_name, last_name, valid_until, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (email, password_hash, first_name, last_name, self._dump_dt(valid_until), now),
        )
        self.conn.commit()
        logger.info("Created user {} ({})", cur.lastrowid, email)
        return User(
            id=cur.lastrowid,
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            valid_until=valid_until,
            created_at=now,
        )

    def get_user(self, user_id: int) -> User | None:
        assert self.conn
        row = self.conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._row_to_user(row) if row else None

    def get_user_by_email(self, email: str) -> User | None:
        assert self.conn
        row = self.conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return self._row_to_user(row) if row else None

    def get_valid_until(self, user_id: int) -> datetime | None:
        user = self.get_user(user_id)
        return user.valid_until if user else None

    def set_valid_until(self, user_id: int, valid_until: datetime | None) -> None:
        assert self.conn
        self.conn.execute(
            "UPDATE users SET valid_until = ? WHERE id = ?",
            (self._dump_dt(valid_until), user_id),
        )
        self.conn.commit()

    # ------------------------------------------------------------------
    # Prices
    # ------------------------------------------------------------------

    def seed_prices(self, prices: dict[int, float]) -> None:
        """Insert the default price table when no prices exist yet."""
        assert self.conn
        (count,) = self.conn.execute("SELECT COUNT(*) FROM prices").fetchone()
        if count:
            return
        self.conn.executemany(
            "INSERT INTO prices (time, price) VALUES (?, ?)", sorted(prices.items())
        )
        self.conn.commit()
        logger.info("Seeded {} price options", len(prices))

    def list_prices(self) -> list[Price]:
        assert self.conn
        rows = self.conn.execute("SELECT time, price FROM prices ORDER BY time ASC").fetchall()
        return [Price(time=row["time"], price=row["price"]) for row in rows]

    def get_price_by_time(self, hours: int) -> Price | None:
        assert self.conn
        row = self.conn.execute("SELECT time, price FROM prices WHERE time = ?", (hours,)).fetchone()
        return Price(time=row["time"], price=row["price"]) if row else None

    def get_price_by_amount(self, amount: float) -> Price | None:
        assert self.conn
        row = self.conn.execute(
            "SELECT time, price FROM prices WHERE price = ? ORDER BY time LIMIT 1", (amount,)
        ).fetchone()
        return Price(time=row["time"], price=row["price"]) if row else None

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def create_pending_transaction(
        self, user_id: int, valid_until: datetime, amount_paid: float, id_get: str
    ) -> Transaction:
        assert self.conn
        now = _utcnow()
        cur = self.conn.execute(
            "INSERT INTO transactions "
            "(user_id, valid_until, amount_paid, payment_status, id_get, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (user_id, self._dump_dt(valid_until), amount_paid, PaymentStatus.PENDING, id_get, now),
        )
        self.conn.commit()
        return Transaction(
            id=cur.lastrowid,
            user_id=user_id,
            valid_until=valid_until,
            amount_paid=amount_paid,
            payment_status=PaymentStatus.PENDING,
            id_get=id_get,
            created_at=now,
        )

    def get_pending_transaction(self, id_get: str) -> Transaction | None:
        assert self.conn
        row = self.conn.execute(
            "SELECT * FROM transactions WHERE id_get = ? AND payment_status = ? "
            "ORDER BY id DESC LIMIT 1",
            (id_get, PaymentStatus.PENDING),
        ).fetchone()
        return self._row_to_transaction(row) if row else None

    def complete_transaction(
        self, transaction: Transaction, trans_id: str, external_payment_id: str | None
    ) -> None:
        """Mark *transaction* COMPLETED and extend its user's subscription atomically."""
        assert self.conn
        with self.conn:
            cur = self.conn.execute(
                "UPDATE transactions SET payment_status = ?, trans_id = ?, external_payment_id = ? "
                "WHERE id = ? AND payment_status = ?",
                (
                    PaymentStatus.COMPLETED,
                    trans_id,
                    external_payment_id,
                    transaction.id,
                    PaymentStatus.PENDING,
                ),
            )
            if cur.rowcount != 1:
                raise LookupError(f"Transaction {transaction.id} is not pending")
            self.conn.execute(
                "UPDATE users SET valid_until = ? WHERE id = ?",
                (self._dump_dt(transaction.valid_until), transaction.user_id),
            )
        logger.info(
            "Transaction {} completed | user={} valid_until={}",
            transaction.id,
            transaction.user_id,
            transaction.valid_until.isoformat(),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _dump_dt(value: datetime | None) -> str | None:
        return value.isoformat() if value is not None else None

    def _load_dt(self, value: str | None) -> datetime | None:
        if not value:
            return None
        parsed = datetime.fromisoformat(value)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=self.tz)

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            email=row["email"],
            password_hash=row["password_hash"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            valid_until=self._load_dt(row["valid_until"]),
            created_at=row["created_at"],
        )

    def _row_to_transaction(self, row: sqlite3.Row) -> Transaction:
        return Transaction(
            id=row["id"],
            user_id=row["user_id"],
            valid_until=self._load_dt(row["valid_until"]),
            amount_paid=row["amount_paid"],
            payment_status=PaymentStatus(row["payment_status"]),
            id_get=row["id_get"],
            trans_id=row["trans_id"],
            external_payment_id=row["external_payment_id"],
            created_at=row["created_at"],
        )
