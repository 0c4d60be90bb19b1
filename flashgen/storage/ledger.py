from typing import Any, Dict, List

from loguru import logger
from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    insert,
    select,
)
from sqlalchemy.engine import Engine

from ..data.models import Order, TransactionRecord

metadata = MetaData()

# Column names are the wire contract read by the admin UI and order history.
orders = Table(
    "orders",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("userId", String, nullable=False, index=True),
    Column("userEmail", String, default=""),
    Column("userWalletAddress", String, nullable=False),
    Column("tokenId", String, nullable=False),
    Column("tokenName", String),
    Column("tokenSymbol", String),
    Column("usdAmountToSpend", Float),
    Column("tokenAmount", Float),
    Column("recipientAddress", String),
    Column("bnbAmount", Float),
    Column("bnbPrice", Float),
    Column("paymentHash", String),
    Column("devPaymentHash", String, default=""),
    Column("status", String, nullable=False),
    Column("type", String, nullable=False),
    Column("createdAt", DateTime(timezone=True)),
    Column("completedAt", DateTime(timezone=True), nullable=True),
    Column("treasuryFlatFeeUsd", Float),
    Column("devFeeUsd", Float),
    Column("treasuryTokenFeePercent", Float),
)

transactions = Table(
    "transactions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("userId", String, nullable=False, index=True),
    Column("type", String, nullable=False),
    Column("amount", Float),
    Column("token", String),
    Column("hash", String),
    Column("status", String, nullable=False),
    Column("recipient", String),
    Column("timestamp", DateTime(timezone=True)),
)


def _row(model) -> Dict[str, Any]:
    # keep datetimes as objects for the DateTime columns
    return model.model_dump(by_alias=True, mode="python")


class LedgerStore:
    """Append-only order / transaction ledger."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def create_tables(self):
        metadata.create_all(self.engine)

    def record_order(self, order: Order) -> int:
        row = _row(order)
        row["status"] = order.status.value
        row["type"] = order.order_type.value
        with self.engine.begin() as conn:
            result = conn.execute(insert(orders).values(**row))
            order_id = result.inserted_primary_key[0]
        logger.info(f"Recorded {row['type']} order {order_id} for user {order.user_id} ({row['status']})")
        return order_id

    def record_transaction(self, record: TransactionRecord) -> int:
        row = _row(record)
        row["type"] = record.tx_type.value
        row["status"] = record.status.value
        with self.engine.begin() as conn:
            result = conn.execute(insert(transactions).values(**row))
            return result.inserted_primary_key[0]

    def orders_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        query = select(orders).where(orders.c.userId == user_id).order_by(orders.c.id.desc())
        with self.engine.connect() as conn:
            return [dict(r._mapping) for r in conn.execute(query)]

    def transactions_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        query = select(transactions).where(transactions.c.userId == user_id).order_by(transactions.c.id.desc())
        with self.engine.connect() as conn:
            return [dict(r._mapping) for r in conn.execute(query)]


def create_ledger(database_url: str) -> LedgerStore:
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    engine = create_engine(database_url, connect_args=connect_args)
    store = LedgerStore(engine)
    store.create_tables()
    logger.info("✅ Ledger ready")
    return store
