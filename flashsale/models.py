"""Database tables, connection handling and data-access helpers."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    DateTime,
    Float,
    Integer,
    String,
    create_engine,
    delete,
    func,
    select,
    update,
)
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

SEED_GOODS_ID = 520
INITIAL_STOCK = 40


def _now() -> datetime:
    return datetime.now()


class NotFoundError(LookupError):
    """Raised when a requested record does not exist."""


class Base(DeclarativeBase):
    """Declarative base for all tables."""


class Good(Base):
    """A product on sale."""

    __tablename__ = "goods"

    goods_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    title: Mapped[str] = mapped_column(String(256), default="")
    sub_title: Mapped[str] = mapped_column(String(256), default="")
    original_price: Mapped[float] = mapped_column(Float, default=0.0)
    current_price: Mapped[float] = mapped_column(Float, default=0.0)
    category_id: Mapped[int] = mapped_column(BigInteger, default=0)

    def to_dict(self) -> dict[str, Any]:
        """Return the product as a JSON-ready mapping."""
        return {
            "GoodsId": self.goods_id,
            "Title": self.title,
            "SubTitle": self.sub_title,
            "OriginalPrice": self.original_price,
            "CurrentPrice": self.current_price,
            "CategoryId": self.category_id,
        }


class GoodCount(Base):
    """Remaining stock of a product, with a version for optimistic locking."""

    __tablename__ = "good_counts"

    goods_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    counts: Mapped[int] = mapped_column(BigInteger, default=0)
    last_update_time: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)
    version: Mapped[int] = mapped_column(BigInteger, default=0)


class GoodOrder(Base):
    """One sold unit of a product."""

    __tablename__ = "good_orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    goods_id: Mapped[int] = mapped_column(BigInteger, index=True)
    user_id: Mapped[int] = mapped_column(BigInteger)
    sold_time: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)


@dataclass(frozen=True)
class OrderMessage:
    """An order request passed through the order queue."""

    gid: int
    uid: int

    def to_json(self) -> str:
        """Encode the message as JSON."""
        return json.dumps({"Gid": self.gid, "Uid": self.uid})

    @staticmethod
    def from_json(text: str | bytes) -> OrderMessage:
        """Decode a message; field names match case-insensitively, missing ones are 0."""
        payload = json.loads(text)
        if not isinstance(payload, dict):
            raise ValueError("order message must be a JSON object")
        fields = {str(key).lower(): value for key, value in payload.items()}
        values = {}
        for name in ("gid", "uid"):
            value = fields.get(name, 0)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"field {name!r} must be an integer")
            values[name] = value
        return OrderMessage(**values)


class Database:
    """An engine and session factory bound to one database URL."""

    def __init__(self, url: str) -> None:
        parsed = make_url(url)
        options: dict[str, Any] = {}
        if parsed.get_backend_name() == "sqlite":
            options["connect_args"] = {"check_same_thread": False}
            if parsed.database in (None, "", ":memory:"):
                options["poolclass"] = StaticPool
        else:
            options.update(pool_size=20, max_overflow=80, pool_recycle=180)
        self.engine = create_engine(url, **options)
        self._sessions = sessionmaker(self.engine, expire_on_commit=False)

    def initialize(self) -> None:
        """Create the tables and insert the seed product and its stock."""
        Base.metadata.create_all(self.engine)
        with self.transaction() as session:
            if session.get(Good, SEED_GOODS_ID) is None:
                session.add(
                    Good(
                        goods_id=SEED_GOODS_ID,
                        title="雅马哈P48电子钢琴",
                        sub_title="88键重锤便携电子钢琴",
                        original_price=3294.0,
                        current_price=2964.0,
                        category_id=1,
                    )
                )
            if session.get(GoodCount, SEED_GOODS_ID) is None:
                session.add(GoodCount(goods_id=SEED_GOODS_ID, counts=INITIAL_STOCK, version=0))

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a session in a transaction, committed on success, rolled back on error."""
        with self._sessions.begin() as session:
            yield session

    def session(self) -> Session:
        """Return a new session for reads outside an explicit transaction."""
        return self._sessions()


def find_good(session: Session, gid: int) -> Good:
    """Return the product with the given id."""
    good = session.get(Good, gid)
    if good is None:
        raise NotFoundError(f"record not found: good {gid}")
    return good


def get_count(session: Session, gid: int) -> int:
    """Return the stock of a product, 0 if it has no stock row."""
    value = session.scalar(select(GoodCount.counts).where(GoodCount.goods_id == gid))
    return int(value or 0)


def get_good_count(session: Session, gid: int) -> GoodCount:
    """Return the stock row of a product."""
    row = session.scalar(select(GoodCount).where(GoodCount.goods_id == gid))
    if row is None:
        raise NotFoundError(f"record not found: good count {gid}")
    return row


def reset_count(session: Session, gid: int) -> None:
    """Restore a product's stock to the initial amount and its version to 0."""
    session.execute(
        update(GoodCount)
        .where(GoodCount.goods_id == gid)
        .values(counts=INITIAL_STOCK, version=0)
    )


def set_count(session: Session, gid: int, new_count: int) -> None:
    """Set a product's stock to ``new_count``."""
    session.execute(
        update(GoodCount).where(GoodCount.goods_id == gid).values(counts=new_count)
    )


def reduce_one(session: Session, gid: int) -> None:
    """Read the stock and, if positive, store it less one."""
    counts = get_count(session, gid)
    if counts <= 0:
        return
    set_count(session, gid, counts - 1)


def add_order(session: Session, gid: int, user_id: int) -> GoodOrder:
    """Record an order of product ``gid`` by ``user_id``."""
    order = GoodOrder(goods_id=gid, user_id=user_id)
    session.add(order)
    session.flush()
    return order


def clear_orders(session: Session, gid: int) -> None:
    """Delete every order of a product."""
    session.execute(delete(GoodOrder).where(GoodOrder.goods_id == gid))


def count_orders(session: Session, gid: int) -> int:
    """Return the number of orders of a product."""
    value = session.scalar(
        select(func.count()).select_from(GoodOrder).where(GoodOrder.goods_id == gid)
    )
    return int(value or 0)


def locked_get_count(session: Session, gid: int) -> int:
    """Read the stock while holding a row lock (SELECT ... FOR UPDATE)."""
    value = session.scalar(
        select(GoodCount.counts).where(GoodCount.goods_id == gid).with_for_update()
    )
    return int(value or 0)


def atomic_reduce_one(session: Session, gid: int) -> int:
    """Decrement the stock in one statement if positive; return rows changed."""
    result = session.execute(
        update(GoodCount)
        .where(GoodCount.counts > 0, GoodCount.goods_id == gid)
        .values(counts=GoodCount.counts - 1)
    )
    return int(result.rowcount)


def versioned_reduce(session: Session, gid: int, need: int, version: int) -> int:
    """Take ``need`` from the stock if the version still matches; return rows changed."""
    result = session.execute(
        update(GoodCount)
        .where(GoodCount.version == version, GoodCount.goods_id == gid)
        .values(counts=GoodCount.counts - need, version=GoodCount.version + 1)
    )
    return int(result.rowcount)