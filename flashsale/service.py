"""Flash-sale purchase strategies and the services that exercise them."""

from __future__ import annotations

import logging
import queue
import random
import threading
import time
from collections.abc import Callable

from sqlalchemy.exc import SQLAlchemyError

from .models import (
    Database,
    NotFoundError,
    OrderMessage,
    add_order,
    atomic_reduce_one,
    clear_orders,
    count_orders,
    find_good,
    get_count,
    get_good_count,
    locked_get_count,
    reset_count,
    set_count,
    versioned_reduce,
)
from .response import Response, failure, success

logger = logging.getLogger(__name__)

PROPOSED_NUM = 50
"""Number of concurrent buyers each service starts (more than the stock)."""

QUEUE_SIZE = 100
DEFAULT_MAX_RETRY = 100
_BACKOFF_MAX_MS = 30

_buy_lock = threading.Lock()
_queue_lock = threading.Lock()
_order_queue: queue.Queue[tuple[int, int]] | None = None


class OutOfStockError(Exception):
    """Raised when the remaining stock cannot cover a purchase."""


class RetryExhaustedError(Exception):
    """Raised when an optimistic purchase keeps conflicting until retries run out."""


class _VersionConflict(Exception):
    """The stock row changed between reading and updating it."""


def get_order_queue() -> queue.Queue[tuple[int, int]]:
    """Return the process-wide queue of (goods id, user id) purchase requests."""
    global _order_queue
    with _queue_lock:
        if _order_queue is None:
            _order_queue = queue.Queue(maxsize=QUEUE_SIZE)
        return _order_queue


def reset_database(db: Database, gid: int) -> None:
    """Delete the product's orders and restore its stock and version."""
    with db.transaction() as session:
        clear_orders(session, gid)
        reset_count(session, gid)


def _buy_from_count(session, gid: int, user_id: int, counts: int) -> bool:
    if counts <= 0:
        return False
    set_count(session, gid, counts - 1)
    add_order(session, gid, user_id)
    return True


def buy_good(db: Database, gid: int, user_id: int) -> bool:
    """Read the stock, store it less one and record an order; True if one was made."""
    with db.transaction() as session:
        return _buy_from_count(session, gid, user_id, get_count(session, gid))


def buy_with_locked_read(db: Database, gid: int, user_id: int) -> bool:
    """Buy after reading the stock under a row lock; True if an order was made."""
    with db.transaction() as session:
        return _buy_from_count(session, gid, user_id, locked_get_count(session, gid))


def buy_with_atomic_update(db: Database, gid: int, user_id: int) -> bool:
    """Buy with a single conditional decrement; True if an order was made."""
    with db.transaction() as session:
        if atomic_reduce_one(session, gid) <= 0:
            return False
        add_order(session, gid, user_id)
        return True


def _backoff() -> None:
    time.sleep(random.randint(1, _BACKOFF_MAX_MS) / 1000)


def buy_optimistic(
    db: Database,
    gid: int,
    user_id: int,
    need: int = 1,
    max_retry: int = DEFAULT_MAX_RETRY,
) -> bool:
    """Buy ``need`` units using version checks, retrying on conflicts.

    Raises OutOfStockError when the stock is too low and RetryExhaustedError
    when every attempt conflicted.
    """
    for _ in range(max_retry):
        _backoff()
        with db.session() as reader:
            good = get_good_count(reader, gid)
            counts, version = good.counts, good.version
        if counts < need:
            raise OutOfStockError(f"stock of good {gid} is insufficient")
        try:
            with db.transaction() as session:
                try:
                    changed = versioned_reduce(session, gid, need, version)
                except SQLAlchemyError as exc:
                    raise _VersionConflict from exc
                if changed <= 0:
                    raise _VersionConflict
                add_order(session, gid, user_id)
        except _VersionConflict:
            _backoff()
            continue
        return True
    raise RetryExhaustedError(f"retries exhausted buying good {gid}")


def _attempt(buy: Callable[[Database, int, int], object], db: Database, gid: int, user_id: int) -> None:
    try:
        buy(db, gid, user_id)
    except Exception as exc:  # noqa: BLE001 - every failed buyer is only reported
        logger.warning("purchase by user %d of good %d failed: %s", user_id, gid, exc)
    else:
        logger.info("handled purchase by user %d of good %d", user_id, gid)


def _reset_quietly(db: Database, gid: int) -> None:
    try:
        reset_database(db, gid)
    except SQLAlchemyError as exc:
        logger.error("resetting good %d failed: %s", gid, exc)


def _summary(db: Database, gid: int) -> Response:
    try:
        with db.session() as session:
            orders = count_orders(session, gid)
    except SQLAlchemyError as exc:
        return failure(exc)
    logger.info("completed %d orders", orders)
    return success(None)


def _run_buyers(db: Database, gid: int, buy: Callable[[Database, int, int], object]) -> Response:
    _reset_quietly(db, gid)
    threads = [
        threading.Thread(target=_attempt, args=(buy, db, gid, user_id))
        for user_id in range(PROPOSED_NUM)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return _summary(db, gid)


def run_without_lock(db: Database, gid: int) -> Response:
    """Let all buyers race with no coordination."""
    return _run_buyers(db, gid, buy_good)


def run_with_lock(db: Database, gid: int) -> Response:
    """Serialise buyers with a process-wide mutex."""

    def locked_buy(db: Database, gid: int, user_id: int) -> bool:
        with _buy_lock:
            return buy_good(db, gid, user_id)

    return _run_buyers(db, gid, locked_buy)


def run_pcc_read(db: Database, gid: int) -> Response:
    """Coordinate buyers with a locking read of the stock row."""
    return _run_buyers(db, gid, buy_with_locked_read)


def run_pcc_write(db: Database, gid: int) -> Response:
    """Coordinate buyers with a single conditional update."""
    return _run_buyers(db, gid, buy_with_atomic_update)


def run_occ(db: Database, gid: int, max_retry: int = DEFAULT_MAX_RETRY) -> Response:
    """Coordinate buyers with optimistic version checks."""

    def occ_buy(db: Database, gid: int, user_id: int) -> bool:
        return buy_optimistic(db, gid, user_id, 1, max_retry)

    return _run_buyers(db, gid, occ_buy)


def run_channel(db: Database, gid: int) -> Response:
    """Funnel every purchase through the order queue to a single worker."""
    _reset_quietly(db, gid)
    requests = get_order_queue()

    def receive() -> None:
        for _ in range(PROPOSED_NUM):
            req_gid, user_id = requests.get()
            try:
                _attempt(buy_good, db, req_gid, user_id)
            finally:
                requests.task_done()

    receiver = threading.Thread(target=receive)
    receiver.start()
    senders = [
        threading.Thread(target=requests.put, args=((gid, user_id),))
        for user_id in range(PROPOSED_NUM)
    ]
    for sender in senders:
        sender.start()
    for sender in senders:
        sender.join()
    receiver.join()
    return _summary(db, gid)


def get_good_info(db: Database, gid: int) -> Response:
    """Return the product's details, or an error response if it cannot be read."""
    try:
        with db.session() as session:
            good = find_good(session, gid)
    except (NotFoundError, SQLAlchemyError) as exc:
        return failure(exc)
    return success(good)


def handle_order_message(db: Database, body: str | bytes) -> bool:
    """Apply one queued order message; True if an order was recorded.

    Raises ValueError if the message cannot be decoded.
    """
    message = OrderMessage.from_json(body)
    created = buy_good(db, message.gid, message.uid)
    logger.info("order message for good %d processed", message.gid)
    return created