from unittest.mock import patch

import pytest

from flashsale.app import create_app, main
from flashsale.codes import Code, get_msg
from flashsale.models import (
    INITIAL_STOCK,
    SEED_GOODS_ID,
    Database,
    count_orders,
    find_good,
    get_count,
)


@pytest.fixture
def db(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'sale.db'}")
    database.initialize()
    return database


@pytest.fixture
def client(db):
    return create_app(db, 200).test_client()


def _totals(db):
    with db.session() as session:
        return count_orders(session, SEED_GOODS_ID), get_count(session, SEED_GOODS_ID)


def test_ping(client):
    resp = client.get("/ping")
    assert resp.status_code == 200
    assert resp.get_json() == {"msg": "pong"}


def test_rush(client):
    resp = client.get("/api/distributed/rush")
    assert resp.status_code == 200
    assert resp.get_json() == {"msg": "success"}


def test_good_info_found(client):
    resp = client.get(f"/good?gid={SEED_GOODS_ID}")
    assert resp.status_code == int(Code.SUCCESS)
    body = resp.get_json()
    assert body["status"] == int(Code.SUCCESS)
    assert body["msg"] == get_msg(Code.SUCCESS)
    assert body["error"] == ""
    assert body["data"]["GoodsId"] == SEED_GOODS_ID
    assert body["data"]["Title"] == "雅马哈P48电子钢琴"
    assert body["data"]["CurrentPrice"] == 2964.0


def test_good_info_accepts_signed_gid(client):
    resp = client.get(f"/good?gid=+{SEED_GOODS_ID}")
    assert resp.get_json()["data"]["GoodsId"] == SEED_GOODS_ID


def test_good_info_missing(client):
    resp = client.get("/good?gid=1")
    assert resp.status_code == int(Code.ERROR)
    body = resp.get_json()
    assert body["data"] is None
    assert body["msg"] == get_msg(Code.ERROR)
    assert body["error"]


@pytest.mark.parametrize("query", ["", "?gid=abc", "?gid=5x", "?gid= 520"])
def test_non_integer_gid_is_zero(client, query):
    resp = client.get(f"/good{query}")
    assert resp.status_code == int(Code.ERROR)
    assert resp.get_json()["data"] is None


def test_with_lock_sells_exactly_the_stock(client, db):
    resp = client.get(f"/api/local/with-lock?gid={SEED_GOODS_ID}")
    assert resp.status_code == int(Code.SUCCESS)
    assert resp.get_json()["msg"] == get_msg(Code.SUCCESS)
    assert _totals(db) == (INITIAL_STOCK, 0)


def test_channel_sells_exactly_the_stock(client, db):
    resp = client.get(f"/api/local/channel?gid={SEED_GOODS_ID}")
    assert resp.status_code == int(Code.SUCCESS)
    assert _totals(db) == (INITIAL_STOCK, 0)


@pytest.mark.parametrize("path", ["pcc-write-lock", "occ-lock"])
def test_coordinated_strategies_conserve_stock(client, db, path):
    resp = client.get(f"/api/local/{path}?gid={SEED_GOODS_ID}")
    assert resp.status_code == int(Code.SUCCESS)
    orders, remaining = _totals(db)
    assert orders + remaining == INITIAL_STOCK
    assert remaining >= 0


def test_strategy_resets_previous_orders(client, db):
    client.get(f"/api/local/with-lock?gid={SEED_GOODS_ID}")
    client.get(f"/api/local/with-lock?gid={SEED_GOODS_ID}")
    assert _totals(db) == (INITIAL_STOCK, 0)


def test_favicon_missing(client, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert client.get("/favicon.ico").status_code == 404


def test_favicon_served(client, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "static").mkdir()
    (tmp_path / "static" / "favicon").write_bytes(b"icon-bytes")
    resp = client.get("/favicon.ico")
    assert resp.status_code == 200
    assert resp.data == b"icon-bytes"


def test_main_initialises_and_runs(tmp_path):
    url = f"sqlite:///{tmp_path / 'main.db'}"
    with patch("flask.Flask.run") as run:
        result = main(["--database", url, "--port", "1234", "--host", "127.0.0.1"])
    assert result == 0
    run.assert_called_once()
    assert run.call_args.kwargs["port"] == 1234
    assert run.call_args.kwargs["host"] == "127.0.0.1"
    with Database(url).session() as session:
        assert find_good(session, SEED_GOODS_ID).sub_title == "88键重锤便携电子钢琴"
        assert get_count(session, SEED_GOODS_ID) == INITIAL_STOCK