# flashsale

A small HTTP server that simulates a flash sale. Fifty buyers rush for a
product that has only forty units in stock. Each endpoint runs the rush with
a different concurrency strategy, so you can compare the number of orders
created with the stock that was available.

When the database is initialised it is seeded with one product, id `520`,
which holds 40 units. Each rush first resets that product's stock to 40 and
its version to 0, and clears its orders. It then starts 50 concurrent
purchases, one per user id from 0 to 49.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Running the server

```
flashsale
```

Options:

| Option | Default | Meaning |
| --- | --- | --- |
| `--database URL` | `sqlite:///flashsale.db` | SQLAlchemy database URL |
| `--host HOST` | `0.0.0.0` | address to listen on |
| `--port PORT` | `3000` | port to listen on |
| `--max-retry N` | `100` | attempts for each optimistic purchase |

On start-up the command creates the tables, inserts the seed product if it is
missing, and serves the application with Flask's threaded server. Each
purchase is logged at INFO level when it succeeds and at WARNING level when
it fails.

## Endpoints

The product and rush endpoints answer with a JSON object of this form:

```json
{"status": 200, "data": null, "msg": "...", "error": ""}
```

* `status` is one of the codes in `flashsale.codes.Code`, and it is also the HTTP status.
* `msg` is the text that `flashsale.codes.get_msg` gives for that code.
* `error` describes the failure when `status` is 500.

The `gid` query parameter selects the product. A value that is missing or is
not an integer counts as `0`.

| Path | What it does |
| --- | --- |
| `GET /ping` | Health check, answers `{"msg": "pong"}` |
| `GET /favicon.ico` | Serves `static/favicon` from the working directory, or 404 if that file is missing |
| `GET /good?gid=520` | Product details in `data`, or status 500 if the product does not exist |
| `GET /api/local/without-lock?gid=520` | Rush with no coordination: each buyer reads the stock and writes it back less one |
| `GET /api/local/with-lock?gid=520` | Rush with an in-process mutex around each purchase |
| `GET /api/local/pcc-read-lock?gid=520` | Rush reading the stock with `SELECT ... FOR UPDATE` |
| `GET /api/local/pcc-write-lock?gid=520` | Rush that decrements the stock with one conditional `UPDATE` |
| `GET /api/local/occ-lock?gid=520` | Rush with version-checked updates, random back-off and retries |
| `GET /api/local/channel?gid=520` | Rush that sends every request through one queue to a single worker |
| `GET /api/distributed/rush` | Answers `{"msg": "success"}` and does nothing else |

A rush returns status 200 with `data` set to `null` once all 50 buyers have
finished. The number of orders created is logged rather than returned. You
can inspect the result through the database, as in the Python example below.
A strategy that coordinates its buyers correctly leaves
`stock + orders == 40`.

Row locks only take effect on databases that support `FOR UPDATE`. SQLite
ignores the clause.

## Using it from Python

```python
from flashsale.models import Database, count_orders, get_count
from flashsale.service import run_pcc_write
from flashsale.app import create_app

db = Database("sqlite:///flashsale.db")
db.initialize()

response = run_pcc_write(db, 520)
print(response.to_dict())

with db.session() as session:
    print(get_count(session, 520), count_orders(session, 520))

app = create_app(db, max_retry=10)
app.run(port=8080)
```

### Modules

`flashsale.service` provides the single-purchase building blocks:

* `buy_good`, `buy_with_locked_read` and `buy_with_atomic_update` return `True` when they recorded an order.
* `buy_optimistic(db, gid, user_id, need=1, max_retry=100)` returns `True` on success.
  * It raises `OutOfStockError` when the stock cannot cover the request.
  * It raises `RetryExhaustedError` when every attempt lost its version check.
* `reset_database` restores a product's stock and clears its orders.
* `get_good_info` returns a `Response` holding the product.
* `get_order_queue` returns the shared queue that `run_channel` uses. It holds up to 100 requests.

`flashsale.models` holds the tables (`Good`, `GoodCount`, `GoodOrder`), the
`Database` wrapper and data-access helpers such as:

* `get_count`, `set_count` and `reduce_one`;
* `atomic_reduce_one` and `versioned_reduce`;
* `add_order`, `clear_orders` and `count_orders`.

`Database.transaction()` is a context manager. It commits on success and
rolls back on error. `find_good` and `get_good_count` raise `NotFoundError`
for a missing record.

`flashsale.response` defines `Response` with `to_dict()`, and the helpers
`success(data)` and `failure(error)`.

### Order messages

`flashsale.models.OrderMessage` is a JSON document of the form
`{"Gid": ..., "Uid": ...}`:

* Field names match case-insensitively.
* Missing fields count as 0.
* `to_json` and `from_json` convert between the document and the object.

`flashsale.service.handle_order_message(db, body)` decodes one such message
and makes the purchase. It raises `ValueError` if the body is not a valid
message.

## What it does not do

* The package has no distributed strategies. There is no Redis lock, no message-queue rush and no etcd lock. Under `/api/distributed` only the placeholder `/rush` endpoint exists.
* The package does not connect to a message broker. `handle_order_message` processes a message body that it is given, but nothing publishes or consumes messages from a queue server.