"""
Concurrent completion against a file-backed SQLite database.

Each worker thread runs in its own app context and therefore its own
session and connection, like separate request handlers would.
"""

import sqlite3
import threading

import pytest

from pos_ledger import create_app
from pos_ledger.errors import InsufficientStockError, StateConflictError
from pos_ledger.extensions import db
from pos_ledger.models import Product, StockMovement
from pos_ledger.services import sales_service, stock_ledger_service
from pos_ledger.services.concurrency import run_atomic

from conftest import line


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'ledger.sqlite3'}",
        'LEDGER_RETRY_ATTEMPTS': 10,
        'LEDGER_RETRY_BACKOFF': 0.01,
        'LOW_STOCK_ALERTS_ENABLED': False,
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()
        db.engine.dispose()


def _seed_product(app, stock):
    with app.app_context():
        product = Product(sku="CONC-1", name="Concurrent", stock_in_pieces=stock,
                          pieces_per_sheet=10, sheets_per_box=5)
        db.session.add(product)
        db.session.commit()
        return product.id


def _run_concurrently(app, targets):
    barrier = threading.Barrier(len(targets))
    outcomes = []
    lock = threading.Lock()

    def _worker(target):
        with app.app_context():
            barrier.wait()
            try:
                target()
                result = "ok"
            except (StateConflictError, InsufficientStockError) as e:
                result = e.kind
            with lock:
                outcomes.append(result)

    threads = [threading.Thread(target=_worker, args=(t,)) for t in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return sorted(outcomes)


def test_concurrent_complete_deducts_once(file_app):
    product_id = _seed_product(file_app, 1000)
    with file_app.app_context():
        sale_id = sales_service.create_transaction([line(product_id, 2, "box")]).id

    outcomes = _run_concurrently(
        file_app,
        [lambda: sales_service.complete_transaction(sale_id)] * 4,
    )

    assert outcomes == ["ok", "state_conflict", "state_conflict", "state_conflict"]
    with file_app.app_context():
        assert db.session.get(Product, product_id).stock_in_pieces == 900
        assert db.session.query(StockMovement).count() == 1


def test_concurrent_sales_cannot_oversell(file_app):
    product_id = _seed_product(file_app, 10)
    with file_app.app_context():
        first = sales_service.create_transaction([line(product_id, 6)]).id
        second = sales_service.create_transaction([line(product_id, 6)]).id

    outcomes = _run_concurrently(file_app, [
        lambda: sales_service.complete_transaction(first),
        lambda: sales_service.complete_transaction(second),
    ])

    assert outcomes == ["insufficient_stock", "ok"]
    with file_app.app_context():
        assert db.session.get(Product, product_id).stock_in_pieces == 4
        assert stock_ledger_service.reconcile_product(product_id)["is_consistent"] is True


def test_concurrent_undo_reverses_once(file_app):
    product_id = _seed_product(file_app, 100)
    with file_app.app_context():
        sale_id = sales_service.process_complete_payment([line(product_id, 1, "sheet")]).id

    outcomes = _run_concurrently(
        file_app,
        [lambda: sales_service.undo_transaction(sale_id)] * 3,
    )

    assert outcomes == ["ok", "state_conflict", "state_conflict"]
    with file_app.app_context():
        assert db.session.get(Product, product_id).stock_in_pieces == 100
        assert len(stock_ledger_service.sale_movements(sale_id)) == 2


def test_sales_on_different_products_all_complete(file_app):
    with file_app.app_context():
        products = [
            Product(sku=f"DISJOINT-{n}", name=f"Disjoint {n}", stock_in_pieces=10)
            for n in range(3)
        ]
        db.session.add_all(products)
        db.session.commit()
        product_ids = [p.id for p in products]
        sale_ids = [
            sales_service.create_transaction([line(pid, 4)]).id for pid in product_ids
        ]

    outcomes = _run_concurrently(
        file_app,
        [lambda sid=sid: sales_service.complete_transaction(sid) for sid in sale_ids],
    )

    assert outcomes == ["ok", "ok", "ok"]
    with file_app.app_context():
        assert [db.session.get(Product, pid).stock_in_pieces for pid in product_ids] == [6, 6, 6]


def test_run_atomic_takes_write_lock_despite_pending_changes(file_app, tmp_path):
    observed = []

    def _op():
        other = sqlite3.connect(tmp_path / "ledger.sqlite3", timeout=0)
        try:
            other.execute("BEGIN IMMEDIATE")
            observed.append("acquired")
            other.rollback()
        except sqlite3.OperationalError:
            observed.append("locked")
        finally:
            other.close()
        return db.session.query(Product).filter_by(sku="PENDING-1").count()

    with file_app.app_context():
        db.session.add(Product(sku="PENDING-1", name="Pending", stock_in_pieces=5))

        assert run_atomic(_op) == 1

    assert observed == ["locked"]
