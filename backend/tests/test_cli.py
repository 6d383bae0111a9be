from datetime import timedelta

from sqlalchemy import text

from pos_ledger.extensions import db
from pos_ledger.services import sales_service
from pos_ledger.time_utils import utcnow

from conftest import line, stock_of


def _invoke(app, *args):
    return app.test_cli_runner().invoke(args=list(args))


def test_init_db_is_idempotent(app, db_session):
    result = _invoke(app, 'system', 'init-db')
    assert result.exit_code == 0
    assert 'Database schema ready' in result.output


def test_stock(app, product):
    result = _invoke(app, 'ledger', 'stock', str(product.id))
    assert result.exit_code == 0
    assert 'STICKER-A' in result.output
    assert '1000 pcs' in result.output


def test_stock_unknown_product(app, db_session):
    result = _invoke(app, 'ledger', 'stock', '999')
    assert result.exit_code != 0
    assert 'Product 999 not found' in result.output


def test_adjust(app, product):
    result = _invoke(app, 'ledger', 'adjust', str(product.id),
                     '--direction', 'out', '--pieces', '30', '--reason', 'Water damage')
    assert result.exit_code == 0, result.output
    assert '1000 -> 970' in result.output
    assert stock_of(product.id) == 970


def test_adjust_insufficient(app, make_product):
    p = make_product(stock=1)
    result = _invoke(app, 'ledger', 'adjust', str(p.id),
                     '--direction', 'out', '--pieces', '2', '--reason', 'Count')
    assert result.exit_code != 0
    assert stock_of(p.id) == 1


def test_movements(app, product):
    sale = sales_service.process_complete_payment([line(product.id, 1, 'box')])
    sales_service.undo_transaction(sale.id)

    result = _invoke(app, 'ledger', 'movements', '--sale-id', str(sale.id))
    assert result.exit_code == 0
    assert f'sale:{sale.id}' in result.output
    assert f'sale_undo:{sale.id}' in result.output
    assert 'reverses #' in result.output


def test_reconcile_reports_failure(app, product):
    sales_service.process_complete_payment([line(product.id, 1)])

    result = _invoke(app, 'ledger', 'reconcile')
    assert result.exit_code == 0
    assert '0 inconsistent' in result.output

    db.session.execute(text("UPDATE products SET stock_in_pieces = 5 WHERE id = :id"), {"id": product.id})
    db.session.commit()

    result = _invoke(app, 'ledger', 'reconcile', '--product-id', str(product.id))
    assert result.exit_code == 1
    assert 'FAIL' in result.output


def test_low_stock(app, make_product):
    make_product(stock=2, reorder_level=5, sku='LOW-1')
    make_product(stock=50, reorder_level=5, sku='OK-1')

    result = _invoke(app, 'ledger', 'low-stock')
    assert result.exit_code == 0
    assert 'LOW-1' in result.output
    assert 'OK-1' not in result.output


def test_stale_pending(app, product):
    result = _invoke(app, 'ledger', 'stale-pending', '--minutes', '0')
    assert 'No pending sales' in result.output

    sale = sales_service.create_transaction([line(product.id, 1)])
    sale.created_at = utcnow() - timedelta(minutes=90)
    db.session.commit()

    result = _invoke(app, 'ledger', 'stale-pending', '--minutes', '60')
    assert result.exit_code == 0
    assert f'sale={sale.id}' in result.output
