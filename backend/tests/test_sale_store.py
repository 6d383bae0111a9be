from datetime import timedelta

from pos_ledger.extensions import db
from pos_ledger.models import Sale
from pos_ledger.services import sale_store_service, sales_service
from pos_ledger.time_utils import utcnow

from conftest import line


def _old_pending_sale(product_id, minutes_ago):
    sale = sales_service.create_transaction([line(product_id, 1)])
    sale.created_at = utcnow() - timedelta(minutes=minutes_ago)
    db.session.commit()
    return sale


def test_list_sales_filters(product):
    pending = sales_service.create_transaction([line(product.id, 1)])
    completed = sales_service.process_complete_payment([line(product.id, 1)])
    undone = sales_service.process_complete_payment([line(product.id, 1)])
    sales_service.undo_transaction(undone.id)

    all_ids = [s.id for s in sale_store_service.list_sales()]
    assert all_ids == sorted(all_ids, reverse=True)
    assert set(all_ids) == {pending.id, completed.id, undone.id}

    assert [s.id for s in sale_store_service.list_sales(status="pending")] == [pending.id]
    assert [s.id for s in sale_store_service.list_sales(is_edited=True)] == [undone.id]
    assert {s.id for s in sale_store_service.list_sales(status="completed", is_edited=False)} == {completed.id}
    assert len(sale_store_service.list_sales(limit=2)) == 2
    assert len(sale_store_service.list_sales(limit=2, offset=2)) == 1


def test_list_sales_date_window(product):
    old = _old_pending_sale(product.id, minutes_ago=60 * 24 * 3)
    recent = sales_service.create_transaction([line(product.id, 1)])

    since_yesterday = sale_store_service.list_sales(date_from=utcnow() - timedelta(days=1))
    assert [s.id for s in since_yesterday] == [recent.id]

    before_yesterday = sale_store_service.list_sales(date_to=utcnow() - timedelta(days=1))
    assert [s.id for s in before_yesterday] == [old.id]


def test_todays_sales(product):
    _old_pending_sale(product.id, minutes_ago=60 * 24 * 2)
    today = sales_service.create_transaction([line(product.id, 1)])

    assert [s.id for s in sale_store_service.list_todays_sales()] == [today.id]


def test_revenue_stats_excludes_pending_and_undone(product):
    sales_service.create_transaction([line(product.id, 1, unit_price_cents=100)])
    sales_service.process_complete_payment([line(product.id, 2, unit_price_cents=250)])
    undone = sales_service.process_complete_payment([line(product.id, 1, unit_price_cents=700)])
    sales_service.undo_transaction(undone.id)

    # Edited and completed again: counts as revenue
    recompleted = sales_service.process_complete_payment([line(product.id, 1, unit_price_cents=50)])
    sales_service.edit_transaction(recompleted.id, [line(product.id, 1, unit_price_cents=80)])
    sales_service.complete_transaction(recompleted.id)

    stats = sale_store_service.revenue_stats()
    assert stats == {
        "total_transactions": 4,
        "pending_transactions": 1,
        "completed_transactions": 2,
        "undone_transactions": 1,
        "edited_transactions": 2,
        "total_revenue_cents": 500 + 80,
        "undone_revenue_cents": 700,
    }


def test_find_stale_pending_sales(product):
    stale = _old_pending_sale(product.id, minutes_ago=120)
    _old_pending_sale(product.id, minutes_ago=5)
    old_completed = _old_pending_sale(product.id, minutes_ago=300)
    sales_service.complete_transaction(old_completed.id)

    assert [s.id for s in sale_store_service.find_stale_pending_sales(60)] == [stale.id]


def test_count_by_status(product):
    assert sale_store_service.count_by_status() == {"pending": 0, "completed": 0}
    sales_service.create_transaction([line(product.id, 1)])
    sales_service.process_complete_payment([line(product.id, 1)])
    assert sale_store_service.count_by_status() == {"pending": 1, "completed": 1}
    assert db.session.query(Sale).count() == 2
