from decimal import Decimal

import pytest
from sqlalchemy import select

from stockdesk.app.db.models.core_types import OrderStatus, Role
from stockdesk.app.db.models.models_v1 import AuditLog, Order, StockItem, User
from stockdesk.services import inventory
from stockdesk.services.errors import (
    InsufficientStock,
    InvalidTransition,
    NotFound,
    OrderNotFound,
    ValidationError,
)
from stockdesk.services.orders import (
    LineRequest,
    approve_order,
    create_order,
    get_order_for,
    list_orders_for,
    reject_order,
)


@pytest.fixture
def actors(make_user):
    return {
        "rep": make_user("rep", Role.sales_rep),
        "rep2": make_user("rep2", Role.sales_rep),
        "keeper": make_user("keeper", Role.store_keeper),
    }


def _user(db, user_id) -> User:
    return db.get(User, user_id)


def _new_order(db, rep_id, lines) -> int:
    order = create_order(
        db,
        sales_rep=_user(db, rep_id),
        customer_name="ACME",
        customer_contact="0911",
        items=[LineRequest(*ln) for ln in lines],
    )
    return order.id


def _snapshot(db, order_id, stock_ids):
    db.expire_all()
    order = db.get(Order, order_id)
    return (
        order.status,
        order.rejection_reason,
        order.total_amount,
        {sid: db.get(StockItem, sid).quantity for sid in stock_ids},
    )


# ---------- approve ----------
def test_scenario_a_approve_decrements_stock(db_session, make_stock_item, actors):
    sid = make_stock_item("Plywood", 10)
    order_id = _new_order(db_session, actors["rep"], [(sid, 4, 100)])

    order = approve_order(db_session, order_id, actor=_user(db_session, actors["keeper"]))

    assert order.status == OrderStatus.approved
    assert order.approved_by == actors["keeper"]
    assert order.approved_at is not None
    assert db_session.get(StockItem, sid).quantity == 6

    actions = db_session.execute(select(AuditLog.action).order_by(AuditLog.id)).scalars().all()
    assert actions == ["ORDER_CREATED", "ORDER_APPROVED"]


def test_settlement_requires_an_approver(db_session, make_stock_item, actors):
    sid = make_stock_item("Plywood", 10)
    order_id = _new_order(db_session, actors["rep"], [(sid, 4, 100)])
    order = db_session.get(Order, order_id)

    with pytest.raises(TypeError):
        inventory.settle_order(db_session, order)
    db_session.rollback()

    assert db_session.get(Order, order_id).status == OrderStatus.pending
    assert db_session.get(StockItem, sid).quantity == 10


def test_approve_multi_line_same_item_is_aggregated(db_session, make_stock_item, actors):
    sid = make_stock_item("Plywood", 5)
    order_id = _new_order(db_session, actors["rep"], [(sid, 3, 10), (sid, 2, 10)])

    approve_order(db_session, order_id, actor=_user(db_session, actors["keeper"]))

    assert db_session.get(StockItem, sid).quantity == 0


def test_approve_unknown_order(db_session, actors):
    with pytest.raises(OrderNotFound) as exc:
        approve_order(db_session, 424242, actor=_user(db_session, actors["keeper"]))
    # 404 côté HTTP, mais reste une transition invalide
    assert isinstance(exc.value, NotFound)
    assert isinstance(exc.value, InvalidTransition)


def test_stale_stock_is_rechecked_at_approval(db_session, make_stock_item, actors):
    sid = make_stock_item("Plywood", 6)
    first = _new_order(db_session, actors["rep"], [(sid, 4, 100)])
    second = _new_order(db_session, actors["rep2"], [(sid, 4, 100)])
    keeper = _user(db_session, actors["keeper"])

    approve_order(db_session, first, actor=keeper)

    with pytest.raises(InsufficientStock) as exc:
        approve_order(db_session, second, actor=keeper)
    assert exc.value.stock_item_name == "Plywood"

    status, _, _, qty = _snapshot(db_session, second, [sid])
    assert status == OrderStatus.pending
    assert qty[sid] == 2


def test_stock_never_negative_after_many_approvals(db_session, make_stock_item, actors):
    sid = make_stock_item("Plywood", 7)
    order_ids = [_new_order(db_session, actors["rep"], [(sid, 3, 1)]) for _ in range(4)]
    keeper = _user(db_session, actors["keeper"])

    outcomes = []
    for oid in order_ids:
        try:
            approve_order(db_session, oid, actor=keeper)
            outcomes.append("ok")
        except InsufficientStock:
            outcomes.append("short")

    assert outcomes == ["ok", "ok", "short", "short"]
    assert db_session.get(StockItem, sid).quantity == 1


def test_settlement_fault_rolls_everything_back(db_session, make_stock_item, actors, monkeypatch):
    plywood = make_stock_item("Plywood", 10)
    mdf = make_stock_item("MDF", 10)
    order_id = _new_order(db_session, actors["rep"], [(plywood, 4, 100), (mdf, 2, 50)])

    real_decrement = inventory._decrement_stock
    calls = []

    def _faulty(db, stock_item, quantity, now):
        calls.append(stock_item.id)
        if len(calls) == 2:
            raise RuntimeError("disk on fire")
        real_decrement(db, stock_item, quantity, now)

    monkeypatch.setattr(inventory, "_decrement_stock", _faulty)

    with pytest.raises(RuntimeError):
        approve_order(db_session, order_id, actor=_user(db_session, actors["keeper"]))

    assert len(calls) == 2
    status, _, _, qty = _snapshot(db_session, order_id, [plywood, mdf])
    assert status == OrderStatus.pending
    assert qty == {plywood: 10, mdf: 10}
    assert db_session.execute(select(AuditLog.action).where(AuditLog.action == "ORDER_APPROVED")).first() is None


# ---------- reject ----------
def test_scenario_c_reject_keeps_stock(db_session, make_stock_item, actors):
    sid = make_stock_item("Plywood", 10)
    order_id = _new_order(db_session, actors["rep"], [(sid, 4, 100)])

    order = reject_order(db_session, order_id, "customer cancelled", actor=_user(db_session, actors["keeper"]))

    assert order.status == OrderStatus.rejected
    assert order.rejection_reason == "customer cancelled"
    assert order.rejected_by == actors["keeper"]
    assert db_session.get(StockItem, sid).quantity == 10


@pytest.mark.parametrize("reason", [None, "", "   "])
def test_reject_requires_reason(db_session, make_stock_item, actors, reason):
    sid = make_stock_item("Plywood", 10)
    order_id = _new_order(db_session, actors["rep"], [(sid, 1, 1)])

    with pytest.raises(ValidationError) as exc:
        reject_order(db_session, order_id, reason, actor=_user(db_session, actors["keeper"]))

    assert exc.value.code == "missing_reason"
    assert _snapshot(db_session, order_id, [])[0] == OrderStatus.pending


def test_reject_unknown_order(db_session, actors):
    with pytest.raises(OrderNotFound):
        reject_order(db_session, 424242, "nope", actor=_user(db_session, actors["keeper"]))


# ---------- terminalité ----------
def test_scenario_d_approve_rejected_order(db_session, make_stock_item, actors):
    sid = make_stock_item("Plywood", 10)
    order_id = _new_order(db_session, actors["rep"], [(sid, 4, 100)])
    keeper = _user(db_session, actors["keeper"])
    reject_order(db_session, order_id, "customer cancelled", actor=keeper)
    before = _snapshot(db_session, order_id, [sid])

    with pytest.raises(InvalidTransition):
        approve_order(db_session, order_id, actor=keeper)

    assert _snapshot(db_session, order_id, [sid]) == before


@pytest.mark.parametrize("first", ["approve", "reject"])
@pytest.mark.parametrize("second", ["approve", "reject"])
def test_terminal_states_are_final(db_session, make_stock_item, actors, first, second):
    sid = make_stock_item("Plywood", 10)
    order_id = _new_order(db_session, actors["rep"], [(sid, 4, 100)])
    keeper = _user(db_session, actors["keeper"])

    def _do(action):
        if action == "approve":
            return approve_order(db_session, order_id, actor=keeper)
        return reject_order(db_session, order_id, "changed mind", actor=keeper)

    _do(first)
    before = _snapshot(db_session, order_id, [sid])

    with pytest.raises(InvalidTransition) as exc:
        _do(second)
    assert not isinstance(exc.value, NotFound)

    assert _snapshot(db_session, order_id, [sid]) == before


def test_total_amount_survives_price_edits(db_session, make_stock_item, actors):
    sid = make_stock_item("Plywood", 10, buying_price="60.00", selling_price="100.00")
    order_id = _new_order(db_session, actors["rep"], [(sid, 4, 100)])

    si = db_session.get(StockItem, sid)
    si.selling_price = Decimal("999.00")
    si.buying_price = Decimal("500.00")
    db_session.commit()

    approve_order(db_session, order_id, actor=_user(db_session, actors["keeper"]))

    db_session.expire_all()
    order = db_session.get(Order, order_id)
    assert order.total_amount == Decimal("400.00")
    assert sum(it.total_price for it in order.items) == order.total_amount
    assert order.items[0].unit_price == Decimal("100.00")


# ---------- visibilité ----------
def test_sales_rep_only_sees_own_orders(db_session, make_stock_item, actors):
    sid = make_stock_item("Plywood", 10)
    mine = _new_order(db_session, actors["rep"], [(sid, 1, 1)])
    theirs = _new_order(db_session, actors["rep2"], [(sid, 1, 1)])

    rep = _user(db_session, actors["rep"])
    keeper = _user(db_session, actors["keeper"])

    assert [o.id for o in list_orders_for(db_session, rep)] == [mine]
    assert {o.id for o in list_orders_for(db_session, keeper)} == {mine, theirs}
    # plus récent en premier
    assert list_orders_for(db_session, keeper)[0].id == theirs

    assert get_order_for(db_session, rep, mine).id == mine
    with pytest.raises(OrderNotFound):
        get_order_for(db_session, rep, theirs)
    assert get_order_for(db_session, keeper, theirs).id == theirs
