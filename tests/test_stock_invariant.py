import random

import pytest
from sqlalchemy import select

from conftest import add_stock, order_payload
from pcshop.application.authorization import Actor
from pcshop.application.orders import OrderService
from pcshop.application.schemas import OrderCreate
from pcshop.domain.errors import InsufficientStock
from pcshop.domain.models import Role, StockItem

INITIAL = {"cpu-1": 4, "gpu-1": 2, "ram-1": 6}

def _quantities(db):
    quantities = dict(db.execute(select(StockItem.id, StockItem.quantity)).all())
    db.rollback()
    return quantities

@pytest.mark.parametrize("seed", range(5))
def test_stock_never_negative_and_is_conserved(db, seed):
    rng = random.Random(seed)
    for item_id, quantity in INITIAL.items():
        add_stock(item_id, quantity)
    service = OrderService(db)
    customer = Actor("u1", Role.USER)
    open_orders = {}

    for _ in range(40):
        if open_orders and rng.random() < 0.4:
            order_id = rng.choice(sorted(open_orders))
            service.cancel(order_id, customer)
            del open_orders[order_id]
        else:
            item_id = rng.choice(sorted(INITIAL))
            quantity = rng.randint(1, 3)
            available = _quantities(db)[item_id]
            data = OrderCreate.model_validate(order_payload([(item_id, "COMPONENT", quantity)]))
            try:
                order = service.create_with_stock_reservation(data, customer)
            except InsufficientStock:
                assert quantity > available
            else:
                assert quantity <= available
                open_orders[order.id] = (item_id, quantity)

        quantities = _quantities(db)
        assert all(q >= 0 for q in quantities.values())
        for item_id, initial in INITIAL.items():
            reserved = sum(q for i, q in open_orders.values() if i == item_id)
            assert quantities[item_id] + reserved == initial
