from app.boaz.modules.stratflow.ordering import ORDER_STEP, order_between, order_for_index


def test_order_between_edges():
    assert order_between(None, None) == ORDER_STEP
    assert order_between(None, 1000.0) == 0.0
    assert order_between(3000.0, None) == 4000.0
    assert order_between(1000.0, 2000.0) == 1500.0
    assert order_between(1000.0, 1000.5) is None


def test_order_for_index_inserts_without_renumbering():
    assert order_for_index([1000.0, 2000.0, 3000.0], 1) == (1500.0, None)
    assert order_for_index([1000.0, 2000.0], 0) == (0.0, None)
    assert order_for_index([1000.0, 2000.0], 2) == (3000.0, None)


def test_order_for_index_clamps_out_of_range():
    assert order_for_index([1000.0], 99) == (2000.0, None)
    assert order_for_index([1000.0], -5) == (0.0, None)
    assert order_for_index([], 3) == (ORDER_STEP, None)


def test_order_for_index_renumbers_exhausted_gap():
    new_order, renumbered = order_for_index([1000.0, 1000.5, 5000.0], 1)
    assert renumbered == [1000.0, 2000.0, 3000.0]
    assert new_order == 1500.0
