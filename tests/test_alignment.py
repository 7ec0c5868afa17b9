from ethflow.analytics.alignment import align
from ethflow.core.clock import HOUR_MS
from ethflow.core.models import CombinedPoint, NetFlowPoint, PricePoint
from conftest import T0

MIN = 60 * 1000


def flows(*offsets, value=1.0):
    return [NetFlowPoint(T0 + o, value * (i + 1)) for i, o in enumerate(offsets)]


def test_pairs_each_flow_with_nearest_price():
    nf = flows(0, HOUR_MS, 2 * HOUR_MS)
    prices = [PricePoint(T0, 3000.0), PricePoint(T0 + HOUR_MS + 10 * MIN, 3010.0), PricePoint(T0 + 2 * HOUR_MS, 3020.0)]
    out = align(nf, prices)
    assert [p.timestamp_ms for p in out] == [T0, T0 + HOUR_MS, T0 + 2 * HOUR_MS]
    assert [p.price for p in out] == [3000.0, 3010.0, 3020.0]
    assert [p.net_flow_usd for p in out] == [1.0, 2.0, 3.0]
    assert all(p.normalized_net_flow is None and not p.divergence and p.divergence_kind is None for p in out)


def test_flow_without_price_inside_tolerance_is_dropped():
    nf = flows(0, HOUR_MS, 2 * HOUR_MS)
    prices = [PricePoint(T0, 3000.0), PricePoint(T0 + 2 * HOUR_MS, 3020.0)]
    out = align(nf, prices)
    assert [p.timestamp_ms for p in out] == [T0, T0 + 2 * HOUR_MS]


def test_tolerance_is_inclusive():
    nf = flows(0, HOUR_MS, 2 * HOUR_MS)
    prices = [PricePoint(T0, 1.0), PricePoint(T0 + HOUR_MS + 30 * MIN, 2.0), PricePoint(T0 + 2 * HOUR_MS, 3.0)]
    assert [p.price for p in align(nf, prices, tolerance_ms=30 * MIN)] == [1.0, 2.0, 3.0]
    nf = flows(0, HOUR_MS, 2 * HOUR_MS)
    prices = [PricePoint(T0, 1.0), PricePoint(T0 + HOUR_MS + 30 * MIN + 1, 2.0), PricePoint(T0 + 2 * HOUR_MS, 3.0)]
    assert [p.timestamp_ms for p in align(nf, prices, tolerance_ms=30 * MIN)] == [T0, T0 + 2 * HOUR_MS]


def test_equidistant_prices_pick_the_earlier_one():
    nf = flows(0, HOUR_MS, 2 * HOUR_MS)
    prices = [PricePoint(T0, 3000.0), PricePoint(T0 + HOUR_MS + 10 * MIN, 2.0),
              PricePoint(T0 + HOUR_MS - 10 * MIN, 1.0), PricePoint(T0 + 2 * HOUR_MS, 3020.0)]
    out = align(nf, prices)
    assert out[1].price == 1.0


def test_many_flows_may_share_one_price():
    nf = flows(0, 20 * MIN, HOUR_MS)
    prices = [PricePoint(T0, 3000.0), PricePoint(T0 + HOUR_MS, 3050.0)]
    out = align(nf, prices)
    assert [p.price for p in out] == [3000.0, 3000.0, 3050.0]


def test_no_overlap_returns_empty():
    nf = flows(0, HOUR_MS)
    prices = [PricePoint(T0 + 3 * HOUR_MS, 3000.0), PricePoint(T0 + 4 * HOUR_MS, 3001.0)]
    assert align(nf, prices) == []


def test_overlap_without_prices_inside_window_returns_empty():
    nf = flows(0, HOUR_MS)
    prices = [PricePoint(T0 - 10 * MIN, 3000.0), PricePoint(T0 + HOUR_MS + 10 * MIN, 3001.0)]
    assert align(nf, prices) == []


def test_empty_inputs():
    assert align([], [PricePoint(T0, 1.0)]) == []
    assert align(flows(0), []) == []


def test_flows_outside_window_are_ignored():
    nf = flows(-2 * HOUR_MS, 0, HOUR_MS, 5 * HOUR_MS)
    prices = [PricePoint(T0, 3000.0), PricePoint(T0 + HOUR_MS, 3010.0)]
    assert [p.timestamp_ms for p in align(nf, prices)] == [T0, T0 + HOUR_MS]


def test_unsorted_inputs_are_not_mutated_and_output_ascends():
    nf = [NetFlowPoint(T0 + HOUR_MS, 2.0), NetFlowPoint(T0, 1.0)]
    prices = [PricePoint(T0 + HOUR_MS, 3010.0), PricePoint(T0, 3000.0)]
    nf_before, prices_before = list(nf), list(prices)
    out = align(nf, prices)
    assert nf == nf_before and prices == prices_before
    assert out == [CombinedPoint(T0, 1.0, 3000.0), CombinedPoint(T0 + HOUR_MS, 2.0, 3010.0)]


def test_alignment_is_deterministic():
    nf = flows(0, 20 * MIN, HOUR_MS, 2 * HOUR_MS)
    prices = [PricePoint(T0 + k * 5 * MIN, 3000.0 + k) for k in range(30)]
    assert align(nf, prices) == align(nf, prices)
