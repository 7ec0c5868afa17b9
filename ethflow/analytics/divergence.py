from typing import List, Sequence
from ethflow.core.models import CombinedPoint, DivergenceKind

FLOW_THRESHOLD = 0.05
PRICE_THRESHOLD = 2.0

MESSAGES = {
    DivergenceKind.INFLOW_PRICE_DOWN: "Divergence: High buying volume but price dropping",
    DivergenceKind.OUTFLOW_PRICE_UP: "Divergence: High selling volume but price rising",
}


def normalize(values: Sequence[float]) -> List[float]:
    """Min-max scale to [0, 1]; a flat series maps to 0.5 everywhere."""
    if not values:
        return []
    lo, hi = min(values), max(values)
    if hi == lo:
        return [0.5] * len(values)
    span = hi - lo
    return [(v - lo) / span for v in values]


def classify(flow_delta: float, price_delta: float,
             flow_threshold: float = FLOW_THRESHOLD,
             price_threshold: float = PRICE_THRESHOLD):
    if abs(flow_delta) <= flow_threshold or abs(price_delta) <= price_threshold:
        return None
    if flow_delta > 0 and price_delta < 0:
        return DivergenceKind.INFLOW_PRICE_DOWN
    if flow_delta < 0 and price_delta > 0:
        return DivergenceKind.OUTFLOW_PRICE_UP
    return None


def annotate(points: List[CombinedPoint], flow_threshold: float = FLOW_THRESHOLD,
             price_threshold: float = PRICE_THRESHOLD) -> List[CombinedPoint]:
    """Normalize net flow, then tag points where flow and price moved apart. Mutates and returns points."""
    if not points:
        return points
    for p, n in zip(points, normalize([p.net_flow_usd for p in points])):
        p.normalized_net_flow = n
        p.clear_divergence()
    for i in range(1, len(points)):
        prev, cur = points[i - 1], points[i]
        kind = classify(cur.normalized_net_flow - prev.normalized_net_flow,
                        cur.price - prev.price, flow_threshold, price_threshold)
        if kind is not None:
            cur.divergence = True
            cur.divergence_kind = kind
            cur.divergence_message = MESSAGES[kind]
    return points


def divergence_events(points: Sequence[CombinedPoint]) -> List[CombinedPoint]:
    return [p for p in points if p.divergence]
