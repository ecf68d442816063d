"""Prometheus counters for edge decisions.

Counters are advisory: nothing in the request path reads them back.
"""

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest

from edge_shield import __version__

REGISTRY = CollectorRegistry()

_info = Gauge(
    "edge_shield_info",
    "Edge Shield application info",
    ["version"],
    registry=REGISTRY,
)
_info.labels(version=__version__).set(1)

REQUESTS = Counter(
    "edge_shield_requests_total",
    "Requests handled by request class",
    ["request_class"],
    registry=REGISTRY,
)

POLICY_DECISIONS = Counter(
    "edge_shield_policy_decisions_total",
    "Protected image policy decisions",
    ["decision", "reason"],
    registry=REGISTRY,
)

CACHE_LOOKUPS = Counter(
    "edge_shield_cache_lookups_total",
    "Cache tier lookups by result",
    ["tier", "result"],
    registry=REGISTRY,
)

NETWORK_FAILURES = Counter(
    "edge_shield_network_failures_total",
    "Upstream transport failures by request class",
    ["request_class"],
    registry=REGISTRY,
)


def render_metrics() -> bytes:
    """Generate the Prometheus text exposition for the shield registry."""
    output: bytes = generate_latest(REGISTRY)
    return output
