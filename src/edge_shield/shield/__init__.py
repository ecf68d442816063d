"""Request classification, access policy and caching strategies."""

from edge_shield.shield.classifier import RequestClassifier
from edge_shield.shield.fetcher import NetworkError, NetworkFetcher
from edge_shield.shield.policy import AccessPolicyEngine
from edge_shield.shield.strategies import StrategySelector
from edge_shield.shield.token import mint_token, validate_token

__all__ = [
    "AccessPolicyEngine",
    "NetworkError",
    "NetworkFetcher",
    "RequestClassifier",
    "StrategySelector",
    "mint_token",
    "validate_token",
]
