"""Request classification.

Every request is assigned to exactly one handling class. Checks run in a
fixed order and the first match wins:

1. Static asset: the URL ends with an entry of the asset manifest
2. Protected image: destination is ``image``, the path starts with the
   protected prefix, or the host is a protected external image host
3. Dynamic: the path starts with the API prefix, or the method is not GET
4. Generic: everything else
"""

import logging

from edge_shield.common.config import ShieldConfig
from edge_shield.common.schemas import EdgeRequest, RequestClass

logger = logging.getLogger(__name__)


class RequestClassifier:
    """Assign requests to handling classes."""

    def __init__(self, config: ShieldConfig) -> None:
        self.config = config

    def classify(self, request: EdgeRequest) -> RequestClass:
        """Classify a request.

        Args:
            request: Inbound request

        Returns:
            The request's handling class (Generic for unparseable URLs)
        """
        try:
            path = request.path
            hostname = request.hostname
        except ValueError:
            logger.debug("Unparseable URL classified as generic: %.100s", request.url)
            return RequestClass.GENERIC

        if self.is_static_asset(request.url):
            return RequestClass.STATIC_ASSET

        if self.is_protected_image(request, path, hostname):
            return RequestClass.PROTECTED_IMAGE

        if path.startswith(self.config.api_prefix) or request.method != "GET":
            return RequestClass.DYNAMIC

        return RequestClass.GENERIC

    def is_static_asset(self, url: str) -> bool:
        """Check the URL against the asset manifest (suffix match)."""
        return any(url.endswith(asset) for asset in self.config.static_assets)

    def is_protected_image(
        self, request: EdgeRequest, path: str, hostname: str
    ) -> bool:
        """Check whether a request targets a protected image."""
        if request.destination == "image":
            return True
        if path.startswith(self.config.protected_image_prefix):
            return True
        return any(host in hostname for host in self.config.protected_image_hosts)
