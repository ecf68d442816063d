"""Push notification rendering and click routing."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "AB Photo Studio"
DEFAULT_BODY = "New update from AB Photo Studio"
FALLBACK_BODY = "New update available"
DEFAULT_ICON = "/web-app-manifest-192x192.png"
DEFAULT_TAG = "general"

# Notification action -> target URL; None means close without navigating
CLICK_ACTIONS: dict[str, Optional[str]] = {
    "view-portfolio": "/portfolio",
    "contact": "/?section=contact",
    "dismiss": None,
}


@dataclass
class Notification:
    """Options for displaying a notification."""

    title: str
    body: str
    icon: str = DEFAULT_ICON
    badge: str = DEFAULT_ICON
    image: Optional[str] = None
    tag: str = DEFAULT_TAG
    require_interaction: bool = False
    actions: list[dict[str, Any]] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    silent: bool = False


def render_notification(raw: Optional[bytes]) -> Optional[Notification]:
    """Build a notification from a push payload.

    JSON object payloads fill the notification fields, falling back to the
    studio defaults. Anything else is treated as plain text used as the
    title. Empty payloads render nothing.
    """
    if not raw:
        return None

    try:
        payload = json.loads(raw)
    except ValueError:
        payload = None

    if not isinstance(payload, dict):
        title = raw.decode("utf-8", errors="replace").strip() or DEFAULT_TITLE
        logger.debug("Rendering plain-text push payload")
        return Notification(title=title, body=FALLBACK_BODY)

    return Notification(
        title=payload.get("title") or DEFAULT_TITLE,
        body=payload.get("body") or DEFAULT_BODY,
        icon=payload.get("icon") or DEFAULT_ICON,
        badge=payload.get("badge") or DEFAULT_ICON,
        image=payload.get("image"),
        tag=payload.get("tag") or DEFAULT_TAG,
        require_interaction=bool(payload.get("requireInteraction", False)),
        actions=list(payload.get("actions") or []),
        data=dict(payload.get("data") or {}),
    )


def resolve_click(action: Optional[str], data: Optional[dict[str, Any]] = None) -> Optional[str]:
    """Resolve the URL a notification click should open.

    Args:
        action: Clicked action button, or None/empty for the body
        data: Notification data payload

    Returns:
        Target URL, or None when the click only dismisses
    """
    fallback = (data or {}).get("url") or "/"
    if action and action in CLICK_ACTIONS:
        return CLICK_ACTIONS[action]
    return fallback
