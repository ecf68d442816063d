"""Request, response and decision types shared by the edge components."""

from enum import Enum
from typing import Optional
from urllib.parse import SplitResult, urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RequestClass(str, Enum):
    """Handling class assigned to every inbound request."""

    STATIC_ASSET = "static_asset"
    PROTECTED_IMAGE = "protected_image"
    DYNAMIC = "dynamic"
    GENERIC = "generic"


class Decision(str, Enum):
    """Outcome of the protected-image access check."""

    ALLOW = "allow"
    DENY = "deny"


class EdgeRequest(BaseModel):
    """An inbound request as seen by the edge layer.

    Header names are stored lower-cased so lookups are case-insensitive.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    method: str = "GET"
    destination: str = Field(
        default="", description="Declared resource kind (image, document, ...)"
    )
    mode: str = Field(
        default="no-cors", description="Fetch mode (navigate, no-cors, cors, ...)"
    )
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""

    @field_validator("method")
    @classmethod
    def normalize_method(cls, value: str) -> str:
        return value.upper()

    @field_validator("headers")
    @classmethod
    def normalize_headers(cls, value: dict[str, str]) -> dict[str, str]:
        return {name.lower(): header for name, header in value.items()}

    def header(self, name: str) -> Optional[str]:
        """Get a header value by case-insensitive name."""
        return self.headers.get(name.lower())

    @property
    def cache_key(self) -> str:
        """Identity of this request inside a cache tier."""
        return self.url

    def split_url(self) -> SplitResult:
        """Parse the URL, raising ValueError when it is not absolute."""
        parts = urlsplit(self.url)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"Not an absolute URL: {self.url!r}")
        # Accessing port validates it
        _ = parts.port
        return parts

    @property
    def path(self) -> str:
        return self.split_url().path or "/"

    @property
    def hostname(self) -> str:
        return self.split_url().hostname or ""


class EdgeResponse(BaseModel):
    """A response produced by the origin or synthesized by the edge layer."""

    status: int = 200
    status_text: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""
    response_type: str = Field(
        default="basic", description="basic (same-origin), cors or opaque"
    )

    @property
    def ok(self) -> bool:
        return 200 <= self.status <= 299

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def header(self, name: str) -> Optional[str]:
        """Get a header value by case-insensitive name."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def clone(self) -> "EdgeResponse":
        """Return an independent copy suitable for storing in a tier."""
        return self.model_copy(deep=True)


class PolicyDecision(BaseModel):
    """Allow/deny outcome plus a reason code kept for observability only."""

    model_config = ConfigDict(frozen=True)

    decision: Decision
    reason: str

    @property
    def allowed(self) -> bool:
        return self.decision is Decision.ALLOW

    @classmethod
    def allow(cls, reason: str) -> "PolicyDecision":
        return cls(decision=Decision.ALLOW, reason=reason)

    @classmethod
    def deny(cls, reason: str) -> "PolicyDecision":
        return cls(decision=Decision.DENY, reason=reason)
