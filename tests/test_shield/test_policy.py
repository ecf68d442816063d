"""Tests for the protected image access policy."""

import pytest

from edge_shield.common.config import ShieldConfig
from edge_shield.common.schemas import Decision, EdgeRequest
from edge_shield.shield.policy import (
    REASON_AUTHENTICATED,
    REASON_AUTOMATED_CLIENT,
    REASON_DEV_BYPASS,
    REASON_DIRECT_NAVIGATION,
    REASON_IMAGE_TAG,
    REASON_UNAUTHENTICATED,
    AccessPolicyEngine,
    is_direct_navigation,
)
from edge_shield.shield.token import mint_token
from tests.conftest import ORIGIN

NOW = 1_700_000_000_000
IMAGE_URL = f"{ORIGIN}/images/a.jpg"
BROWSER_UA = "Mozilla/5.0 (X11; Linux x86_64) Firefox/130.0"


def _auth_headers(token: str, referer: str = f"{ORIGIN}/gallery") -> dict[str, str]:
    return {
        "X-Image-Auth": "protected",
        "X-Session-Token": token,
        "X-Protected-Image": "true",
        "Referer": referer,
        "User-Agent": BROWSER_UA,
    }


@pytest.fixture
def engine(config: ShieldConfig) -> AccessPolicyEngine:
    return AccessPolicyEngine(config, clock=lambda: NOW)


class TestDevelopmentBypass:
    """Local development hosts bypass the policy."""

    def test_localhost_allows_everything(self, dev_config: ShieldConfig) -> None:
        engine = AccessPolicyEngine(dev_config)
        request = EdgeRequest(
            url="http://localhost:5173/images/a.jpg",
            mode="navigate",
            headers={"User-Agent": "curl/8.0"},
        )

        decision = engine.decide(request, NOW)

        assert decision.allowed
        assert decision.reason == REASON_DEV_BYPASS

    def test_loopback_address(self) -> None:
        engine = AccessPolicyEngine(ShieldConfig(serving_origin="http://127.0.0.1:8000"))

        assert engine.decide(EdgeRequest(url="http://127.0.0.1:8000/images/a.jpg")).allowed

    def test_bypass_ignores_request_content(self, engine: AccessPolicyEngine) -> None:
        """A request claiming a localhost host/referer is not a bypass."""
        request = EdgeRequest(
            url="http://localhost/images/a.jpg",
            headers={"Host": "localhost", "User-Agent": BROWSER_UA},
        )

        decision = engine.decide(request, NOW)

        assert not decision.allowed


class TestAutomatedClients:
    """User-agent based denial."""

    @pytest.mark.parametrize(
        "user_agent",
        [
            "curl/8.4.0",
            "Wget/1.21",
            "Python-urllib/3.11",
            "Googlebot/2.1",
            "Baiduspider",
            "some-crawler/1.0",
            "PostmanRuntime/7.36",
            "HTTPie/3.2",
        ],
    )
    def test_signatures_denied(self, engine, user_agent) -> None:
        request = EdgeRequest(
            url=IMAGE_URL,
            destination="image",
            headers={"Referer": f"{ORIGIN}/gallery", "User-Agent": user_agent},
        )

        decision = engine.decide(request, NOW)

        assert decision.decision is Decision.DENY
        assert decision.reason == REASON_AUTOMATED_CLIENT

    def test_bot_denial_beats_full_authentication(self, engine) -> None:
        """A bot signature is denied even with valid referer, token and markers."""
        headers = _auth_headers(mint_token(NOW))
        headers["User-Agent"] = "curl/8.4.0"
        request = EdgeRequest(url=IMAGE_URL, destination="image", headers=headers)

        decision = engine.decide(request, NOW)

        assert not decision.allowed
        assert decision.reason == REASON_AUTOMATED_CLIENT

    def test_signatures_are_case_sensitive(self, engine) -> None:
        """Matching follows the configured spelling exactly."""
        assert engine.is_automated_client("CURL-ish") is False
        assert engine.is_automated_client("libcurl") is True


class TestImageTagPath:
    """In-page <img> rendering."""

    def test_image_with_site_referer(self, engine) -> None:
        request = EdgeRequest(
            url=IMAGE_URL,
            destination="image",
            headers={"Referer": f"{ORIGIN}/gallery", "User-Agent": BROWSER_UA},
        )

        decision = engine.decide(request, NOW)

        assert decision.allowed
        assert decision.reason == REASON_IMAGE_TAG

    def test_image_with_allowed_origin_referer(self, engine) -> None:
        request = EdgeRequest(
            url=IMAGE_URL,
            destination="image",
            headers={"Referer": "https://avinashbhorphotography.github.io/portfolio"},
        )

        assert engine.decide(request, NOW).allowed

    def test_image_with_localhost_referer(self, engine) -> None:
        request = EdgeRequest(
            url=IMAGE_URL,
            destination="image",
            headers={"Referer": "http://localhost:3000/"},
        )

        assert engine.decide(request, NOW).allowed

    def test_image_with_foreign_referer(self, engine) -> None:
        request = EdgeRequest(
            url=IMAGE_URL,
            destination="image",
            headers={"Referer": "https://hotlinker.example/page"},
        )

        decision = engine.decide(request, NOW)

        assert not decision.allowed
        assert decision.reason == REASON_UNAUTHENTICATED

    def test_image_without_referer(self, engine) -> None:
        request = EdgeRequest(url=IMAGE_URL, destination="image")

        assert not engine.decide(request, NOW).allowed


class TestExplicitAuthPath:
    """Application fetches carrying marker headers and a session token."""

    def test_valid_auth(self, engine) -> None:
        request = EdgeRequest(url=IMAGE_URL, headers=_auth_headers(mint_token(NOW - 5000)))

        decision = engine.decide(request, NOW)

        assert decision.allowed
        assert decision.reason == REASON_AUTHENTICATED

    def test_expired_token(self, engine) -> None:
        request = EdgeRequest(
            url=IMAGE_URL, headers=_auth_headers(mint_token(NOW - 6 * 60 * 1000))
        )

        assert not engine.decide(request, NOW).allowed

    def test_wrong_auth_sentinel(self, engine) -> None:
        headers = _auth_headers(mint_token(NOW))
        headers["X-Image-Auth"] = "yes"

        assert not engine.decide(EdgeRequest(url=IMAGE_URL, headers=headers), NOW).allowed

    def test_wrong_protected_flag(self, engine) -> None:
        headers = _auth_headers(mint_token(NOW))
        headers["X-Protected-Image"] = "1"

        assert not engine.decide(EdgeRequest(url=IMAGE_URL, headers=headers), NOW).allowed

    def test_auth_requires_referer(self, engine) -> None:
        headers = _auth_headers(mint_token(NOW))
        del headers["Referer"]

        assert not engine.decide(EdgeRequest(url=IMAGE_URL, headers=headers), NOW).allowed

    def test_header_names_are_case_insensitive(self, engine) -> None:
        headers = {k.lower(): v for k, v in _auth_headers(mint_token(NOW)).items()}

        assert engine.decide(EdgeRequest(url=IMAGE_URL, headers=headers), NOW).allowed

    def test_uses_engine_clock_by_default(self, engine) -> None:
        request = EdgeRequest(url=IMAGE_URL, headers=_auth_headers(mint_token(NOW)))

        assert engine.decide(request).allowed


class TestDenials:
    """Navigation and fallthrough denials."""

    def test_direct_navigation_denied(self, engine) -> None:
        request = EdgeRequest(
            url=IMAGE_URL,
            mode="navigate",
            destination="document",
            headers={"User-Agent": BROWSER_UA},
        )

        decision = engine.decide(request, NOW)

        assert not decision.allowed
        assert decision.reason == REASON_DIRECT_NAVIGATION

    def test_navigation_with_valid_auth_is_allowed(self, engine) -> None:
        """Allow paths are evaluated before the navigation denial."""
        request = EdgeRequest(
            url=IMAGE_URL, mode="navigate", headers=_auth_headers(mint_token(NOW))
        )

        assert engine.decide(request, NOW).allowed

    def test_unauthenticated_fetch_denied(self, engine) -> None:
        request = EdgeRequest(
            url=IMAGE_URL,
            mode="cors",
            destination="",
            headers={"X-Protected-Image": "true", "User-Agent": BROWSER_UA},
        )

        decision = engine.decide(request, NOW)

        assert not decision.allowed
        assert decision.reason == REASON_UNAUTHENTICATED


class TestReferer:
    """Referer validation details."""

    def test_allowed_origin_must_match_exactly(self, engine) -> None:
        """An allow-listed origin used as a prefix of another host is rejected."""
        assert engine.is_valid_referer("https://avinashbhorphotography.github.io/x")
        assert not engine.is_valid_referer(
            "https://avinashbhorphotography.github.io.evil.example/x"
        )

    def test_serving_origin_look_alike_host_rejected(self, engine) -> None:
        """The serving origin must be followed by a path, not more host."""
        assert engine.is_valid_referer(f"{ORIGIN}/gallery")
        assert engine.is_valid_referer(ORIGIN)
        assert not engine.is_valid_referer("https://www.abphotostudio.in.evil.com/")

    def test_look_alike_referer_denied_for_image_tag(self, engine) -> None:
        request = EdgeRequest(
            url=IMAGE_URL,
            destination="image",
            headers={"Referer": "https://www.abphotostudio.in.evil.com/page"},
        )

        assert not engine.decide(request, NOW).allowed

    def test_missing_and_garbage_referers(self, engine) -> None:
        assert not engine.is_valid_referer(None)
        assert not engine.is_valid_referer("")
        assert not engine.is_valid_referer("gallery")


class TestDirectNavigationPredicate:
    """The canonical direct-navigation predicate."""

    def test_navigate_mode(self) -> None:
        assert is_direct_navigation(EdgeRequest(url=IMAGE_URL, mode="navigate"))

    def test_bare_request_without_marker(self) -> None:
        assert is_direct_navigation(EdgeRequest(url=IMAGE_URL, mode="no-cors"))

    def test_image_destination_is_not_navigation(self) -> None:
        assert not is_direct_navigation(
            EdgeRequest(url=IMAGE_URL, mode="no-cors", destination="image")
        )

    def test_marker_header_is_not_navigation(self) -> None:
        assert not is_direct_navigation(
            EdgeRequest(url=IMAGE_URL, mode="cors", headers={"X-Protected-Image": "true"})
        )
