"""Tests for request classification."""

import pytest

from edge_shield.common.config import ShieldConfig
from edge_shield.common.schemas import EdgeRequest, RequestClass
from edge_shield.shield.classifier import RequestClassifier
from tests.conftest import ORIGIN


@pytest.fixture
def classifier(config: ShieldConfig) -> RequestClassifier:
    return RequestClassifier(config)


class TestStaticAssets:
    """Static asset manifest matching."""

    @pytest.mark.parametrize(
        "path", ["/", "/index.html", "/manifest.json", "/favicon.svg"]
    )
    def test_manifest_entries(self, classifier, path) -> None:
        request = EdgeRequest(url=f"{ORIGIN}{path}")

        assert classifier.classify(request) is RequestClass.STATIC_ASSET

    def test_suffix_match(self, classifier) -> None:
        """Manifest entries match as URL suffixes."""
        request = EdgeRequest(url=f"{ORIGIN}/nested/index.html")

        assert classifier.classify(request) is RequestClass.STATIC_ASSET

    def test_static_wins_over_protected_prefix(self) -> None:
        """A manifest entry under the image prefix is still a static asset."""
        config = ShieldConfig(static_assets=("/images/logo.png",))
        classifier = RequestClassifier(config)
        request = EdgeRequest(url=f"{ORIGIN}/images/logo.png", destination="image")

        assert classifier.classify(request) is RequestClass.STATIC_ASSET

    def test_query_string_breaks_suffix_match(self, classifier) -> None:
        request = EdgeRequest(url=f"{ORIGIN}/index.html?v=2")

        assert classifier.classify(request) is RequestClass.GENERIC


class TestProtectedImages:
    """Protected image detection."""

    def test_image_prefix(self, classifier) -> None:
        request = EdgeRequest(url=f"{ORIGIN}/images/a.jpg")

        assert classifier.classify(request) is RequestClass.PROTECTED_IMAGE

    def test_image_destination(self, classifier) -> None:
        """Any request declared as an image is protected."""
        request = EdgeRequest(url=f"{ORIGIN}/assets/hero.webp", destination="image")

        assert classifier.classify(request) is RequestClass.PROTECTED_IMAGE

    def test_external_protected_host(self, classifier) -> None:
        request = EdgeRequest(url="https://images.unsplash.com/photo-123?w=800")

        assert classifier.classify(request) is RequestClass.PROTECTED_IMAGE

    def test_protected_wins_over_dynamic(self, classifier) -> None:
        """Image checks run before the method check."""
        request = EdgeRequest(url=f"{ORIGIN}/images/a.jpg", method="POST")

        assert classifier.classify(request) is RequestClass.PROTECTED_IMAGE


class TestDynamic:
    """API and mutating requests."""

    def test_api_prefix(self, classifier) -> None:
        request = EdgeRequest(url=f"{ORIGIN}/api/gallery")

        assert classifier.classify(request) is RequestClass.DYNAMIC

    def test_post_contact(self, classifier) -> None:
        request = EdgeRequest(url=f"{ORIGIN}/api/contact", method="POST")

        assert classifier.classify(request) is RequestClass.DYNAMIC

    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "head"])
    def test_non_get_methods(self, classifier, method) -> None:
        request = EdgeRequest(url=f"{ORIGIN}/portfolio", method=method)

        assert classifier.classify(request) is RequestClass.DYNAMIC

    def test_api_only_matches_path_prefix(self, classifier) -> None:
        """'/api/' deeper in the path does not make a request dynamic."""
        request = EdgeRequest(url=f"{ORIGIN}/docs/api/intro")

        assert classifier.classify(request) is RequestClass.GENERIC


class TestGeneric:
    """Fallback classification."""

    def test_plain_page(self, classifier) -> None:
        request = EdgeRequest(url=f"{ORIGIN}/portfolio")

        assert classifier.classify(request) is RequestClass.GENERIC

    @pytest.mark.parametrize(
        "url", ["not a url", "/relative/path.jpg", "http://[::1/images/a.jpg"]
    )
    def test_unparseable_url_is_generic(self, classifier, url) -> None:
        """Malformed URLs fall back to the generic class."""
        request = EdgeRequest(url=url, destination="image")

        assert classifier.classify(request) is RequestClass.GENERIC
