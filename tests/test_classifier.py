"""Tests for the documentation classifier module."""

import pytest

from api_action_graph.scraping.classifier import (
    PageClassification,
    classify_page,
    count_endpoint_indicators,
    count_numbered_api_headings,
    count_repeated_methods,
    count_versioned_api_urls,
    detect_multiple_api_endpoints,
    detect_multiple_apis_from_html,
    find_api_terms,
    has_multiple_apis,
    has_section_indicators,
    is_api_documentation,
)
from api_action_graph.scraping.page_loader import parse_page


class TestIsApiDocumentation:
    """Tests for the API documentation verdict."""

    def test_empty_text(self):
        """Test that empty text is not documentation."""
        assert is_api_documentation("") is False

    def test_two_terms_is_not_documentation(self):
        """Test that two distinct terms fall below the threshold."""
        assert is_api_documentation("Our api returns a response quickly") is False

    def test_exactly_three_terms_is_documentation(self):
        """Test the boundary at exactly three distinct terms."""
        assert is_api_documentation("Our api returns a response for each request") is True

    def test_repeated_term_counts_once(self):
        """Test that presence, not count, is scored."""
        assert is_api_documentation("api api api api response response") is False

    def test_case_insensitive(self):
        """Test that terms match regardless of case."""
        assert is_api_documentation("API Endpoint RETURNS json") is True

    def test_word_boundaries(self):
        """Test that terms inside longer words do not count."""
        assert find_api_terms("rapid apiary headers") == []

    def test_multi_word_term(self):
        """Test that the "status code" term is detected."""
        assert "status code" in find_api_terms("Check the status code")


class TestMultiplicityTriggers:
    """Tests for the individual multiplicity policy functions."""

    def test_endpoint_indicators(self):
        """Test counting method-and-path indicators."""
        assert count_endpoint_indicators("GET /users and POST /users") == 2

    def test_endpoint_label_indicator(self):
        """Test that "Endpoint:" labels count."""
        assert count_endpoint_indicators("Endpoint: /a") == 1

    def test_section_indicators(self):
        """Test section heading detection."""
        assert has_section_indicators("Welcome to the API Reference") is True
        assert has_section_indicators("Welcome to our blog") is False

    def test_repeated_methods(self):
        """Test counting methods that appear more than once."""
        text = "GET users GET items POST a POST b DELETE c"
        assert count_repeated_methods(text) == 2

    def test_versioned_api_urls(self):
        """Test counting URLs with versioned API segments."""
        text = "See https://x.com/api/users and https://x.com/v1/items and https://x.com/blog/post"
        assert count_versioned_api_urls(text) == 2

    def test_numbered_api_headings(self):
        """Test counting numbered API headings."""
        assert count_numbered_api_headings("1. Users API\n2. Billing API") == 2


class TestDetectMultipleApiEndpoints:
    """Tests for the text multiplicity detector."""

    def test_single_endpoint(self):
        """Test that a single endpoint does not trigger."""
        assert detect_multiple_api_endpoints("GET /users returns all users.") is False

    def test_two_endpoints(self):
        """Test that two method-and-path indicators trigger."""
        assert detect_multiple_api_endpoints("GET /users\nPOST /users") is True

    def test_section_heading_alone_triggers(self):
        """Test that a section heading is sufficient on its own."""
        assert detect_multiple_api_endpoints("Available Methods") is True

    def test_numbered_heading_alone_triggers(self):
        """Test that one numbered API heading is sufficient."""
        assert detect_multiple_api_endpoints("3. Payments API") is True

    @pytest.mark.parametrize(
        "triggering",
        [
            "GET /users\nPOST /users",
            "API Reference",
            "GET a GET b POST c POST d",
            "https://x.com/api/one https://x.com/v2/two",
            "1. Orders API",
        ],
    )
    @pytest.mark.parametrize(
        "suffix",
        ["", "unrelated prose", "GET /single", "Endpoint", "API"],
    )
    def test_monotonic_under_concatenation(self, triggering, suffix):
        """Test that appending text never cancels a trigger."""
        assert detect_multiple_api_endpoints(triggering) is True
        assert detect_multiple_api_endpoints(triggering + "\n" + suffix) is True
        assert detect_multiple_api_endpoints(suffix + "\n" + triggering) is True


class TestDetectMultipleApisFromHtml:
    """Tests for the HTML multiplicity detector."""

    def test_two_api_headings(self):
        """Test that two API-ish headings trigger."""
        page = parse_page("https://h/", "<h2>Users endpoint</h2><h2>Orders endpoint</h2>")
        assert detect_multiple_apis_from_html(page.tree) is True

    def test_one_heading(self):
        """Test that a single heading does not trigger."""
        page = parse_page("https://h/", "<h2>Users endpoint</h2><p>text</p>")
        assert detect_multiple_apis_from_html(page.tree) is False

    def test_two_api_tables(self):
        """Test that two API-ish tables trigger."""
        markup = "<table><tr><td>url</td></tr></table><table><tr><td>method</td></tr></table>"
        page = parse_page("https://h/", markup)
        assert detect_multiple_apis_from_html(page.tree) is True

    def test_two_api_containers(self):
        """Test that two containers with API-ish classes trigger."""
        markup = '<div class="endpoint">a</div><section id="resource-b">b</section>'
        page = parse_page("https://h/", markup)
        assert detect_multiple_apis_from_html(page.tree) is True

    def test_code_blocks(self):
        """Test that more than two code blocks trigger."""
        two = parse_page("https://h/", "<pre>a</pre><pre>b</pre>")
        three = parse_page("https://h/", "<pre>a</pre><pre>b</pre><code>c</code>")
        assert detect_multiple_apis_from_html(two.tree) is False
        assert detect_multiple_apis_from_html(three.tree) is True


class TestHasMultipleApis:
    """Tests for the combined per-URL multiplicity decision."""

    def test_html_only_trigger(self):
        """Test that the HTML detector alone is sufficient."""
        page = parse_page("https://h/", "<pre>a</pre><pre>b</pre><pre>c</pre>")
        assert has_multiple_apis("plain text", page.tree) is True

    def test_text_only_trigger(self):
        """Test that the text detector alone is sufficient."""
        assert has_multiple_apis("API Reference", None) is True

    def test_neither(self):
        """Test that no trigger yields False."""
        page = parse_page("https://h/", "<p>hello</p>")
        assert has_multiple_apis("hello", page.tree) is False


class TestClassifyPage:
    """Tests for full page classification."""

    def test_not_documentation(self):
        """Test that a non-documentation page is never multiple."""
        page = parse_page("https://h/blog", "<h2>API Reference</h2><p>api news</p>")
        classification = classify_page(page)

        assert isinstance(classification, PageClassification)
        assert classification.is_api_documentation is False
        assert classification.multiple_apis is False

    def test_single_endpoint_documentation(self):
        """Test a page documenting one endpoint."""
        markup = (
            "<h1>Create Sender</h1>"
            "<p>This endpoint accepts a JSON request and returns a response.</p>"
        )
        classification = classify_page(parse_page("https://h/docs/a", markup))

        assert classification.is_api_documentation is True
        assert classification.multiple_apis is False
        assert set(classification.matched_terms) >= {"endpoint", "JSON", "request", "response"}

    def test_multiple_endpoint_documentation(self):
        """Test a page documenting several endpoints."""
        markup = (
            "<p>Each request returns a JSON response.</p>"
            "<pre>GET /users</pre><pre>POST /users</pre>"
        )
        classification = classify_page(parse_page("https://h/docs/users", markup))

        assert classification.is_api_documentation is True
        assert classification.multiple_apis is True
        assert classification.multiple_from_text is True
