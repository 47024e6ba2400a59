"""Tests for the structural extractor module."""

from api_action_graph.scraping.page_loader import parse_page
from api_action_graph.scraping.structure_extractor import (
    EndpointSection,
    extract_actions_from_structure,
    extract_endpoint_sections,
    section_to_action,
    to_action_name,
)

DOCS_MARKUP = """
<html><body>
<section>
  <h2>POST Create Sender Signature</h2>
  <p>Creates a new sender signature.</p>
  <pre>POST https://api.host.com/senders</pre>
  <table>
    <tr><th>Name</th><th>Description</th></tr>
    <tr><td>email</td><td>Sender email address</td></tr>
    <tr><td>name</td><td>Display name</td></tr>
  </table>
</section>
<section>
  <h2>Overview</h2>
  <p>Welcome to the docs.</p>
</section>
<div class="endpoint">
  <h3>List Senders</h3>
  <code>/senders</code>
</div>
<div class="api"><p>No heading here</p><code>/hidden</code></div>
</body></html>
"""


class TestToActionName:
    """Tests for snake_case action names."""

    def test_simple(self):
        """Test converting a plain heading."""
        assert to_action_name("List Senders") == "list_senders"

    def test_punctuation_and_spacing(self):
        """Test that punctuation is dropped and spaces collapse."""
        assert to_action_name("  Get  a User's Profile! ") == "get_a_users_profile"


class TestExtractEndpointSections:
    """Tests for section mining."""

    def test_finds_endpoint_sections(self):
        """Test that only sections with a method or path are kept."""
        tree = parse_page("https://host/docs", DOCS_MARKUP).tree
        sections = extract_endpoint_sections(tree)

        assert [s.name for s in sections] == ["POST Create Sender Signature", "List Senders"]

    def test_section_details(self):
        """Test the mined method, endpoint, description and parameters."""
        tree = parse_page("https://host/docs", DOCS_MARKUP).tree
        create, listing = extract_endpoint_sections(tree)

        assert create.method == "POST"
        assert create.endpoint == "https://api.host.com/senders"
        assert create.description == "Creates a new sender signature."
        assert create.parameters == {"email": "Sender email address", "name": "Display name"}

        assert listing.method is None
        assert listing.endpoint == "/senders"
        assert listing.parameters == {}


class TestSectionToAction:
    """Tests for converting sections into actions."""

    def test_get_passes_inputs_as_query(self):
        """Test that GET actions pass inputs as query parameters."""
        action = section_to_action(
            EndpointSection(name="List Senders", endpoint="/senders"), "https://host/docs"
        )

        assert action.id.startswith("action_")
        assert action.action == "list_senders"
        assert action.api_config.method == "GET"
        assert action.api_config.pass_inputs_as_query is True
        assert action.api_config.url == "/senders"

    def test_falls_back_to_page_url(self):
        """Test that a section without an endpoint uses the page URL."""
        action = section_to_action(
            EndpointSection(name="DELETE Sender", method="DELETE"), "https://host/docs"
        )
        assert action.api_config.url == "https://host/docs"
        assert action.api_config.pass_inputs_as_query is False


class TestExtractActionsFromStructure:
    """Tests for full structural extraction."""

    def test_actions_from_page(self):
        """Test extracting actions from a structured page."""
        tree = parse_page("https://host/docs", DOCS_MARKUP).tree
        actions = extract_actions_from_structure("https://host/docs", tree)

        assert len(actions) == 2
        assert len({a.id for a in actions}) == 2
        assert actions[0].inputs["email"] == {"type": "string", "description": "Sender email address"}
        assert actions[0].api_config.method == "POST"

    def test_unstructured_page(self):
        """Test that an unstructured page yields nothing."""
        tree = parse_page("https://host/blog", "<p>Just prose.</p>").tree
        assert extract_actions_from_structure("https://host/blog", tree) == []
