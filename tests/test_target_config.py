"""Tests for target configuration loading."""

import json
from pathlib import Path

import pytest

from webssotest.core.browser.interactions import FormInteraction, LinkInteraction
from webssotest.core.errors import ConfigurationError
from webssotest.core.saml.bindings import Binding
from webssotest.core.target import TargetConfiguration, load_target_configuration, target_configuration_from_dict


@pytest.fixture
def target_file(tmp_path: Path, idp_metadata: str) -> Path:
    """A target configuration with metadata in a sibling file."""
    (tmp_path / "idp-metadata.xml").write_text(idp_metadata, encoding="utf-8")
    path = tmp_path / "target.yaml"
    path.write_text(
        """\
name: Example IdP
start_url: https://example.test/login
metadata_file: idp-metadata.xml
pre_response_interactions:
  - type: form
    selector: "#login"
    values:
      user: alice
      pass: secret
  - type: link
    text: Continue
""",
        encoding="utf-8",
    )
    return path


class TestLoadTargetConfiguration:
    """Tests for load_target_configuration()."""

    def test_yaml(self, target_file):
        """All fields load, metadata resolved relative to the file."""
        target = load_target_configuration(target_file)

        assert target.name == "Example IdP"
        assert target.display_name == "Example IdP"
        assert target.start_url == "https://example.test/login"
        assert target.source == target_file
        assert target.pre_response_interactions == (
            FormInteraction(selector="#login", values={"user": "alice", "pass": "secret"}),
            LinkInteraction(text="Continue"),
        )
        assert target.entity_id == "https://example.test/idp"

    def test_json_with_legacy_keys(self, tmp_path, idp_metadata):
        """JSON documents using the camel-case keys load too."""
        path = tmp_path / "target.json"
        path.write_text(
            json.dumps(
                {
                    "startPage": "https://example.test/login",
                    "metadata": idp_metadata,
                    "preResponseInteractions": [{"interactionType": "ElementInteraction", "selector": "#go"}],
                }
            ),
            encoding="utf-8",
        )
        target = load_target_configuration(path)

        assert target.start_url == "https://example.test/login"
        assert len(target.pre_response_interactions) == 1
        assert target.display_name == "https://example.test/idp"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Could not read"):
            load_target_configuration(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "target.yaml"
        path.write_text("start_url: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="not valid YAML"):
            load_target_configuration(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "target.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            load_target_configuration(path)

    def test_missing_metadata_file(self, tmp_path):
        path = tmp_path / "target.yaml"
        path.write_text("metadata_file: nowhere.xml\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="nowhere.xml"):
            load_target_configuration(path)


class TestTargetConfigurationFromDict:
    """Tests for field validation."""

    @pytest.mark.parametrize("url", ["/login", "example.test/login", "ftp://example.test/", 42])
    def test_start_url_must_be_absolute(self, url):
        with pytest.raises(ConfigurationError, match="absolute"):
            target_configuration_from_dict({"start_url": url})

    def test_malformed_metadata(self):
        with pytest.raises(ConfigurationError, match="well-formed"):
            target_configuration_from_dict({"metadata": "<EntityDescriptor"})

    def test_both_metadata_sources(self, idp_metadata):
        with pytest.raises(ConfigurationError, match="either"):
            target_configuration_from_dict({"metadata": idp_metadata, "metadata_file": "x.xml"})

    def test_bad_interaction_position(self):
        """Interaction errors name the offending entry."""
        with pytest.raises(ConfigurationError, match="Interaction 2"):
            target_configuration_from_dict(
                {"pre_response_interactions": [{"type": "element", "selector": "#a"}, {"type": "teleport"}]}
            )

    def test_everything_optional(self):
        """An empty document yields an empty target."""
        target = target_configuration_from_dict({})
        assert target.start_url is None
        assert target.metadata is None
        assert target.pre_response_interactions == ()
        assert target.display_name == "unnamed target"


class TestMetadataAccess:
    """Tests for metadata helpers."""

    def test_nodes_and_attributes(self, idp_metadata):
        target = target_configuration_from_dict({"metadata": idp_metadata})

        assert len(target.md_nodes("SingleSignOnService")) == 2
        assert target.md_attributes("SingleSignOnService", "Location") == [
            "https://example.test/sso",
            "https://example.test/sso",
        ]
        # Ambiguous or absent attributes have no single value
        assert target.md_attribute("SingleSignOnService", "Location") is None
        assert target.md_attribute("ContactPerson", "contactType") == "technical"
        assert target.md_attribute("ContactPerson", "company") is None

    def test_sso_location(self, idp_metadata):
        target = target_configuration_from_dict({"metadata": idp_metadata})
        assert target.sso_location(Binding.HTTP_REDIRECT) == "https://example.test/sso"
        assert target.sso_location(Binding.HTTP_ARTIFACT) is None

    def test_without_metadata(self):
        target = TargetConfiguration(start_url="https://example.test/")
        assert target.md_nodes("EntityDescriptor") == []
        assert target.entity_id is None
