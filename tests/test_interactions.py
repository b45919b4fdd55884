"""Tests for interaction parsing."""

import pytest

from webssotest.core.browser.interactions import (
    ElementInteraction,
    FormInteraction,
    InteractionType,
    LinkInteraction,
    interaction_from_dict,
)
from webssotest.core.errors import ConfigurationError


class TestInteractionFromDict:
    """Tests for interaction_from_dict()."""

    def test_form(self):
        """Form entries carry selector, values and submit control."""
        interaction = interaction_from_dict(
            {"type": "form", "selector": "#login", "values": {"user": "alice", "pin": 1234}, "submit": "go"}
        )
        assert interaction == FormInteraction(selector="#login", values={"user": "alice", "pin": "1234"}, submit="go")

    def test_legacy_type_names(self):
        """Class-style type names under interactionType are accepted."""
        interaction = interaction_from_dict({"interactionType": "LinkInteraction", "text": "Sign in"})
        assert interaction == LinkInteraction(text="Sign in")

    def test_element(self):
        interaction = interaction_from_dict({"type": "Element", "selector": "button.primary"})
        assert interaction == ElementInteraction(selector="button.primary")
        assert interaction.type == InteractionType.ELEMENT

    @pytest.mark.parametrize(
        "data, message",
        [
            ({"type": "hover", "selector": "a"}, "Unknown interaction type"),
            ({"selector": "a"}, "must be a string"),
            ({"type": "form"}, "selector"),
            ({"type": "form", "selector": "#f", "values": ["a"]}, "values"),
            ({"type": "link"}, "'selector' or a 'text'"),
            ({"type": "element", "selector": ""}, "selector"),
            (["form"], "mappings"),
        ],
    )
    def test_invalid(self, data, message):
        """Malformed entries raise ConfigurationError."""
        with pytest.raises(ConfigurationError, match=message):
            interaction_from_dict(data)


class TestDescribe:
    """Tests for log descriptions."""

    def test_form_hides_values(self):
        """Form descriptions name fields but never their values."""
        description = FormInteraction(selector="#login", values={"user": "alice", "pass": "secret"}).describe()
        assert "user, pass" in description
        assert "secret" not in description
        assert "alice" not in description

    def test_to_dict(self):
        """Serialized interactions parse back to equal objects."""
        for interaction in (
            FormInteraction(selector="#login", values={"user": "alice"}, submit="go"),
            LinkInteraction(selector="a.help", text="Help"),
            ElementInteraction(selector="#next"),
        ):
            assert interaction_from_dict(interaction.to_dict()) == interaction
