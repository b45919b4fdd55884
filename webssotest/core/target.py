"""Target configuration.

Describes the system under test: where its login flow starts, its published
metadata and the scripted interactions that lead from the start page to the
protocol message. Loaded once per run from a YAML (or JSON) document:

    name: Example IdP
    start_url: https://idp.example.org/sso/start
    metadata_file: idp-metadata.xml
    pre_response_interactions:
      - type: form
        selector: "form#login"
        values: {username: alice, password: secret}
        submit: login
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import yaml
from lxml import etree

from webssotest.core.browser.interactions import Interaction, interaction_from_dict
from webssotest.core.errors import ConfigurationError, SAMLParseError
from webssotest.core.saml.bindings import Binding
from webssotest.core.saml.toolkit import MD_NS, parse_xml, qname

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TargetConfiguration:
    """The system under test.

    Attributes:
        start_url: Absolute URL where the login flow begins.
        metadata: Root element of the target's published metadata.
        pre_response_interactions: Interactions replayed, in order, after
            loading the start page.
        name: Display name of the target.
        source: File the configuration was loaded from.
    """

    start_url: str | None = None
    metadata: etree._Element | None = None
    pre_response_interactions: tuple[Interaction, ...] = ()
    name: str | None = None
    source: Path | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.entity_id or self.start_url or "unnamed target"

    @property
    def entity_id(self) -> str | None:
        """Entity ID declared by the metadata."""
        if self.metadata is None:
            return None
        if self.metadata.tag == qname(MD_NS, "EntityDescriptor"):
            return self.metadata.get("entityID")
        return self.md_attribute("EntityDescriptor", "entityID")

    def md_nodes(self, tag: str) -> list[etree._Element]:
        """All metadata elements with the given local name, in document order."""
        if self.metadata is None:
            return []
        return list(self.metadata.iter(qname(MD_NS, tag)))

    def md_attributes(self, tag: str, attr: str) -> list[str]:
        """Values of an attribute across all metadata elements named ``tag``."""
        return [node.get(attr) for node in self.md_nodes(tag) if node.get(attr) is not None]

    def md_attribute(self, tag: str, attr: str) -> str | None:
        """The attribute's value if exactly one element carries it."""
        values = self.md_attributes(tag, attr)
        return values[0] if len(values) == 1 else None

    def sso_location(self, binding: Binding | str) -> str | None:
        """Location of the SingleSignOnService for a binding."""
        wanted = str(binding).lower()
        for node in self.md_nodes("SingleSignOnService"):
            if (node.get("Binding") or "").lower() == wanted:
                return node.get("Location")
        return None


def _is_absolute_url(url: str) -> bool:
    parts = urlsplit(url)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _load_metadata(data: dict[str, Any], base_dir: Path) -> etree._Element | None:
    inline = data.get("metadata")
    md_file = data.get("metadata_file")
    if inline and md_file:
        raise ConfigurationError("Specify either 'metadata' or 'metadata_file', not both")

    if md_file:
        path = Path(md_file).expanduser()
        if not path.is_absolute():
            path = base_dir / path
        try:
            inline = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Could not read metadata file {path}: {e}") from e

    if not inline:
        return None
    if not isinstance(inline, str):
        raise ConfigurationError("'metadata' must be the metadata document as XML text")
    try:
        return parse_xml(inline)
    except SAMLParseError as e:
        raise ConfigurationError(f"Target metadata is not well-formed XML: {e}") from e


def target_configuration_from_dict(data: dict[str, Any], base_dir: Path | None = None) -> TargetConfiguration:
    """Build a TargetConfiguration from a parsed document.

    Raises:
        ConfigurationError: If any field is malformed.
    """
    start_url = _first(data, "start_url", "startPage")
    if start_url is not None:
        if not isinstance(start_url, str) or not _is_absolute_url(start_url):
            raise ConfigurationError(f"Start URL must be an absolute http(s) URL, got {start_url!r}")

    raw_interactions = _first(data, "pre_response_interactions", "preResponseInteractions") or []
    if not isinstance(raw_interactions, list):
        raise ConfigurationError("'pre_response_interactions' must be a list")
    interactions = []
    for position, entry in enumerate(raw_interactions, start=1):
        try:
            interactions.append(interaction_from_dict(entry))
        except ConfigurationError as e:
            raise ConfigurationError(f"Interaction {position}: {e}") from e

    name = data.get("name")
    return TargetConfiguration(
        start_url=start_url,
        metadata=_load_metadata(data, base_dir or Path.cwd()),
        pre_response_interactions=tuple(interactions),
        name=str(name) if name is not None else None,
    )


def load_target_configuration(path: Path) -> TargetConfiguration:
    """Load the target configuration file.

    Args:
        path: YAML or JSON document describing the target.

    Returns:
        The immutable target configuration.

    Raises:
        ConfigurationError: If the file cannot be read or is malformed.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Could not read target configuration {path}: {e}") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Target configuration {path} is not valid YAML/JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Target configuration {path} must be a mapping")

    target = replace(target_configuration_from_dict(data, base_dir=path.parent), source=path)
    logger.info(
        f"Loaded target {target.display_name} "
        f"({len(target.pre_response_interactions)} interaction(s), "
        f"metadata {'present' if target.metadata is not None else 'absent'})"
    )
    return target
