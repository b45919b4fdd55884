"""SAML document toolkit.

Parses SAML messages and metadata into lxml trees and builds the few
documents the harness itself emits: the mock SP's AuthnRequest, its
metadata, and a minimal Web SSO Response (used when the harness plays the
IdP side, e.g. in tests).
"""

from __future__ import annotations

import secrets
from datetime import UTC, datetime, timedelta

from lxml import etree

from webssotest.core.errors import SAMLParseError
from webssotest.core.saml.bindings import Binding

# SAML namespaces
MD_NS = "urn:oasis:names:tc:SAML:2.0:metadata"
SAML_NS = "urn:oasis:names:tc:SAML:2.0:assertion"
SAMLP_NS = "urn:oasis:names:tc:SAML:2.0:protocol"
DSIG_NS = "http://www.w3.org/2000/09/xmldsig#"

NAMESPACES = {
    "md": MD_NS,
    "saml": SAML_NS,
    "samlp": SAMLP_NS,
    "ds": DSIG_NS,
}

SAML20_PROTOCOL = "urn:oasis:names:tc:SAML:2.0:protocol"
STATUS_SUCCESS = "urn:oasis:names:tc:SAML:2.0:status:Success"
CONFIRMATION_METHOD_BEARER = "urn:oasis:names:tc:SAML:2.0:cm:bearer"
AUTHNCONTEXT_PASSWORD = "urn:oasis:names:tc:SAML:2.0:ac:classes:PasswordProtectedTransport"
NAMEID_FORMAT_TRANSIENT = "urn:oasis:names:tc:SAML:2.0:nameid-format:transient"
NAMEID_FORMAT_PERSISTENT = "urn:oasis:names:tc:SAML:2.0:nameid-format:persistent"

# Untrusted documents: no entity expansion, no network access
_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, remove_blank_text=False)


def parse_xml(xml: str | bytes) -> etree._Element:
    """Parse a SAML document.

    Args:
        xml: XML text. A leading XML declaration is allowed.

    Returns:
        The document's root element.

    Raises:
        SAMLParseError: If the document is not well-formed.
    """
    data = xml.encode("utf-8") if isinstance(xml, str) else xml
    try:
        return etree.fromstring(data.strip(), parser=_PARSER)
    except etree.XMLSyntaxError as e:
        raise SAMLParseError(f"Failed to parse XML: {e}") from e


def to_xml(element: etree._Element) -> str:
    """Serialize an element without an XML declaration."""
    return etree.tostring(element, encoding="unicode")


def qname(namespace: str, tag: str) -> str:
    """Clark-notation name for lxml lookups."""
    return f"{{{namespace}}}{tag}"


def local_name(element: etree._Element) -> str:
    """Local part of an element's tag."""
    return etree.QName(element).localname


def _new_id() -> str:
    return f"_webssotest_{secrets.token_hex(16)}"


def _instant(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def build_authn_request(
    issuer: str,
    destination: str,
    acs_url: str,
    protocol_binding: Binding = Binding.HTTP_POST,
    request_id: str | None = None,
    issue_instant: datetime | None = None,
) -> str:
    """Build an AuthnRequest for SP-Initiated SSO.

    Args:
        issuer: Entity ID of the requesting SP.
        destination: IdP SingleSignOnService location.
        acs_url: Where the IdP should send its Response.
        protocol_binding: Binding requested for the Response.
        request_id: Message ID (generated if not provided).
        issue_instant: Issue time (now if not provided).

    Returns:
        The AuthnRequest XML.
    """
    request = etree.Element(qname(SAMLP_NS, "AuthnRequest"), nsmap={"samlp": SAMLP_NS, "saml": SAML_NS})
    request.set("ID", request_id or _new_id())
    request.set("Version", "2.0")
    request.set("IssueInstant", _instant(issue_instant or datetime.now(UTC)))
    request.set("Destination", destination)
    request.set("AssertionConsumerServiceURL", acs_url)
    request.set("ProtocolBinding", protocol_binding.value)

    etree.SubElement(request, qname(SAML_NS, "Issuer")).text = issuer
    name_id_policy = etree.SubElement(request, qname(SAMLP_NS, "NameIDPolicy"))
    name_id_policy.set("Format", NAMEID_FORMAT_TRANSIENT)
    name_id_policy.set("AllowCreate", "true")
    return to_xml(request)


def build_response(
    issuer: str,
    audience: str,
    recipient: str,
    name_id: str = "alice",
    in_response_to: str | None = None,
    status_code: str = STATUS_SUCCESS,
    validity: timedelta = timedelta(minutes=15),
) -> str:
    """Build a minimal, unsigned Web SSO Response.

    The Response carries one Assertion with a bearer SubjectConfirmation
    valid for ``validity``, an AudienceRestriction to ``audience`` and a
    password-based AuthnStatement.

    Returns:
        The Response XML.
    """
    now = datetime.now(UTC)
    nsmap = {"samlp": SAMLP_NS, "saml": SAML_NS}

    response = etree.Element(qname(SAMLP_NS, "Response"), nsmap=nsmap)
    response.set("ID", _new_id())
    response.set("Version", "2.0")
    response.set("IssueInstant", _instant(now))
    response.set("Destination", recipient)
    if in_response_to:
        response.set("InResponseTo", in_response_to)
    etree.SubElement(response, qname(SAML_NS, "Issuer")).text = issuer

    status = etree.SubElement(response, qname(SAMLP_NS, "Status"))
    etree.SubElement(status, qname(SAMLP_NS, "StatusCode")).set("Value", status_code)

    assertion = etree.SubElement(response, qname(SAML_NS, "Assertion"))
    assertion.set("ID", _new_id())
    assertion.set("Version", "2.0")
    assertion.set("IssueInstant", _instant(now))
    etree.SubElement(assertion, qname(SAML_NS, "Issuer")).text = issuer

    subject = etree.SubElement(assertion, qname(SAML_NS, "Subject"))
    name_id_elem = etree.SubElement(subject, qname(SAML_NS, "NameID"))
    name_id_elem.set("Format", NAMEID_FORMAT_TRANSIENT)
    name_id_elem.text = name_id
    confirmation = etree.SubElement(subject, qname(SAML_NS, "SubjectConfirmation"))
    confirmation.set("Method", CONFIRMATION_METHOD_BEARER)
    confirmation_data = etree.SubElement(confirmation, qname(SAML_NS, "SubjectConfirmationData"))
    confirmation_data.set("NotOnOrAfter", _instant(now + validity))
    confirmation_data.set("Recipient", recipient)
    if in_response_to:
        confirmation_data.set("InResponseTo", in_response_to)

    conditions = etree.SubElement(assertion, qname(SAML_NS, "Conditions"))
    conditions.set("NotBefore", _instant(now))
    conditions.set("NotOnOrAfter", _instant(now + validity))
    restriction = etree.SubElement(conditions, qname(SAML_NS, "AudienceRestriction"))
    etree.SubElement(restriction, qname(SAML_NS, "Audience")).text = audience

    statement = etree.SubElement(assertion, qname(SAML_NS, "AuthnStatement"))
    statement.set("AuthnInstant", _instant(now))
    context = etree.SubElement(statement, qname(SAML_NS, "AuthnContext"))
    etree.SubElement(context, qname(SAML_NS, "AuthnContextClassRef")).text = AUTHNCONTEXT_PASSWORD

    return to_xml(response)


def build_sp_metadata(
    entity_id: str,
    acs_url: str,
    certificate_b64: str | None = None,
    acs_bindings: tuple[Binding, ...] = (Binding.HTTP_POST, Binding.HTTP_REDIRECT),
) -> str:
    """Build SAML metadata for the mock Service Provider.

    Args:
        entity_id: Mock SP entity ID.
        acs_url: Capture endpoint URL, published as the ACS location.
        certificate_b64: Base64 DER signing certificate for the KeyDescriptor.
        acs_bindings: Bindings published for the ACS, in index order.

    Returns:
        The EntityDescriptor XML.
    """
    entity = etree.Element(qname(MD_NS, "EntityDescriptor"), nsmap={"md": MD_NS, "ds": DSIG_NS})
    entity.set("entityID", entity_id)

    sp = etree.SubElement(entity, qname(MD_NS, "SPSSODescriptor"))
    sp.set("protocolSupportEnumeration", SAML20_PROTOCOL)
    sp.set("AuthnRequestsSigned", "false")
    sp.set("WantAssertionsSigned", "true")

    if certificate_b64:
        key_descriptor = etree.SubElement(sp, qname(MD_NS, "KeyDescriptor"))
        key_descriptor.set("use", "signing")
        key_info = etree.SubElement(key_descriptor, qname(DSIG_NS, "KeyInfo"))
        x509_data = etree.SubElement(key_info, qname(DSIG_NS, "X509Data"))
        etree.SubElement(x509_data, qname(DSIG_NS, "X509Certificate")).text = certificate_b64

    etree.SubElement(sp, qname(MD_NS, "NameIDFormat")).text = NAMEID_FORMAT_TRANSIENT
    for index, binding in enumerate(acs_bindings):
        acs = etree.SubElement(sp, qname(MD_NS, "AssertionConsumerService"))
        acs.set("Binding", binding.value)
        acs.set("Location", acs_url)
        acs.set("index", str(index))
        if index == 0:
            acs.set("isDefault", "true")

    etree.indent(entity, space="  ")
    return to_xml(entity)
