"""SAML2Int interoperability profile, Identity Provider requirements.

The mock entity plays the Service Provider: its metadata (see
``webssotest suites metadata SAML2Int``) must be registered with the IdP
under test, which then sends its Responses to the capture endpoint.
"""

from __future__ import annotations

from urllib.parse import urlsplit

from lxml import etree

from webssotest.core.saml.bindings import Binding
from webssotest.core.saml.toolkit import (
    DSIG_NS,
    MD_NS,
    SAML20_PROTOCOL,
    SAML_NS,
    SAMLP_NS,
    STATUS_SUCCESS,
    local_name,
    parse_xml,
    qname,
)
from webssotest.core.target import TargetConfiguration
from webssotest.suites.base import CaseCollector, RuleOutcome, TestSuite

SUITE_NAME = "SAML2Int"
MOCK_SP_ENTITY_ID = "http://localhost:8080/sso"
MOCK_SP_URL = "http://localhost:8080/sso"

cases = CaseCollector()


def _entity_descriptors(metadata: etree._Element) -> list[etree._Element]:
    if metadata.tag == qname(MD_NS, "EntityDescriptor"):
        return [metadata]
    return list(metadata.iter(qname(MD_NS, "EntityDescriptor")))


def _idp_descriptors(metadata: etree._Element) -> list[etree._Element]:
    return list(metadata.iter(qname(MD_NS, "IDPSSODescriptor")))


def _parse_response(xml: str) -> etree._Element | None:
    root = parse_xml(xml)
    if root.tag != qname(SAMLP_NS, "Response"):
        return None
    return root


# Metadata


@cases.metadata(
    description="Test if the Identity Provider's metadata is available (MUST requirement)",
    success_message="The Identity Provider's metadata is available",
    failed_message="The Identity Provider's metadata is not a valid EntityDescriptor",
)
def metadata_available(metadata: etree._Element) -> RuleOutcome:
    descriptors = _entity_descriptors(metadata)
    if not descriptors:
        return RuleOutcome.error(
            f"The metadata document's root element is {local_name(metadata)}, "
            "not an EntityDescriptor"
        )
    if not all(d.get("entityID") for d in descriptors):
        return RuleOutcome.error("The EntityDescriptor has no entityID attribute")
    return RuleOutcome.ok()


@cases.metadata(
    description=(
        "Test if the Identity Provider's metadata contains all minimally required elements "
        "(MUST requirement)"
    ),
    success_message="The Identity Provider's metadata contains all minimally required elements",
    failed_message="The Identity Provider's metadata is missing required elements",
)
def metadata_elements_available(metadata: etree._Element) -> RuleOutcome:
    idps = _idp_descriptors(metadata)
    if not idps:
        return RuleOutcome.error("The metadata contains no IDPSSODescriptor")

    missing = []
    for idp in idps:
        if SAML20_PROTOCOL not in (idp.get("protocolSupportEnumeration") or "").split():
            missing.append("protocolSupportEnumeration containing the SAML 2.0 protocol")
        signing_certs = [
            kd
            for kd in idp.iter(qname(MD_NS, "KeyDescriptor"))
            if kd.get("use") in (None, "signing") and kd.find(f".//{qname(DSIG_NS, 'X509Certificate')}") is not None
        ]
        if not signing_certs:
            missing.append("a signing KeyDescriptor with an X509Certificate")
        if idp.find(qname(MD_NS, "SingleSignOnService")) is None:
            missing.append("a SingleSignOnService")

    if missing:
        return RuleOutcome.error(f"The IDPSSODescriptor is missing {', '.join(missing)}")
    return RuleOutcome.ok()


@cases.metadata(
    description=(
        "Test if the Identity Provider supports the HTTP-Redirect binding for its "
        "SingleSignOnService (MUST requirement)"
    ),
    success_message="The Identity Provider has a SingleSignOnService for the HTTP-Redirect binding",
    failed_message="The Identity Provider has no SingleSignOnService for the HTTP-Redirect binding",
)
def metadata_sso_redirect_binding(metadata: etree._Element) -> RuleOutcome:
    for sso in metadata.iter(qname(MD_NS, "SingleSignOnService")):
        if sso.get("Binding") == Binding.HTTP_REDIRECT.value and sso.get("Location"):
            return RuleOutcome.ok()
    return RuleOutcome.error()


@cases.metadata(
    description="Test if the Identity Provider's SingleSignOnService endpoints use HTTPS (SHOULD requirement)",
    success_message="All SingleSignOnService endpoints use HTTPS",
    failed_message="Not all SingleSignOnService endpoints use HTTPS",
)
def metadata_sso_https(metadata: etree._Element) -> RuleOutcome:
    locations = [sso.get("Location") or "" for sso in metadata.iter(qname(MD_NS, "SingleSignOnService"))]
    if not locations:
        return RuleOutcome.critical("The metadata contains no SingleSignOnService to check")
    insecure = [loc for loc in locations if urlsplit(loc).scheme != "https"]
    if insecure:
        return RuleOutcome.warning(f"Endpoints not using HTTPS: {', '.join(insecure)}")
    return RuleOutcome.ok()


@cases.metadata(
    description=(
        "Test if the Identity Provider's metadata contains at least one NameIDFormat element "
        "(SHOULD requirement)"
    ),
    success_message="The Identity Provider's metadata contains a NameIDFormat element",
    failed_message="The Identity Provider's metadata contains no NameIDFormat element",
)
def metadata_name_id_format(metadata: etree._Element) -> RuleOutcome:
    for idp in _idp_descriptors(metadata):
        if idp.find(qname(MD_NS, "NameIDFormat")) is not None:
            return RuleOutcome.ok()
    return RuleOutcome.warning()


@cases.metadata(
    description="Test if the Identity Provider's metadata contains contact information (SHOULD requirement)",
    success_message="The Identity Provider's metadata contains a ContactPerson with an email address",
    failed_message="The Identity Provider's metadata contains no ContactPerson with an email address",
)
def metadata_contact_person(metadata: etree._Element) -> RuleOutcome:
    for contact in metadata.iter(qname(MD_NS, "ContactPerson")):
        if contact.find(qname(MD_NS, "EmailAddress")) is not None:
            return RuleOutcome.ok()
    return RuleOutcome.warning()


# Configuration


@cases.config(
    description="Test if the login flow starts on an HTTPS page (SHOULD requirement)",
    success_message="The login flow starts on an HTTPS page",
    failed_message="The login flow does not start on an HTTPS page",
)
def config_start_url_https(target: TargetConfiguration) -> RuleOutcome:
    if not target.start_url:
        return RuleOutcome.critical("No start URL is configured for the target")
    if urlsplit(target.start_url).scheme != "https":
        return RuleOutcome.warning()
    return RuleOutcome.ok()


# Live round trips


@cases.response(
    description="Test if the Identity Provider sends its Response using the HTTP-POST binding (MUST requirement)",
    success_message="The Identity Provider sent its Response using the HTTP-POST binding",
    failed_message="The Identity Provider did not send its Response using the HTTP-POST binding",
)
def response_by_post(xml: str, binding: Binding) -> RuleOutcome:
    if binding == Binding.HTTP_POST:
        return RuleOutcome.ok()
    return RuleOutcome.error(
        f"The Identity Provider sent its Response using the {binding.short_name} binding"
    )


@cases.response(
    description="Test if the Identity Provider's Response has a Success status (MUST requirement)",
    success_message="The Identity Provider's Response has a Success status",
    failed_message="The Identity Provider's Response does not have a Success status",
)
def response_status_success(xml: str, binding: Binding) -> RuleOutcome:
    response = _parse_response(xml)
    if response is None:
        return RuleOutcome.error("The captured message is not a SAML Response")
    status_code = response.find(f"{qname(SAMLP_NS, 'Status')}/{qname(SAMLP_NS, 'StatusCode')}")
    if status_code is None:
        return RuleOutcome.error("The Response contains no StatusCode")
    value = status_code.get("Value")
    if value != STATUS_SUCCESS:
        return RuleOutcome.error(f"The Response has status {value}")
    return RuleOutcome.ok()


@cases.response(
    description="Test if the Identity Provider signs the Assertions in its Response (MUST requirement)",
    success_message="All Assertions in the Response are signed",
    failed_message="The Response contains unsigned Assertions",
)
def response_assertion_signed(xml: str, binding: Binding) -> RuleOutcome:
    response = _parse_response(xml)
    if response is None:
        return RuleOutcome.error("The captured message is not a SAML Response")

    assertions = response.findall(qname(SAML_NS, "Assertion"))
    if not assertions:
        if response.find(qname(SAML_NS, "EncryptedAssertion")) is not None:
            return RuleOutcome.warning("The Response only contains encrypted Assertions, which cannot be inspected")
        return RuleOutcome.error("The Response contains no Assertion")

    unsigned = [a.get("ID") or "(no ID)" for a in assertions if a.find(qname(DSIG_NS, "Signature")) is None]
    if unsigned:
        return RuleOutcome.error(f"Unsigned Assertions: {', '.join(unsigned)}")
    return RuleOutcome.ok()


@cases.response(
    description=(
        "Test if the Identity Provider restricts its Assertions to the mock Service Provider "
        "as audience (MUST requirement)"
    ),
    success_message="The Assertions are restricted to the mock Service Provider",
    failed_message="The Assertions are not restricted to the mock Service Provider",
)
def response_audience_restriction(xml: str, binding: Binding) -> RuleOutcome:
    response = _parse_response(xml)
    if response is None:
        return RuleOutcome.error("The captured message is not a SAML Response")

    audiences = [a.text.strip() for a in response.iter(qname(SAML_NS, "Audience")) if a.text]
    if not audiences:
        return RuleOutcome.error("The Assertions contain no AudienceRestriction")
    if MOCK_SP_ENTITY_ID not in audiences:
        return RuleOutcome.error(f"The Assertions are restricted to {', '.join(audiences)}")
    return RuleOutcome.ok()


@cases.response(
    description=(
        "Test if the Identity Provider answers an AuthnRequest sent with the HTTP-Redirect "
        "binding with a Response using the HTTP-POST binding (MUST requirement)"
    ),
    success_message="The Identity Provider answered the AuthnRequest using the HTTP-POST binding",
    failed_message="The Identity Provider did not answer the AuthnRequest as expected",
    sp_initiated=False,
)
def response_to_authn_request(xml: str, binding: Binding) -> RuleOutcome:
    if binding != Binding.HTTP_POST:
        return RuleOutcome.error(f"The Response was sent using the {binding.short_name} binding")
    response = _parse_response(xml)
    if response is None:
        return RuleOutcome.error("The captured message is not a SAML Response")
    if not response.get("InResponseTo"):
        return RuleOutcome.error("The Response does not refer to the AuthnRequest (no InResponseTo)")
    return RuleOutcome.ok()


def create_suite() -> TestSuite:
    """Create the SAML2Int test suite."""
    return TestSuite(
        name=SUITE_NAME,
        description="SAML2Int interoperability profile, Identity Provider requirements",
        mock_entity_id=MOCK_SP_ENTITY_ID,
        mock_endpoint_url=MOCK_SP_URL,
        test_cases=list(cases.cases),
    )
