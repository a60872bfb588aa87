"""
SOAP envelope construction and parsing for ONVIF and WS-Discovery.

Envelopes are built as ElementTree elements and serialized in one place,
so values never need manual escaping. Parsing matches elements by local
name because devices disagree about namespace prefixes and versions.
"""

import base64
import hashlib
import secrets
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Iterator, Optional

# Namespaces
NS_SOAP = "http://www.w3.org/2003/05/soap-envelope"
NS_WSA = "http://schemas.xmlsoap.org/ws/2004/08/addressing"
NS_WSD = "http://schemas.xmlsoap.org/ws/2005/04/discovery"
NS_WSSE = "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-secext-1.0.xsd"
NS_WSU = "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-utility-1.0.xsd"
NS_TDS = "http://www.onvif.org/ver10/device/wsdl"
NS_TRT = "http://www.onvif.org/ver10/media/wsdl"
NS_TT = "http://www.onvif.org/ver10/schema"

PASSWORD_DIGEST_TYPE = (
    "http://docs.oasis-open.org/wss/2004/01/"
    "oasis-200401-wss-username-token-profile-1.0#PasswordDigest"
)
BASE64_ENCODING_TYPE = (
    "http://docs.oasis-open.org/wss/2004/01/"
    "oasis-200401-wss-soap-message-security-1.0#Base64Binary"
)

for _prefix, _uri in (
    ("s", NS_SOAP),
    ("a", NS_WSA),
    ("d", NS_WSD),
    ("wsse", NS_WSSE),
    ("wsu", NS_WSU),
    ("tds", NS_TDS),
    ("trt", NS_TRT),
    ("tt", NS_TT),
):
    ET.register_namespace(_prefix, _uri)


def qname(namespace: str, name: str) -> str:
    """Qualified ElementTree tag for ``name`` in ``namespace``."""
    return f"{{{namespace}}}{name}"


def element(namespace: str, name: str, text: Optional[str] = None, **attrib: str) -> ET.Element:
    """Create an element, optionally with text content."""
    el = ET.Element(qname(namespace, name), attrib)
    if text is not None:
        el.text = text
    return el


def sub_element(
    parent: ET.Element, namespace: str, name: str, text: Optional[str] = None, **attrib: str
) -> ET.Element:
    """Create a child element of ``parent``."""
    el = ET.SubElement(parent, qname(namespace, name), attrib)
    if text is not None:
        el.text = text
    return el


def build_envelope(body: ET.Element, header: Optional[list[ET.Element]] = None) -> bytes:
    """
    Wrap a body element in a SOAP 1.2 envelope.

    Args:
        body: The single element placed inside ``s:Body``.
        header: Elements placed inside ``s:Header``. No header is written
            when this is empty.

    Returns:
        UTF-8 encoded XML document.
    """
    envelope = element(NS_SOAP, "Envelope")
    if header:
        header_el = sub_element(envelope, NS_SOAP, "Header")
        header_el.extend(header)
    body_el = sub_element(envelope, NS_SOAP, "Body")
    body_el.append(body)
    return ET.tostring(envelope, encoding="utf-8", xml_declaration=True)


# =============================================================================
# WS-Security UsernameToken
# =============================================================================


def format_created(moment: datetime) -> str:
    """Format a timestamp as the UTC ``wsu:Created`` value."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def password_digest(nonce: bytes, created: str, password: str) -> str:
    """Base64 of SHA-1 over nonce, creation timestamp and password."""
    digest = hashlib.sha1(nonce + created.encode("utf-8") + password.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def build_security_header(
    username: str,
    password: str,
    created: str,
    nonce: Optional[bytes] = None,
) -> ET.Element:
    """
    Build a ``wsse:Security`` header carrying a digest UsernameToken.

    Args:
        username: Device username.
        password: Device password, never sent in clear.
        created: Timestamp from :func:`format_created`, already corrected
            for the device clock.
        nonce: Raw nonce bytes. A fresh random nonce is used when omitted.
    """
    if nonce is None:
        nonce = secrets.token_bytes(16)

    security = element(NS_WSSE, "Security")
    token = sub_element(security, NS_WSSE, "UsernameToken")
    sub_element(token, NS_WSSE, "Username", username)
    sub_element(
        token,
        NS_WSSE,
        "Password",
        password_digest(nonce, created, password),
        Type=PASSWORD_DIGEST_TYPE,
    )
    sub_element(
        token,
        NS_WSSE,
        "Nonce",
        base64.b64encode(nonce).decode("ascii"),
        EncodingType=BASE64_ENCODING_TYPE,
    )
    sub_element(token, NS_WSU, "Created", created)
    return security


# =============================================================================
# Parsing helpers
# =============================================================================


def local_name(tag: str) -> str:
    """Strip the namespace from an ElementTree tag."""
    return tag.rsplit("}", 1)[-1]


def parse_envelope(content: bytes) -> ET.Element:
    """Parse an XML document. Raises ``ET.ParseError`` when malformed."""
    return ET.fromstring(content)


def iter_children(el: ET.Element, name: str) -> Iterator[ET.Element]:
    """Yield direct children of ``el`` whose local name is ``name``."""
    for child in el:
        if local_name(child.tag) == name:
            yield child


def find_path(el: Optional[ET.Element], *names: str) -> Optional[ET.Element]:
    """Follow a path of local names, taking the first match at each step."""
    for name in names:
        if el is None:
            return None
        el = next(iter_children(el, name), None)
    return el


def find_all(el: Optional[ET.Element], *names: str) -> list[ET.Element]:
    """All elements matching the last name under the path of the others."""
    if not names:
        return []
    parent = find_path(el, *names[:-1])
    if parent is None:
        return []
    return list(iter_children(parent, names[-1]))


def text_at(el: Optional[ET.Element], *names: str, default: str = "") -> str:
    """Stripped text at a path of local names, or ``default``."""
    found = find_path(el, *names)
    if found is None or found.text is None:
        return default
    return found.text.strip()
