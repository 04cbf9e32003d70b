"""
Parser for WebDAV multi-status (207) response bodies.
"""

import xml.etree.ElementTree as eTree
from urllib.parse import unquote

_DAV_NS = "{DAV:}"


def parse_multistatus(body: bytes | str) -> list[str]:
    """
    Extract the resource URIs listed in a multi-status response.

    A multi-status body is of the form:

        <D:multistatus xmlns:D="DAV:">
            <D:response>
                <D:href>/uploads/tmp/</D:href>
                <D:propstat>...</D:propstat>
            </D:response>
            ...
        </D:multistatus>

    Args:
        body: XML response body.

    Returns:
        Decoded href of every response element, in document order.

    Raises:
        ValueError: If the body is not a multi-status document or a
            response element has no href.
    """
    if isinstance(body, bytes):
        body = body.decode("utf-8")

    try:
        root = eTree.fromstring(body.strip())
    except eTree.ParseError as e:
        msg = f"Invalid multi-status body: {e}"
        raise ValueError(msg) from e

    if root.tag != f"{_DAV_NS}multistatus":
        msg = f"Unexpected root element {root.tag!r}, expected DAV: multistatus"
        raise ValueError(msg)

    hrefs = []
    for response in root.findall(f"./{_DAV_NS}response"):
        href = response.find(f"./{_DAV_NS}href")
        if href is None or not (href.text or "").strip():
            msg = "Property 'href' expected but not found in multi-status response"
            raise ValueError(msg)
        hrefs.append(unquote(href.text.strip()))
    return hrefs
