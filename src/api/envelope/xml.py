"""Recursive mapping-to-XML rendering for envelope content.

The XML tree mirrors the JSON key tree under a ``<root>`` element. Keys that
are not valid XML element names (numbers, list indexes, names with spaces)
become ``item_<key>`` with any character not allowed in a name replaced by
``_``. Leaves render as text: booleans as ``true``/``false``,
``None`` as an empty element, and anything without a natural text form is
JSON-encoded.
"""

import re
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Final
from xml.etree import ElementTree

import orjson
from pydantic import BaseModel

from src.core.exceptions import SerializationError

XML_DECLARATION: Final[str] = '<?xml version="1.0" encoding="UTF-8"?>\n'
ROOT_ELEMENT: Final[str] = "root"

_NAME_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\-]*$")
_INVALID_NAME_CHARS: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9_.\-]")


def element_name(key: object) -> str:
    """Map a mapping key or list index to a valid element name."""
    name = str(key)
    if (
        isinstance(key, str)
        and _NAME_PATTERN.match(name)
        and not name.lower().startswith("xml")
    ):
        return name
    return "item_" + _INVALID_NAME_CHARS.sub("_", name)


def _leaf_text(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str | int | float | Decimal):
        return str(value)
    if isinstance(value, datetime | date):
        return value.isoformat()
    return orjson.dumps(value, default=str).decode()


def _append(parent: ElementTree.Element, key: object, value: Any) -> None:
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")

    child = ElementTree.SubElement(parent, element_name(key))
    if isinstance(value, Mapping):
        for sub_key, sub_value in value.items():
            _append(child, sub_key, sub_value)
    elif isinstance(value, list | tuple):
        for index, item in enumerate(value):
            _append(child, index, item)
    else:
        child.text = _leaf_text(value)


def to_xml(content: Mapping[str, Any]) -> bytes:
    """Render envelope content as an XML document.

    Args:
        content: Envelope content.

    Returns:
        bytes: UTF-8 encoded XML document.

    Raises:
        SerializationError: If the tree cannot be built, serialized or read back.
    """
    try:
        root = ElementTree.Element(ROOT_ELEMENT)
        for key, value in content.items():
            _append(root, key, value)
        body = ElementTree.tostring(root, encoding="unicode")
        # ElementTree writes control characters in text without complaint
        ElementTree.fromstring(body)
    except (TypeError, ValueError, ElementTree.ParseError) as e:
        raise SerializationError(
            "Failed to convert array to XML", context={"format": "xml"}, cause=e
        ) from e
    return (XML_DECLARATION + body).encode()
