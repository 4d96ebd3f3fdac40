from __future__ import annotations
"""Parsing of S3 ``ListBucketResult`` documents."""
from typing import Optional
from xml.etree import ElementTree

from .errors import ParseError
from .models import ListingResult, ObjectEntry

S3_NAMESPACE = "http://s3.amazonaws.com/doc/2006-03-01/"
ROOT_TAG = "ListBucketResult"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(element: ElementTree.Element, name: str) -> list[ElementTree.Element]:
    return [child for child in element if _local_name(child.tag) == name]


def _text(element: ElementTree.Element, name: str, *, required: bool = False) -> Optional[str]:
    for child in element:
        if _local_name(child.tag) == name:
            return child.text or ""
    if required:
        raise ParseError(f"<{_local_name(element.tag)}> is missing required element <{name}>")
    return None


def _int(element: ElementTree.Element, name: str) -> int:
    value = _text(element, name, required=True)
    try:
        return int(value.strip())
    except ValueError as exc:
        raise ParseError(f"<{name}> is not an integer: {value!r}") from exc


def _bool(element: ElementTree.Element, name: str) -> bool:
    value = (_text(element, name, required=True) or "").strip().lower()
    if value not in {"true", "false"}:
        raise ParseError(f"<{name}> is not a boolean: {value!r}")
    return value == "true"


def _parse_object(element: ElementTree.Element) -> ObjectEntry:
    return ObjectEntry(
        key=_text(element, "Key", required=True),
        last_modified=_text(element, "LastModified", required=True),
        etag=_text(element, "ETag", required=True),
        size=_int(element, "Size"),
        storage_class=_text(element, "StorageClass", required=True),
        checksum_algorithm=_text(element, "ChecksumAlgorithm"),
        checksum_type=_text(element, "ChecksumType"),
    )


def parse_listing(body: str | bytes) -> ListingResult:
    """Parse a single listing page.

    Unknown elements and attributes are ignored so newer S3 responses keep
    parsing. The S3 namespace is accepted but not required.

    Raises:
        ParseError: when the body is not XML or lacks a required element.
    """

    try:
        root = ElementTree.fromstring(body)
    except ElementTree.ParseError as exc:
        raise ParseError(f"Listing response is not valid XML: {exc}") from exc

    if _local_name(root.tag) != ROOT_TAG:
        raise ParseError(f"Expected <{ROOT_TAG}> document, got <{_local_name(root.tag)}>")

    common_prefixes = []
    for group in _children(root, "CommonPrefixes"):
        common_prefixes.append(_text(group, "Prefix", required=True))

    return ListingResult(
        bucket_name=_text(root, "Name", required=True),
        prefix=_text(root, "Prefix") or "",
        marker=_text(root, "Marker") or None,
        max_keys=_int(root, "MaxKeys"),
        delimiter=_text(root, "Delimiter") or None,
        is_truncated=_bool(root, "IsTruncated"),
        objects=[_parse_object(item) for item in _children(root, "Contents")],
        common_prefixes=common_prefixes,
        next_marker=_text(root, "NextMarker") or None,
    )
