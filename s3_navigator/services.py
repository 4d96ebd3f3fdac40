from __future__ import annotations
"""Listing and object retrieval against a publicly readable bucket."""
import logging
from typing import Callable, Optional, Protocol
from urllib.parse import quote

import boto3
from botocore import UNSIGNED
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
import requests
from requests.adapters import HTTPAdapter, Retry

from .errors import NetworkError, ParseError
from .models import ListingResult, ObjectEntry
from .parser import parse_listing
from .settings import AppSettings

LOGGER = logging.getLogger(__name__)

DELIMITER = "/"
RETRY_STATUSES = (429, 500, 502, 503, 504)


def encode_component(value: str) -> str:
    """Percent-encode a prefix, marker or key, keeping ``/`` literal."""

    return quote(value, safe="/")


class ListingTransport(Protocol):
    def fetch_page(self, bucket: str, prefix: str, marker: Optional[str] = None) -> ListingResult:
        ...

    def fetch_object(self, bucket: str, key: str) -> bytes:
        ...


def make_session(settings: AppSettings) -> requests.Session:
    session = requests.Session()
    retries = Retry(
        total=settings.max_retries,
        backoff_factor=settings.backoff_factor,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retries)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class HttpListingTransport:
    """Plain HTTP access to the S3 REST API, optionally through a proxy."""

    def __init__(self, settings: AppSettings, session: requests.Session | None = None):
        self._settings = settings
        self._session = session or make_session(settings)

    def listing_url(self, bucket: str, prefix: str, marker: Optional[str] = None) -> str:
        query = f"delimiter={encode_component(DELIMITER)}&prefix={encode_component(prefix)}"
        if marker:
            query += f"&marker={encode_component(marker)}"
        return self._settings.build_url(f"{self._settings.endpoint_for(bucket)}/?{query}")

    def object_url(self, bucket: str, key: str) -> str:
        return self._settings.build_url(f"{self._settings.endpoint_for(bucket)}/{encode_component(key)}")

    def fetch_page(self, bucket: str, prefix: str, marker: Optional[str] = None) -> ListingResult:
        response = self._get(self.listing_url(bucket, prefix, marker))
        return parse_listing(response.content)

    def fetch_object(self, bucket: str, key: str) -> bytes:
        return self._get(self.object_url(bucket, key)).content

    def _get(self, url: str) -> requests.Response:
        LOGGER.debug("GET %s", url)
        try:
            response = self._session.get(url, timeout=self._settings.timeout_seconds)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise NetworkError(f"Request to {url} failed: {exc}") from exc
        return response


class BotoListingTransport:
    """Unsigned boto3 access, talking to S3 directly without a proxy."""

    def __init__(self, settings: AppSettings, client_factory: Callable[..., object] | None = None):
        self._settings = settings
        self._client_factory = client_factory or boto3.client
        self._client = None

    def fetch_page(self, bucket: str, prefix: str, marker: Optional[str] = None) -> ListingResult:
        params = {"Bucket": bucket, "Prefix": prefix, "Delimiter": DELIMITER}
        if marker:
            params["Marker"] = marker
        try:
            response = self._get_client().list_objects(**params)
        except (BotoCoreError, ClientError) as exc:
            raise NetworkError(f"Listing s3://{bucket}/{prefix} failed: {exc}") from exc
        return self._to_listing(response)

    def fetch_object(self, bucket: str, key: str) -> bytes:
        try:
            response = self._get_client().get_object(Bucket=bucket, Key=key)
            return response["Body"].read()
        except (BotoCoreError, ClientError) as exc:
            raise NetworkError(f"Fetching s3://{bucket}/{key} failed: {exc}") from exc

    def _get_client(self):
        if self._client is None:
            config = Config(
                signature_version=UNSIGNED,
                connect_timeout=self._settings.timeout_seconds,
                read_timeout=self._settings.timeout_seconds,
                retries={"max_attempts": self._settings.max_retries + 1, "mode": "standard"},
            )
            self._client = self._client_factory("s3", region_name=self._settings.region, config=config)
        return self._client

    @staticmethod
    def _to_listing(response: dict) -> ListingResult:
        try:
            objects = []
            for item in response.get("Contents", []):
                last_modified = item.get("LastModified")
                algorithms = item.get("ChecksumAlgorithm")
                objects.append(
                    ObjectEntry(
                        key=item["Key"],
                        last_modified=last_modified.isoformat() if hasattr(last_modified, "isoformat") else str(last_modified or ""),
                        etag=item.get("ETag", ""),
                        size=int(item.get("Size", 0)),
                        storage_class=item.get("StorageClass", ""),
                        checksum_algorithm=",".join(algorithms) if algorithms else None,
                        checksum_type=item.get("ChecksumType"),
                    )
                )
            return ListingResult(
                bucket_name=response["Name"],
                prefix=response.get("Prefix", ""),
                marker=response.get("Marker") or None,
                max_keys=int(response.get("MaxKeys", 1000)),
                delimiter=response.get("Delimiter") or None,
                is_truncated=bool(response.get("IsTruncated", False)),
                objects=objects,
                common_prefixes=[common["Prefix"] for common in response.get("CommonPrefixes", [])],
                next_marker=response.get("NextMarker") or None,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ParseError(f"Unexpected listing response: {exc}") from exc


def create_transport(settings: AppSettings) -> ListingTransport:
    if settings.transport == "boto3":
        return BotoListingTransport(settings)
    return HttpListingTransport(settings)


class S3ListingService:
    """Encapsulates listing logic independent of any UI technology."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        transport: ListingTransport | None = None,
    ):
        self._settings = settings or AppSettings()
        self._transport = transport or create_transport(self._settings)

    @property
    def settings(self) -> AppSettings:
        return self._settings

    def list(self, bucket: str, prefix: str = "") -> ListingResult:
        """Return every entry directly under ``prefix``, following markers.

        Raises:
            NetworkError: when a page cannot be fetched.
            ParseError: when a page is malformed or pagination stops advancing.
        """

        first: ListingResult | None = None
        objects: list[ObjectEntry] = []
        common_prefixes: list[str] = []
        seen_keys: set[str] = set()
        seen_prefixes: set[str] = set()
        marker: str | None = None
        page_number = 0

        while True:
            page = self._transport.fetch_page(bucket, prefix, marker)
            page_number += 1
            first = first or page
            for obj in page.objects:
                if obj.key not in seen_keys:
                    seen_keys.add(obj.key)
                    objects.append(obj)
            for common_prefix in page.common_prefixes:
                if common_prefix not in seen_prefixes:
                    seen_prefixes.add(common_prefix)
                    common_prefixes.append(common_prefix)
            LOGGER.debug(
                "Page %d of s3://%s/%s: %d object(s), %d prefix(es), truncated=%s",
                page_number,
                bucket,
                prefix,
                len(page.objects),
                len(page.common_prefixes),
                page.is_truncated,
            )

            if not page.is_truncated:
                break
            next_marker = page.continuation_marker()
            if not next_marker or (marker is not None and next_marker <= marker):
                raise ParseError(f"Truncated listing for s3://{bucket}/{prefix} did not advance past {marker!r}")
            if page_number >= self._settings.max_pages:
                raise ParseError(f"Listing for s3://{bucket}/{prefix} exceeded {self._settings.max_pages} page(s)")
            marker = next_marker

        return ListingResult(
            bucket_name=first.bucket_name,
            prefix=first.prefix,
            marker=None,
            max_keys=first.max_keys,
            delimiter=first.delimiter,
            is_truncated=False,
            objects=objects,
            common_prefixes=common_prefixes,
        )

    def fetch_object(self, bucket: str, key: str) -> bytes:
        """Return the raw bytes stored under ``key``."""

        data = self._transport.fetch_object(bucket, key)
        LOGGER.debug("Fetched %d byte(s) from s3://%s/%s", len(data), bucket, key)
        return data
