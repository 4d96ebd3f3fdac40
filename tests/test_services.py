import datetime as dt
import io
import unittest

import requests
from botocore import UNSIGNED
from botocore.exceptions import ClientError, EndpointConnectionError

from s3_navigator.errors import NetworkError, ParseError
from s3_navigator.models import ListingResult, ObjectEntry
from s3_navigator.services import (
    BotoListingTransport,
    HttpListingTransport,
    S3ListingService,
    create_transport,
    encode_component,
    make_session,
)
from s3_navigator.settings import AppSettings

PAGE_XML = (
    '<ListBucketResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">'
    "<Name>bucket</Name><Prefix>docs/</Prefix><MaxKeys>1000</MaxKeys>"
    "<Delimiter>/</Delimiter><IsTruncated>false</IsTruncated>"
    "<Contents><Key>docs/a.txt</Key><LastModified>t</LastModified><ETag>e</ETag>"
    "<Size>3</Size><StorageClass>STANDARD</StorageClass></Contents>"
    "<CommonPrefixes><Prefix>docs/img/</Prefix></CommonPrefixes>"
    "</ListBucketResult>"
).encode()


class FakeResponse:
    def __init__(self, content=b"", status_code=200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeTransport:
    """Serves pre-built pages keyed by the marker they answer."""

    def __init__(self, pages_by_marker, objects=None):
        self.pages_by_marker = pages_by_marker
        self.objects = objects or {}
        self.page_calls = []
        self.object_calls = []

    def fetch_page(self, bucket, prefix, marker=None):
        self.page_calls.append((bucket, prefix, marker))
        return self.pages_by_marker[marker]

    def fetch_object(self, bucket, key):
        self.object_calls.append((bucket, key))
        return self.objects[key]


class FakeS3Client:
    def __init__(self, list_responses=None, objects=None):
        self.list_responses = list(list_responses or [])
        self.objects = objects or {}
        self.list_objects_kwargs = []
        self.get_object_calls = []

    def list_objects(self, **kwargs):
        self.list_objects_kwargs.append(kwargs)
        response = self.list_responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get_object(self, **kwargs):
        self.get_object_calls.append(kwargs)
        response = self.objects[(kwargs["Bucket"], kwargs["Key"])]
        if isinstance(response, Exception):
            raise response
        return {"Body": io.BytesIO(response)}


def numbered_page(start, count, *, truncated, next_marker=None):
    return ListingResult(
        bucket_name="bucket",
        is_truncated=truncated,
        objects=[ObjectEntry(key=f"key-{index:05d}") for index in range(start, start + count)],
        next_marker=next_marker,
    )


class HttpListingTransportTests(unittest.TestCase):
    def test_listing_url_goes_through_proxy(self):
        transport = HttpListingTransport(AppSettings(), session=FakeSession([]))

        url = transport.listing_url("ons-aws-prod-opendata", "dataset/2024/")

        self.assertEqual(
            "https://corsproxy.io/?https://ons-aws-prod-opendata.s3-us-west-2.amazonaws.com/"
            "?delimiter=/&prefix=dataset/2024/",
            url,
        )

    def test_listing_url_without_proxy_includes_marker(self):
        settings = AppSettings(proxy_base="", region="sa-east-1")
        transport = HttpListingTransport(settings, session=FakeSession([]))

        url = transport.listing_url("bucket", "", marker="docs/b.txt")

        self.assertEqual(
            "https://bucket.s3-sa-east-1.amazonaws.com/?delimiter=/&prefix=&marker=docs/b.txt",
            url,
        )

    def test_reserved_characters_are_percent_encoded(self):
        self.assertEqual("a%20b/c%3Fd%26e%3D", encode_component("a b/c?d&e="))
        transport = HttpListingTransport(AppSettings(proxy_base=""), session=FakeSession([]))

        self.assertEqual(
            "https://bucket.s3-us-west-2.amazonaws.com/dir/file%23%2B1.txt",
            transport.object_url("bucket", "dir/file#+1.txt"),
        )

    def test_fetch_page_parses_response(self):
        session = FakeSession([FakeResponse(PAGE_XML)])
        transport = HttpListingTransport(AppSettings(timeout_seconds=7.5), session=session)

        page = transport.fetch_page("bucket", "docs/")

        self.assertEqual(["docs/a.txt"], [obj.key for obj in page.objects])
        self.assertEqual(["docs/img/"], page.common_prefixes)
        self.assertEqual(7.5, session.calls[0][1])

    def test_http_error_becomes_network_error(self):
        transport = HttpListingTransport(AppSettings(), session=FakeSession([FakeResponse(status_code=403)]))

        with self.assertRaises(NetworkError):
            transport.fetch_page("bucket", "")

    def test_transport_error_becomes_network_error(self):
        session = FakeSession([requests.ConnectionError("boom"), requests.Timeout("slow")])
        transport = HttpListingTransport(AppSettings(), session=session)

        with self.assertRaises(NetworkError):
            transport.fetch_page("bucket", "")
        with self.assertRaises(NetworkError):
            transport.fetch_object("bucket", "a.txt")

    def test_malformed_body_becomes_parse_error(self):
        transport = HttpListingTransport(AppSettings(), session=FakeSession([FakeResponse(b"<html>")]))

        with self.assertRaises(ParseError):
            transport.fetch_page("bucket", "")

    def test_fetch_object_returns_raw_bytes(self):
        session = FakeSession([FakeResponse(b"\x00\x01payload")])
        transport = HttpListingTransport(AppSettings(), session=session)

        data = transport.fetch_object("bucket", "docs/a.bin")

        self.assertEqual(b"\x00\x01payload", data)
        self.assertTrue(session.calls[0][0].endswith("amazonaws.com/docs/a.bin"))

    def test_make_session_mounts_bounded_retries(self):
        session = make_session(AppSettings(max_retries=2, backoff_factor=0.25))

        retries = session.get_adapter("https://example.com").max_retries
        self.assertEqual(2, retries.total)
        self.assertEqual(0.25, retries.backoff_factor)
        self.assertIn(503, retries.status_forcelist)


class BotoListingTransportTests(unittest.TestCase):
    def test_lists_with_unsigned_client(self):
        client = FakeS3Client(
            list_responses=[
                {
                    "Name": "bucket",
                    "Prefix": "docs/",
                    "Marker": "",
                    "MaxKeys": 1000,
                    "Delimiter": "/",
                    "IsTruncated": True,
                    "NextMarker": "docs/b.txt",
                    "Contents": [
                        {
                            "Key": "docs/b.txt",
                            "LastModified": dt.datetime(2024, 1, 2, tzinfo=dt.timezone.utc),
                            "ETag": '"e"',
                            "Size": 9,
                            "StorageClass": "STANDARD",
                            "ChecksumAlgorithm": ["CRC32"],
                        }
                    ],
                    "CommonPrefixes": [{"Prefix": "docs/a/"}],
                }
            ]
        )
        factory_calls = []

        def factory(*args, **kwargs):
            factory_calls.append((args, kwargs))
            return client

        transport = BotoListingTransport(AppSettings(region="eu-west-1"), client_factory=factory)

        page = transport.fetch_page("bucket", "docs/", marker="docs/a")

        self.assertEqual(
            {"Bucket": "bucket", "Prefix": "docs/", "Delimiter": "/", "Marker": "docs/a"},
            client.list_objects_kwargs[0],
        )
        args, kwargs = factory_calls[0]
        self.assertEqual(("s3",), args)
        self.assertEqual("eu-west-1", kwargs["region_name"])
        self.assertIs(UNSIGNED, kwargs["config"].signature_version)
        self.assertTrue(page.is_truncated)
        self.assertEqual("docs/b.txt", page.continuation_marker())
        self.assertEqual(["docs/a/"], page.common_prefixes)
        self.assertEqual("2024-01-02T00:00:00+00:00", page.objects[0].last_modified)
        self.assertEqual("CRC32", page.objects[0].checksum_algorithm)

    def test_client_is_created_once(self):
        client = FakeS3Client(objects={("bucket", "a"): b"1", ("bucket", "b"): b"2"})
        created = []
        transport = BotoListingTransport(AppSettings(), client_factory=lambda *a, **k: created.append(1) or client)

        self.assertEqual(b"1", transport.fetch_object("bucket", "a"))
        self.assertEqual(b"2", transport.fetch_object("bucket", "b"))
        self.assertEqual(1, len(created))

    def test_client_errors_become_network_errors(self):
        error = ClientError({"Error": {"Code": "AccessDenied", "Message": "Denied"}}, "ListObjects")
        client = FakeS3Client(
            list_responses=[error],
            objects={("bucket", "a"): EndpointConnectionError(endpoint_url="https://s3")},
        )
        transport = BotoListingTransport(AppSettings(), client_factory=lambda *a, **k: client)

        with self.assertRaises(NetworkError):
            transport.fetch_page("bucket", "")
        with self.assertRaises(NetworkError):
            transport.fetch_object("bucket", "a")

    def test_incomplete_response_becomes_parse_error(self):
        client = FakeS3Client(list_responses=[{"Contents": [{"Key": "a"}]}])
        transport = BotoListingTransport(AppSettings(), client_factory=lambda *a, **k: client)

        with self.assertRaises(ParseError):
            transport.fetch_page("bucket", "")

    def test_create_transport_honours_settings(self):
        self.assertIsInstance(create_transport(AppSettings(transport="boto3")), BotoListingTransport)
        self.assertIsInstance(create_transport(AppSettings()), HttpListingTransport)


class S3ListingServiceTests(unittest.TestCase):
    def test_single_page_listing(self):
        page = ListingResult(
            bucket_name="bucket",
            prefix="docs/",
            delimiter="/",
            objects=[ObjectEntry(key="docs/a.txt")],
            common_prefixes=["docs/img/"],
        )
        transport = FakeTransport({None: page})
        service = S3ListingService(transport=transport)

        result = service.list("bucket", "docs/")

        self.assertEqual([("bucket", "docs/", None)], transport.page_calls)
        self.assertEqual(["docs/a.txt"], [obj.key for obj in result.objects])
        self.assertEqual(["docs/img/"], result.common_prefixes)
        self.assertEqual("/", result.delimiter)
        self.assertFalse(result.is_truncated)

    def test_follows_markers_until_listing_is_complete(self):
        pages = {
            None: numbered_page(0, 1000, truncated=True, next_marker="key-00999"),
            "key-00999": numbered_page(1000, 1000, truncated=True, next_marker="key-01999"),
            "key-01999": numbered_page(2000, 500, truncated=False),
        }
        transport = FakeTransport(pages)
        service = S3ListingService(transport=transport)

        result = service.list("bucket", "")

        keys = [obj.key for obj in result.objects]
        self.assertEqual(2500, len(keys))
        self.assertEqual(2500, len(set(keys)))
        self.assertEqual(sorted(keys), keys)
        self.assertEqual([None, "key-00999", "key-01999"], [call[2] for call in transport.page_calls])
        self.assertFalse(result.is_truncated)

    def test_deduplicates_entries_repeated_across_pages(self):
        first = ListingResult(
            bucket_name="bucket",
            is_truncated=True,
            objects=[ObjectEntry(key="a"), ObjectEntry(key="b")],
            common_prefixes=["dir/"],
        )
        second = ListingResult(
            bucket_name="bucket",
            objects=[ObjectEntry(key="b"), ObjectEntry(key="c")],
            common_prefixes=["dir/", "zdir/"],
        )
        transport = FakeTransport({None: first, "dir/": second})

        result = S3ListingService(transport=transport).list("bucket", "")

        # Without NextMarker the greatest of last key / last prefix is used.
        self.assertEqual("dir/", transport.page_calls[1][2])
        self.assertEqual(["a", "b", "c"], [obj.key for obj in result.objects])
        self.assertEqual(["dir/", "zdir/"], result.common_prefixes)

    def test_non_advancing_marker_is_rejected(self):
        stuck = numbered_page(0, 1, truncated=True, next_marker="key-00000")
        transport = FakeTransport({None: stuck, "key-00000": stuck})

        with self.assertRaises(ParseError):
            S3ListingService(transport=transport).list("bucket", "")
        self.assertEqual(2, len(transport.page_calls))

    def test_truncated_page_without_marker_is_rejected(self):
        transport = FakeTransport({None: ListingResult(bucket_name="bucket", is_truncated=True)})

        with self.assertRaises(ParseError):
            S3ListingService(transport=transport).list("bucket", "")

    def test_page_limit_bounds_listing(self):
        pages = {
            None: numbered_page(0, 1, truncated=True, next_marker="key-00000"),
            "key-00000": numbered_page(1, 1, truncated=True, next_marker="key-00001"),
        }
        transport = FakeTransport(pages)
        service = S3ListingService(AppSettings(max_pages=2), transport=transport)

        with self.assertRaises(ParseError):
            service.list("bucket", "")
        self.assertEqual(2, len(transport.page_calls))

    def test_fetch_object_delegates_to_transport(self):
        transport = FakeTransport({}, objects={"docs/a.txt": b"hello"})

        data = S3ListingService(transport=transport).fetch_object("bucket", "docs/a.txt")

        self.assertEqual(b"hello", data)
        self.assertEqual([("bucket", "docs/a.txt")], transport.object_calls)


if __name__ == "__main__":
    unittest.main()
