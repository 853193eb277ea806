#!/usr/bin/env python
from collections import OrderedDict
from hashlib import sha256
from unittest import TestCase

import awssign.canonical as canonical
from awssign.exc import ValidationError

empty_hash = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

class UriPaths(TestCase):
    def test_normalization(self):
        cases = [
            ("", "/"),
            ("/", "/"),
            ("/users", "/users"),
            ("//example//", "/example/"),
            ("/a/b/./c/../d", "/a/b/d"),
            ("/./", "/"),
            ("/a/..", "/"),
            ("/example space/", "/example%20space/"),
            ("/a+b", "/a%2Bb"),
            ("/%7euser", "/~user"),
            ("/a%2fb", "/a%2Fb"),
            ("/-._~", "/-._~"),
            ("/ሴ", "/%E1%88%B4"),
            ("/50%", "/50%25"),
        ]

        for path, expected in cases:
            self.assertEqual(canonical.get_canonical_uri_path(path), expected,
                             "Canonicalizing %r" % path)

    def test_idempotent(self):
        for path in ("/example space/", "/a%2fb//c/./d/../e", "/ሴ/%41",
                     "/users", "/question%3Fmark%3Furl", "/50%"):
            once = canonical.get_canonical_uri_path(path)
            self.assertEqual(canonical.get_canonical_uri_path(once), once)

    def test_invalid(self):
        for path in ("/%zz", "../foo", "users", "/a/b/../../..", "/%4g"):
            with self.assertRaises(ValidationError):
                canonical.get_canonical_uri_path(path)

class QueryStrings(TestCase):
    def test_sorted(self):
        self.assertEqual(
            canonical.get_canonical_query_string(
                OrderedDict([("b", "2"), ("a", "1")])),
            "a=1&b=2")

    def test_empty(self):
        self.assertEqual(canonical.get_canonical_query_string({}), "")

    def test_byte_order(self):
        self.assertEqual(
            canonical.get_canonical_query_string({"a": "1", "B": "2"}),
            "B=2&a=1")

    def test_sorted_by_value(self):
        self.assertEqual(
            canonical.get_canonical_query_string({"a": ["z", "b", "m"]}),
            "a=b&a=m&a=z")

    def test_encoding(self):
        self.assertEqual(
            canonical.get_canonical_query_string({
                "key": "a b/c+d=e&f",
                "unreserved": "-_.~AZaz09",
                "ሴ": "%",
                "empty": "",
            }),
            "%E1%88%B4=%25&empty=&key=a%20b%2Fc%2Bd%3De%26f&"
            "unreserved=-_.~AZaz09")

class Headers(TestCase):
    def test_value_trimming(self):
        headers = canonical.get_canonical_headers({
            "My-Header1": "  value1  ",
            "my-header2": '"a   b   c"',
            "My-Header3": "a   b \t  c",
            "Host": "example.com",
        })

        self.assertEqual(list(headers), [
            "host", "my-header1", "my-header2", "my-header3"])
        self.assertEqual(headers["my-header1"], "value1")
        self.assertEqual(headers["my-header2"], '"a   b   c"')
        self.assertEqual(headers["my-header3"], "a b c")

    def test_case_variants_merged(self):
        headers = canonical.get_canonical_headers(
            OrderedDict([("X-Foo", "a"), ("x-foo", " b ")]))
        self.assertEqual(dict(headers), {"x-foo": "a,b"})

    def test_idempotent(self):
        headers = {"X-Foo": "  a   b  ", "Host": "example.com",
                   "X-Quoted": ' "x   y" '}
        once = canonical.get_canonical_headers(headers)
        self.assertEqual(canonical.get_canonical_headers(once), once)

    def test_signed_headers(self):
        self.assertEqual(
            canonical.get_signed_headers(
                ["X-Amz-Date", "host", "Content-Type", "HOST"]),
            "content-type;host;x-amz-date")

class Payloads(TestCase):
    def test_empty_payload_hash(self):
        self.assertEqual(canonical.EMPTY_PAYLOAD_HASH, empty_hash)
        self.assertEqual(canonical.hash_payload(b""), empty_hash)
        self.assertEqual(canonical.hash_payload(None), empty_hash)

    def test_payload_hash(self):
        self.assertEqual(canonical.hash_payload(b"foo=bar"),
                         sha256(b"foo=bar").hexdigest())

    def test_payload_encoding(self):
        request = canonical.RequestDescriptor(body="café")
        self.assertEqual(request.payload, b"caf\xc3\xa9")

        request = canonical.RequestDescriptor(body={"b": [1, 2], "a": None})
        self.assertEqual(request.payload, b'{"b":[1,2],"a":null}')

        request = canonical.RequestDescriptor(body=bytearray(b"raw"))
        self.assertEqual(request.payload, b"raw")

        self.assertEqual(canonical.RequestDescriptor().payload, b"")

class Canonicalize(TestCase):
    def request(self, **kw):
        params = {
            "method": "GET",
            "hostname": "example.com",
            "path": "/users",
            "query": {"param1": "paramValue"},
            "headers": {"Host": "example.com",
                        "X-Amz-Date": "20150830T123600Z"},
        }
        params.update(kw)
        return canonical.RequestDescriptor(**params)

    def test_get(self):
        result = canonical.canonicalize(self.request())

        self.assertEqual(result.method, "GET")
        self.assertEqual(result.uri_path, "/users")
        self.assertEqual(result.query_string, "param1=paramValue")
        self.assertEqual(result.signed_headers, "host;x-amz-date")
        self.assertEqual(result.payload_hash, empty_hash)
        self.assertEqual(
            str(result),
            "GET\n/users\nparam1=paramValue\nhost:example.com\n"
            "x-amz-date:20150830T123600Z\n\nhost;x-amz-date\n" + empty_hash)

    def test_lowercase_method(self):
        result = canonical.canonicalize(self.request(method="get"))
        self.assertEqual(result.method, "GET")

    def test_explicit_payload_hash(self):
        result = canonical.canonicalize(self.request(), "UNSIGNED-PAYLOAD")
        self.assertTrue(str(result).endswith("\nUNSIGNED-PAYLOAD"))

    def test_deterministic(self):
        self.assertEqual(canonical.canonicalize(self.request()),
                         canonical.canonicalize(self.request()))

    def test_body_required(self):
        for method in ("POST", "PUT"):
            with self.assertRaises(ValidationError):
                canonical.canonicalize(self.request(method=method))

            with self.assertRaises(ValidationError):
                canonical.canonicalize(self.request(method=method, body=b""))

            result = canonical.canonicalize(
                self.request(method=method, body=b"foo=bar"))
            self.assertEqual(result.payload_hash,
                             sha256(b"foo=bar").hexdigest())

    def test_empty_structure_is_a_body(self):
        for body, payload in (({}, b"{}"), ([], b"[]")):
            request = self.request(method="POST", body=body)
            self.assertTrue(request.has_body)
            self.assertEqual(request.payload, payload)

            result = canonical.canonicalize(request)
            self.assertEqual(result.payload_hash,
                             sha256(payload).hexdigest())

        for body in (None, b"", "", bytearray()):
            self.assertFalse(self.request(body=body).has_body, repr(body))

    def test_delete_without_body(self):
        result = canonical.canonicalize(self.request(method="DELETE"))
        self.assertEqual(result.payload_hash, empty_hash)

    def test_host_required(self):
        with self.assertRaises(ValidationError):
            canonical.canonicalize(self.request(headers={}))

class BadDescriptor(TestCase):
    def test_method(self):
        with self.assertRaises(TypeError):
            canonical.RequestDescriptor(method=None)

        with self.assertRaises(ValidationError):
            canonical.RequestDescriptor(method="TRACE")

    def test_hostname(self):
        with self.assertRaises(TypeError):
            canonical.RequestDescriptor(hostname=None)

    def test_path(self):
        with self.assertRaises(TypeError):
            canonical.RequestDescriptor(path=b"/")

    def test_query(self):
        with self.assertRaises(TypeError):
            canonical.RequestDescriptor(query="a=1")

        with self.assertRaises(TypeError):
            canonical.RequestDescriptor(query={"a": 1})

        with self.assertRaises(TypeError):
            canonical.RequestDescriptor(query={1: "a"})

        with self.assertRaises(TypeError):
            canonical.RequestDescriptor(query={"a": ["1", 2]})

    def test_headers(self):
        with self.assertRaises(TypeError):
            canonical.RequestDescriptor(headers=[("Host", "example.com")])

        with self.assertRaises(TypeError):
            canonical.RequestDescriptor(headers={"Host": 0})

        with self.assertRaises(TypeError):
            canonical.RequestDescriptor(headers={0: "Foo"})

class DescriptorCopies(TestCase):
    def test_copy_is_independent(self):
        original = canonical.RequestDescriptor(
            method="GET", hostname="example.com",
            query={"a": ["1"]}, headers={"X-Foo": "bar"})
        copy = original.copy(method="POST", body=b"x")

        copy.headers["X-Bar"] = "baz"
        copy.query["a"].append("2")

        self.assertEqual(copy.method, "POST")
        self.assertEqual(original.method, "GET")
        self.assertEqual(dict(original.headers), {"X-Foo": "bar"})
        self.assertEqual(dict(original.query), {"a": ["1"]})

    def test_get_header(self):
        request = canonical.RequestDescriptor(headers={"Content-Type": "a/b"})
        self.assertEqual(request.get_header("content-type"), "a/b")
        self.assertTrue(request.has_header("CONTENT-TYPE"))
        self.assertIsNone(request.get_header("host"))
