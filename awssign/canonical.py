"""
SigV4 request canonicalization.
"""

from collections import OrderedDict, namedtuple
from hashlib import sha256
from io import BytesIO
from json import dumps as json_dumps
from re import compile as re_compile
from string import ascii_letters, digits, hexdigits
from urllib.parse import quote

from .exc import ValidationError

# Unreserved bytes from RFC 3986.
_rfc3986_unreserved = frozenset((ascii_letters + digits + "-._~")
                                .encode("utf-8"))

# Hex digit bytes, for validating percent-encodings.
_hex_digit_bytes = frozenset(hexdigits.encode("ascii"))

# ASCII code for '%'
_ascii_percent = ord(b"%")

# Methods that must carry a body.
BODY_REQUIRED_METHODS = ("POST", "PUT")

# Methods accepted by RequestDescriptor.
SUPPORTED_METHODS = ("GET", "POST", "PUT", "HEAD", "DELETE", "PATCH")

# SHA-256 digest of an empty string
EMPTY_PAYLOAD_HASH = (
    "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855")

_host = "host"

# Match for multiple slashes
_multislash = re_compile(r"//+")

# Match for runs of whitespace
_whitespace = re_compile(r"\s+")

class RequestDescriptor(object):
    # pylint: disable=R0902
    """
    An HTTP request to be signed.
    """

    def __init__(self, **kw):
        """
        RequestDescriptor(
            method: str,
            hostname: str,
            path: str="/",
            query: Mapping[str, Union[str, Iterable[str]]]=None,
            headers: Mapping[str, str]=None,
            body: Union[bytes, str, dict, list, None]=None)

        Create a new RequestDescriptor. Properties can be specified as
        keyword arguments.

        method: The HTTP request method (GET, POST, PUT, ...).
        hostname: The host the request is sent to.
        path: The path accessed; empty means "/".
        query: Query parameters. Keys are unique; a value may be a list to
            send the same key more than once.
        headers: HTTP headers. Names are case-insensitive.
        body: The request body. Strings are encoded as UTF-8; other
            non-bytes values are serialized as compact JSON.
        """
        super(RequestDescriptor, self).__init__()
        self._method = "GET"
        self._hostname = ""
        self._path = "/"
        self._query = OrderedDict()
        self._headers = OrderedDict()
        self._body = None

        for key, value in kw.items():
            setattr(self, key, value)
        return

    @property
    def method(self):
        """
        The HTTP method, upper-cased.
        """
        return self._method

    @method.setter
    def method(self, value):
        if not isinstance(value, str):
            raise TypeError("Expected method to be a string.")

        value = value.upper()
        if value not in SUPPORTED_METHODS:
            raise ValidationError("Unsupported HTTP method: %r" % value)

        self._method = value
        return

    @property
    def hostname(self):
        """
        The host the request is sent to.
        """
        return self._hostname

    @hostname.setter
    def hostname(self, value):
        if not isinstance(value, str):
            raise TypeError("Expected hostname to be a string.")

        self._hostname = value
        return

    @property
    def path(self):
        """
        The path component of the URI.
        """
        return self._path

    @path.setter
    def path(self, value):
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise TypeError("Expected path to be a string.")

        self._path = value
        return

    @property
    def query(self):
        """
        An ordered mapping of query parameter names to a list of values.
        """
        return self._query

    @query.setter
    def query(self, value):
        if value is None:
            value = {}

        try:
            items = value.items()
        except AttributeError:
            raise TypeError("Expected query to be a mapping.")

        new_query = OrderedDict()
        for key, values in items:
            if not isinstance(key, str):
                raise TypeError(
                    "Query parameter must be a string: %r" % (key,))

            if isinstance(values, str):
                values = [values]

            try:
                values = list(values)
            except TypeError:
                raise TypeError(
                    "Query parameter %r value must be a string or an iterable "
                    "of strings: %r" % (key, type(values).__name__))

            for i, el in enumerate(values):
                if not isinstance(el, str):
                    raise TypeError(
                        "Query parameter %r value %d must be a string: %r" %
                        (key, i, type(el).__name__))
            new_query[key] = values

        self._query = new_query
        return

    @property
    def headers(self):
        """
        The HTTP headers to send with the request.
        """
        return self._headers

    @headers.setter
    def headers(self, value):
        if value is None:
            value = {}

        try:
            items = value.items()
        except AttributeError:
            raise TypeError("Expected headers to be a mapping.")

        new_headers = OrderedDict()
        for key, header_value in items:
            if not isinstance(key, str):
                raise TypeError("Header must be a string: %r" % (key,))

            if not isinstance(header_value, str):
                raise TypeError(
                    "Header %r value must be a string: %r" %
                    (key, type(header_value).__name__))
            new_headers[key] = header_value

        self._headers = new_headers
        return

    @property
    def body(self):
        """
        The body sent with the request, as given.
        """
        return self._body

    @body.setter
    def body(self, value):
        self._body = value
        return

    @property
    def has_body(self):
        """
        Whether a body was supplied. None and an empty string or bytes count
        as no body; an empty structure such as {} is still a JSON body.
        """
        body = self._body
        if body is None:
            return False
        if isinstance(body, (str, bytes, bytearray)):
            return len(body) > 0
        return True

    @property
    def payload(self):
        """
        The body as the bytes that are hashed and sent on the wire.
        """
        body = self._body
        if body is None:
            return b""
        if isinstance(body, (bytes, bytearray)):
            return bytes(body)
        if isinstance(body, str):
            return body.encode("utf-8")

        return json_dumps(body, separators=(",", ":")).encode("utf-8")

    def get_header(self, name, default=None):
        """
        Return the value of the named header, matched case-insensitively.
        """
        name = name.lower()
        for key, value in self._headers.items():
            if key.lower() == name:
                return value
        return default

    def has_header(self, name):
        """
        Indicates whether the named header is present (case-insensitive).
        """
        return self.get_header(name) is not None

    def copy(self, **changes):
        """
        Return a new RequestDescriptor with the given properties replaced.
        Headers and query parameters are copied, not shared.
        """
        kw = {
            "method": self._method,
            "hostname": self._hostname,
            "path": self._path,
            "query": OrderedDict(
                (key, list(values)) for key, values in self._query.items()),
            "headers": OrderedDict(self._headers),
            "body": self._body,
        }
        kw.update(changes)
        return RequestDescriptor(**kw)

    def __repr__(self):
        return ("RequestDescriptor(method=%r, hostname=%r, path=%r, query=%r, "
                "headers=%r)" % (self._method, self._hostname, self._path,
                                 dict(self._query), dict(self._headers)))

class CanonicalRequest(namedtuple(
        "CanonicalRequest",
        ["method", "uri_path", "query_string", "headers", "signed_headers",
         "payload_hash"])):
    """
    The SigV4 canonical request. `headers` is an ordered mapping of lowercased
    header names to canonical values; str() renders the canonical request:

        method + '\\n' +
        canonical_uri_path + '\\n' +
        canonical_query_string + '\\n' +
        canonical_headers + '\\n' +
        signed_headers + '\\n' +
        payload_hash
    """
    __slots__ = ()

    @property
    def header_lines(self):
        """
        The canonical headers block, one "name:value\\n" line per header.
        """
        return "".join(["%s:%s\n" % item for item in self.headers.items()])

    def __str__(self):
        return (self.method + "\n" +
                self.uri_path + "\n" +
                self.query_string + "\n" +
                self.header_lines + "\n" +
                self.signed_headers + "\n" +
                self.payload_hash)

def normalize_uri_path_component(path_component):
    """
    normalize_uri_path_component(path_component) -> str

    Normalize the path component according to RFC 3986.  This performs the
    following operations:
    * Alpha, digit, and the symbols '-', '.', '_', and '~' (unreserved
      characters) are left alone.
    * Characters outside this range are percent-encoded.
    * Percent-encoded values are upper-cased ('%2a' becomes '%2A')
    * Percent-encoded values in the unreserved space (%41-%5A, %61-%7A,
      %30-%39, %2D, %2E, %5F, %7E) are converted to normal characters.

    Applying this to its own output returns the output unchanged.

    If a percent encoding is incomplete, the percent is encoded as %25.

    A ValidationError is raised if a percent encoding includes non-hex
    characters (e.g. %3z).
    """
    result = BytesIO()

    i = 0
    path_component = path_component.encode("utf-8")
    while i < len(path_component):
        c = path_component[i]
        if c in _rfc3986_unreserved:
            result.write(bytes((c,)))
            i += 1
        elif c == _ascii_percent: # percent, '%', 0x25, 37
            if i + 2 >= len(path_component):
                result.write(b"%25")
                i += 1
                continue

            escape = path_component[i+1:i+3]
            if not all(b in _hex_digit_bytes for b in escape):
                raise ValidationError("Invalid %% encoding at position %d" % i)

            value = int(escape, 16)
            if value in _rfc3986_unreserved:
                result.write(bytes((value,)))
            else:
                result.write(("%%%02X" % value).encode("ascii"))

            i += 3
        else:
            result.write(("%%%02X" % c).encode("ascii"))
            i += 1

    return result.getvalue().decode("ascii")

def get_canonical_uri_path(uri_path):
    """
    get_canonical_uri_path(uri_path) -> str

    Normalizes the specified URI path component, removing redundant slashes
    and relative path components.

    A ValidationError is raised if:
    * The URI path is not empty and not absolute (does not start with '/').
    * A parent relative path element ('..') attempts to go beyond the top.
    * An invalid percent-encoding is encountered.
    """
    # Special case: empty path is converted to '/'
    if uri_path == "" or uri_path == "/":
        return "/"

    # All other paths must be absolute.
    if not uri_path.startswith("/"):
        raise ValidationError("URI path is not absolute: %r" % uri_path)

    # Replace double slashes; this makes it easier to handle slashes at the
    # end.
    uri_path = _multislash.sub("/", uri_path)

    # Examine each path component for relative directories.
    components = uri_path.split("/")[1:]
    i = 0
    while i < len(components):
        components[i] = normalize_uri_path_component(components[i])

        if components[i] == ".":
            # Relative current directory.  Remove this; i now points at the
            # next element.
            del components[i]
        elif components[i] == "..":
            if i == 0:
                raise ValidationError("URI path attempts to go beyond root")

            # Drop this and the parent, then re-examine what follows.
            del components[i-1:i+1]
            i -= 1
        else:
            i += 1

    return "/" + "/".join(components)

def uri_encode(value):
    """
    uri_encode(value) -> str

    Percent-encode every byte of the UTF-8 form of value except the RFC 3986
    unreserved characters. Hex digits are upper-case; '%' itself is encoded.
    """
    return quote(value, safe="-_.~")

def get_canonical_query_string(query):
    """
    get_canonical_query_string(query) -> str

    Build the canonical query string from a mapping of parameter names to
    a string or list of strings. Names and values are percent-encoded, then
    sorted by name and by value (byte order) and joined with '&'.
    """
    pairs = []
    for key, values in query.items():
        if isinstance(values, str):
            values = [values]

        encoded_key = uri_encode(key)
        for value in values:
            pairs.append((encoded_key, uri_encode(value)))

    return "&".join(["%s=%s" % pair for pair in sorted(pairs)])

def normalize_header_value(value):
    """
    normalize_header_value(value) -> str

    Trim leading and trailing whitespace and collapse internal runs of
    whitespace to a single space. Double-quoted values keep their internal
    whitespace.
    """
    value = value.strip()
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return value

    return _whitespace.sub(" ", value)

def get_canonical_headers(headers):
    """
    get_canonical_headers(headers) -> OrderedDict

    Lowercase header names, normalize values and sort by name. Headers whose
    names differ only by case are merged into one comma-separated value, in
    the order they were given.
    """
    merged = {}
    for name, value in headers.items():
        name = name.strip().lower()
        merged.setdefault(name, []).append(normalize_header_value(value))

    return OrderedDict([
        (name, ",".join(merged[name])) for name in sorted(merged)])

def get_signed_headers(headers):
    """
    get_signed_headers(headers) -> str

    The sorted, lowercased, semicolon-separated list of header names.
    """
    return ";".join(sorted(set(
        [name.strip().lower() for name in headers])))

def hash_payload(payload):
    """
    hash_payload(payload) -> str

    The hex SHA-256 digest of the payload. An absent or empty payload hashes
    to EMPTY_PAYLOAD_HASH.
    """
    if not payload:
        return EMPTY_PAYLOAD_HASH

    return sha256(payload).hexdigest()

def canonicalize(request, payload_hash=None):
    """
    canonicalize(request, payload_hash=None) -> CanonicalRequest

    Build the canonical request for a RequestDescriptor. If payload_hash is
    None, it is computed from the request body.

    A ValidationError is raised if the host header is missing, if the method
    requires a body and none is present, or if the path cannot be
    canonicalized.
    """
    if request.method in BODY_REQUIRED_METHODS and not request.has_body:
        raise ValidationError(
            "Request body is missing for %s request" % request.method)

    if not request.has_header(_host):
        raise ValidationError("The host header is required for signing")

    if payload_hash is None:
        payload_hash = hash_payload(request.payload)

    headers = get_canonical_headers(request.headers)

    return CanonicalRequest(
        method=request.method,
        uri_path=get_canonical_uri_path(request.path),
        query_string=get_canonical_query_string(request.query),
        headers=headers,
        signed_headers=";".join(headers),
        payload_hash=payload_hash)
