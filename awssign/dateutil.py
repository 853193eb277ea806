"""
Timestamp utilities for SigV4 signing.

SigV4 uses two renderings of the signing time, both in UTC:
    20150830T123600Z    (the "AMZ date", X-Amz-Date)
    20150830            (the date stamp used in the credential scope)
"""
from datetime import datetime
from pytz import FixedOffset, UTC
from re import compile as re_compile

# SigV4 timestamp formats
AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"
DATE_STAMP_FORMAT = "%Y%m%d"

# ISO 8601 timestamp format regex (includes RFC 3339)
_iso_8601_regex = re_compile(
    r"^(?P<year>[0-9]{4})-?"
    r"(?P<month>0[1-9]|1[0-2])-?"
    r"(?P<day>0[1-9]|[12][0-9]|3[01])"
    r"[Tt ]"
    r"(?P<hour>[01][0-9]|2[0-3]):?"
    r"(?P<minute>[0-5][0-9]):?"
    r"(?P<second>[0-5][0-9]|6[01])"
    r"(?P<frac_sec>[\.,][0-9]+)?"
    r"(?P<timezone>[-+][01][0-9]:?[0-5][0-9]|[Zz])$")

def parse_iso8601(s):
    """
    Parse a timestamp formatted in ISO 8601 timestamp format and return an
    aware datetime. If the string is not a valid ISO 8601 timestamp, None
    is returned.

    ISO 8601 timestamps include the forms:
        2015-08-30T12:36:00Z
        20150830T123600Z                (Condensed; X-Amz-Date form)
        2015-08-30T05:36:00-07:00
        20150830 053600-0700            (Space instead of T)

    Fractional seconds are ignored; SigV4 has second precision.
    """
    m = _iso_8601_regex.match(s)
    if not m:
        return None

    zone = m.group("timezone")
    if zone in ("Z", "z"):
        offset = UTC
    else:
        zone = zone.replace(":", "")
        sign = zone[0]
        offset_minutes = int(zone[1:3]) * 60 + int(zone[3:5])

        if sign == "-":
            offset_minutes = -offset_minutes

        offset = FixedOffset(offset_minutes)

    return datetime(
        year=int(m.group("year")),
        month=int(m.group("month")),
        day=int(m.group("day")),
        hour=int(m.group("hour")),
        minute=int(m.group("minute")),
        second=int(m.group("second")),
        tzinfo=offset)

def to_utc(timestamp):
    """
    to_utc(timestamp) -> datetime

    Convert a datetime or ISO 8601 string into an aware UTC datetime truncated
    to whole seconds. Naive datetimes are taken to already be in UTC.

    A ValueError is raised if a string is not valid ISO 8601; a TypeError if
    the value is neither a string nor a datetime.
    """
    if isinstance(timestamp, str):
        parsed = parse_iso8601(timestamp)
        if parsed is None:
            raise ValueError(
                "Timestamp is not a valid ISO 8601 string: %r" % timestamp)
        timestamp = parsed
    elif not isinstance(timestamp, datetime):
        raise TypeError("Expected timestamp to be a datetime or string.")

    if timestamp.tzinfo is None:
        timestamp = UTC.localize(timestamp)

    return timestamp.astimezone(UTC).replace(microsecond=0)

def utcnow():
    """
    The current time as an aware UTC datetime with second precision.
    """
    return datetime.now(UTC).replace(microsecond=0)

def format_amz_date(timestamp):
    """
    Render a timestamp as YYYYMMDDTHHMMSSZ in UTC.
    """
    return to_utc(timestamp).strftime(AMZ_DATE_FORMAT)

def format_date_stamp(timestamp):
    """
    Render a timestamp as YYYYMMDD in UTC.
    """
    return to_utc(timestamp).strftime(DATE_STAMP_FORMAT)
