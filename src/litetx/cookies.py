"""Serializes and parses the txnum cookie, which holds the last transaction
number the client is known to have seen committed on the primary.
"""
from typing import Literal, Optional, TypedDict, Union
from datetime import datetime, timezone
from email.utils import format_datetime
from http.cookies import SimpleCookie
from urllib.parse import unquote
from litetx.types import TxNumber
import re


TXNUM_COOKIE_NAME = "txnum"
"""The name of the cookie that should be set in the client to identify the
transaction number
"""

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
"""Used as the expiry of the cookie to delete it"""

TX_NUMBER_PATTERN = re.compile(r"[0-9]{1,20}")
"""A cookie value is a valid transaction number only if it fully matches
this pattern. 20 digits is enough for any unsigned 64-bit number.
"""

MAX_TX_NUMBER = 2**64 - 1
"""LiteFS transaction ids are unsigned 64-bit integers"""


class CookieOptions(TypedDict, total=False):
    """Attributes of the Set-Cookie header. Anything not specified uses the
    defaults of path "/", HttpOnly, SameSite=Lax and Secure.
    """

    path: Optional[str]
    """The Path attribute; None to omit it"""

    domain: Optional[str]
    """The Domain attribute; None to omit it"""

    expires: Optional[datetime]
    """The Expires attribute. Naive datetimes are assumed to be UTC."""

    max_age: Optional[int]
    """The Max-Age attribute in seconds"""

    http_only: bool
    """Whether to include the HttpOnly flag"""

    same_site: Union[Literal["lax", "strict", "none"], Literal[False]]
    """The SameSite attribute, or False to omit it"""

    secure: bool
    """Whether to include the Secure flag"""


DEFAULT_COOKIE_OPTIONS: CookieOptions = {
    "path": "/",
    "http_only": True,
    "same_site": "lax",
    "secure": True,
}


def get_tx_set_cookie_header(
    value: TxNumber, options: Optional[CookieOptions] = None
) -> str:
    """Creates a serialized cookie header for the txnum cookie which you
    should use with a 'Set-Cookie' header to set the cookie in the client.

    Args:
        value (int): the transaction number to store
        options (CookieOptions, None): overrides for the default attributes
            of path "/", HttpOnly, SameSite=Lax and Secure

    Returns:
        str: the value for a Set-Cookie header
    """
    merged: CookieOptions = {**DEFAULT_COOKIE_OPTIONS, **(options or {})}

    jar: SimpleCookie = SimpleCookie()
    jar[TXNUM_COOKIE_NAME] = str(value)
    morsel = jar[TXNUM_COOKIE_NAME]

    if merged.get("path") is not None:
        morsel["path"] = merged["path"]
    if merged.get("domain") is not None:
        morsel["domain"] = merged["domain"]

    expires = merged.get("expires")
    if expires is not None:
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        morsel["expires"] = format_datetime(
            expires.astimezone(timezone.utc), usegmt=True
        )

    if merged.get("max_age") is not None:
        morsel["max-age"] = str(merged["max_age"])

    morsel["httponly"] = bool(merged.get("http_only"))
    morsel["secure"] = bool(merged.get("secure"))

    same_site = merged.get("same_site")
    if same_site:
        morsel["samesite"] = same_site.capitalize()

    return morsel.OutputString()


def get_tx_delete_cookie_header(options: Optional[CookieOptions] = None) -> str:
    """Creates a Set-Cookie header value which expires the txnum cookie.
    This is the regular cookie with a value of 0 and an expiry at the epoch.
    """
    return get_tx_set_cookie_header(0, {**(options or {}), "expires": EPOCH})


def read_tx_cookie(cookie_header: Optional[str]) -> Optional[str]:
    """Extracts the raw txnum cookie value from the request's Cookie header.
    This never raises. Other cookies in the header do not have to be well
    formed: pairs without an "=" are skipped, and values may contain spaces
    or other characters a strict parser would reject, so an unrelated cookie
    set by some other part of the site cannot hide the txnum cookie.

    Args:
        cookie_header (str, None): the Cookie request header, if any

    Returns:
        str, None: the raw value of the first txnum cookie, or None if it is
            absent
    """
    if not cookie_header:
        return None

    for pair in cookie_header.split(";"):
        name, sep, value = pair.partition("=")
        if not sep or name.strip() != TXNUM_COOKIE_NAME:
            continue

        value = value.strip()
        if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
            value = value[1:-1]
        return unquote(value)

    return None


def parse_tx_number(raw_value: str) -> Optional[TxNumber]:
    """Interprets a raw txnum cookie value.

    Returns:
        int, None: the transaction number, or None if the value is not a
            non-negative integer that fits in 64 bits
    """
    if TX_NUMBER_PATTERN.fullmatch(raw_value) is None:
        return None
    tx_number = int(raw_value)
    if tx_number > MAX_TX_NUMBER:
        return None
    return tx_number
