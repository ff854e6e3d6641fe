"""File name sanitization for Content-Disposition headers.

Download URLs ask the backend to return a Content-Disposition header built
according to RFC 6266 (https://tools.ietf.org/html/rfc6266):

- ASCII-only names produce ``attachment;filename="foo.tsv"``, so browsers
  save the blob as ``foo.tsv``.
- Names with non-ASCII characters keep an ASCII fallback for older clients
  (``data.tsv``) and add ``filename*=UTF-8''f%c3%a4.tsv`` for modern ones,
  percent-encoded according to RFC 5987
  (https://tools.ietf.org/html/rfc5987#section-3.2).
"""

import os
import re
import string
from typing import Optional, Tuple

from .constants import DEFAULT_FILENAME

# Runs of characters that are replaced by a single '-'
BAD_FILENAME_CHARACTERS = re.compile(r'[\x00-\x1f\x7f/\\?%*:|"<>-]+')

# Bytes that RFC 5987 allows verbatim in an extended value; all others are %-escaped
ATTR_CHARS = frozenset(string.ascii_letters + string.digits + "!#$+-.^_`|~")


def sanitize_filename(filename: str) -> Tuple[str, Optional[str]]:
    """Sanitize a file name for the Content-Disposition header.

    - Empty names are replaced with ``"data"``.
    - Extension-only names (like ``".tsv"``) are prefixed with ``"data"``.
    - Characters matched by BAD_FILENAME_CHARACTERS are replaced with ``-``,
      and consecutive ``-`` are combined into one.
    - Leading and trailing ``-`` or ``.`` are dropped.

    Args:
        filename: Arbitrary user-supplied file name

    Returns:
        Tuple of (ascii, utf8). If the name is ASCII-only, utf8 is None.
        Otherwise ascii is a dummy ``data.<ext>`` name keeping only the
        extension, and utf8 is the RFC 5987 encoding of the sanitized name
        (without the leading ``UTF-8''``).
    """
    if not filename or not filename.strip() or filename[0] == ".":
        filename = DEFAULT_FILENAME + (filename or "")

    filename = BAD_FILENAME_CHARACTERS.sub("-", filename).strip("-.")

    if not filename:
        return DEFAULT_FILENAME, None

    if all(ord(c) < 127 for c in filename):
        return filename, None

    # Found non-ASCII characters
    utf8 = "".join(
        chr(b) if chr(b) in ATTR_CHARS else f"%{b:02x}"
        for b in filename.encode("utf-8")
    )

    ext = os.path.splitext(filename)[1]
    if ext == ".gz":
        ext = ".csv.gz"

    return DEFAULT_FILENAME + ext, utf8


def content_disposition(filename: str) -> str:
    """Build an ``attachment`` Content-Disposition value for a file name."""
    ascii_name, utf8_name = sanitize_filename(filename)
    if utf8_name is None:
        return f'attachment;filename="{ascii_name}"'
    return f"attachment;filename=\"{ascii_name}\";filename*=UTF-8''{utf8_name}"
