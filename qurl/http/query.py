"""Query-parameter and header helpers shared by the executor and builder."""

from typing import List, Optional, Sequence, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from qurl.errors import ErrorKind, wrap


def apply_query_parameters(target_url: str, query_params: Sequence[str]) -> str:
    """
    Add ``key=value`` entries to the URL's query string.

    Repeated keys accumulate, entries without ``=`` are added with an empty
    value and the existing query is kept. The encoded query is ordered by
    key. An empty list returns ``target_url`` untouched.

    Raises:
        QurlError: VALIDATION if the URL cannot be parsed.
    """
    if not query_params:
        return target_url

    try:
        parts = urlsplit(target_url)
    except ValueError as exc:
        raise wrap(exc, ErrorKind.VALIDATION, "failed to parse target URL for query parameters").with_context(
            "url", target_url
        ) from exc

    pairs: List[Tuple[str, str]] = parse_qsl(parts.query, keep_blank_values=True)
    for param in query_params:
        if not param:
            continue
        key, sep, value = param.partition("=")
        pairs.append((key, value if sep else ""))

    pairs.sort(key=lambda pair: pair[0])
    return urlunsplit(parts._replace(query=urlencode(pairs)))


def parse_header(header: str) -> Optional[Tuple[str, str]]:
    """
    Split ``"Name: Value"`` into a trimmed pair.

    A header without a colon is a name with an empty value; an empty name
    yields None.
    """
    name, _, value = header.partition(":")
    name = name.strip()
    if not name:
        return None
    return name, value.strip()
