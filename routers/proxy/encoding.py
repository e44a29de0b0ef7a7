"""
Request encoding for wire calls.

Stripe takes ``application/x-www-form-urlencoded`` bodies with bracket
notation for nesting::

    {"transfer_data": {"destination": "acct_123"}}  ->  transfer_data[destination]=acct_123
    {"items": [{"price": "p"}]}                      ->  items[0][price]=p
    {"types": ["card", "link"]}                      ->  types[]=card&types[]=link

QBO and the backend take JSON bodies. GET requests carry ``data`` in the
query string using the same flattening.
"""

from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from urllib.parse import parse_qsl, quote, urlencode
import json
import re

from models.proxy import ProxyRequest, WireCall
from .base import FORM, JSON, OAUTH_FORM, ResolvedRoute
from .errors import ProxyValidationError

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"

# grant_type and the exact fields each OAuth operation sends
OAUTH_GRANTS = {
    "token": ("authorization_code", ("code", "redirect_uri")),
    "refresh": ("refresh_token", ("refresh_token",)),
    "oauth/token": ("authorization_code", ("code",)),
}

_KEY_RE = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])*)$")
_SUBKEY_RE = re.compile(r"\[([^\[\]]*)\]")

Pairs = List[Tuple[str, str]]


def format_scalar(value: Any) -> str:
    """Render a scalar the way form and query values expect it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        # Integral floats (5000.0) are written as integers
        return str(int(value)) if value.is_integer() else repr(value)
    return str(value)


def flatten_form(value: Any, prefix: str = "") -> Pairs:
    """
    Flatten a JSON value into ordered ``(key, value)`` pairs using bracket notation.

    Depth-first, preserving key insertion order. ``None`` values are skipped.

    Args:
        value: Object to flatten (must be a mapping at the top level)
        prefix: Key prefix for nested values

    Returns:
        List of (key, value) string pairs
    """
    pairs: Pairs = []
    if isinstance(value, Mapping):
        for key, item in value.items():
            if item is None:
                continue
            name = f"{prefix}[{key}]" if prefix else str(key)
            pairs.extend(flatten_form(item, name))
    elif isinstance(value, (list, tuple)):
        if not prefix:
            raise TypeError("form data must be an object at the top level")
        indexed = any(isinstance(item, (Mapping, list, tuple)) for item in value)
        for index, item in enumerate(value):
            if item is None:
                continue
            if indexed:
                pairs.extend(flatten_form(item, f"{prefix}[{index}]"))
            else:
                pairs.append((f"{prefix}[]", format_scalar(item)))
    else:
        if not prefix:
            raise TypeError("form data must be an object at the top level")
        pairs.append((prefix, format_scalar(value)))
    return pairs


def to_query_string(pairs: Iterable[Tuple[str, str]]) -> str:
    """Percent-encode pairs; spaces become %20 and brackets stay literal."""
    return urlencode(list(pairs), quote_via=quote, safe="[]*")


def encode_form(data: Optional[Mapping]) -> str:
    if not data:
        return ""
    return to_query_string(flatten_form(data))


def _descend(node: Dict[str, Any], keys: List[str]) -> Dict[str, Any]:
    for key in keys:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    return node


def _assign(node: Dict[str, Any], path: List[str], value: str) -> None:
    if len(path) > 1 and path[-1] == "":
        # "a[]" appends to a list of scalars
        parent = _descend(node, path[:-2])
        items = parent.get(path[-2])
        if not isinstance(items, list):
            items = []
            parent[path[-2]] = items
        items.append(value)
        return
    _descend(node, path[:-1])[path[-1]] = value


def _listify(node: Any) -> Any:
    if isinstance(node, list):
        return [_listify(item) for item in node]
    if not isinstance(node, dict):
        return node
    converted = {key: _listify(item) for key, item in node.items()}
    # Only lists of objects or lists are written with "[n]" keys, so an
    # object of scalars keyed "1", "2" (Stripe metadata) stays an object.
    # An object of objects keyed only by digits still reads back as a list.
    if converted and all(
        key.isdigit() and isinstance(item, (dict, list)) for key, item in converted.items()
    ):
        return [converted[key] for key in sorted(converted, key=int)]
    return converted


def parse_form(body: Union[str, Iterable[Tuple[str, str]]]) -> Dict[str, Any]:
    """
    Parse bracket-notation form data back into nested objects and lists.

    All values come back as strings. ``a[]`` keys build lists of scalars;
    objects whose keys are all digits and whose members are all objects or
    lists are read as lists of objects.
    """
    pairs = parse_qsl(body, keep_blank_values=True) if isinstance(body, str) else body
    root: Dict[str, Any] = {}
    for key, value in pairs:
        match = _KEY_RE.match(key)
        if not match:
            root[key] = value
            continue
        head, tail = match.groups()
        _assign(root, [head] + _SUBKEY_RE.findall(tail), value)
    return {key: _listify(item) for key, item in root.items()}


def drop_none(value: Any) -> Any:
    """Remove ``None`` members from objects, recursively."""
    if isinstance(value, Mapping):
        return {key: drop_none(item) for key, item in value.items() if item is not None}
    if isinstance(value, list):
        return [drop_none(item) for item in value]
    return value


def encode_oauth_form(operation: str, data: Optional[Mapping]) -> str:
    """
    Build an OAuth2 token request body with exactly the standard field names.

    Raises:
        ProxyValidationError: A field the grant needs is missing
    """
    grant_type, fields = OAUTH_GRANTS[operation]
    data = data or {}
    missing = [name for name in fields if not data.get(name)]
    if missing:
        raise ProxyValidationError.missing(missing)
    pairs = [("grant_type", grant_type)] + [(name, str(data[name])) for name in fields]
    return urlencode(pairs)


def build_query(route: ResolvedRoute, request: ProxyRequest) -> Pairs:
    data = request.data or {}
    if route.service == "qbo" and route.resolved_path.endswith("/query"):
        statement = data.get("query")
        if not statement:
            raise ProxyValidationError.missing(["data.query"])
        return [("query", str(statement))]
    return flatten_form(data) if data else []


def encode_request(route: ResolvedRoute, request: ProxyRequest) -> WireCall:
    """
    Build the wire call for a resolved route.

    Args:
        route: Output of the resource router
        request: The proxy request carrying ``data``

    Returns:
        WireCall with the final URL (query string included), headers and body
    """
    headers = route.headers()
    url = route.url
    content = None

    if route.encoding == OAUTH_FORM:
        content = encode_oauth_form(request.endpoint.strip().strip('/'), request.data)
        headers["Content-Type"] = FORM_CONTENT_TYPE
    elif route.method == "get":
        query = build_query(route, request)
        if query:
            url = f"{url}?{to_query_string(query)}"
    elif route.encoding == FORM:
        headers["Content-Type"] = FORM_CONTENT_TYPE
        content = encode_form(request.data)
    elif route.encoding == JSON:
        headers["Content-Type"] = JSON_CONTENT_TYPE
        if request.data is not None:
            content = json.dumps(drop_none(request.data))

    return WireCall(method=route.method, url=url, headers=headers, content=content)
