"""Query parameter sets.

A parameter set maps each key to one or more string values. Everything that
crosses the signing boundary is normalised into a fresh ``ParamSet`` first, so
neither signing nor validation ever aliases or mutates the caller's data.
"""
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import parse_qsl, quote_plus

ParamSet = dict[str, list[str]]

APIKEY_PARAM = "apikey"
TIMESTAMP_PARAM = "ts"
SIGNATURE_PARAM = "data"
ENVELOPE_PARAMS = (APIKEY_PARAM, TIMESTAMP_PARAM, SIGNATURE_PARAM)


def parse_query(query: str) -> ParamSet:
    """Parse a raw query string, keeping blank values and value order."""
    params: ParamSet = {}
    for key, value in parse_qsl(query.lstrip("?"), keep_blank_values=True):
        params.setdefault(key, []).append(value)
    return params


def normalize(params: Any = None) -> ParamSet:
    """
    Build a new ParamSet from any supported input.

    Accepts None, a raw query string, a mapping of key to a value or a
    sequence of values, a multi-dict exposing ``multi_items()`` (Starlette's
    ``QueryParams``), or an iterable of ``(key, value)`` pairs.
    """
    if params is None:
        return {}
    if isinstance(params, str):
        return parse_query(params)

    result: ParamSet = {}
    if hasattr(params, "multi_items"):
        items: Iterable = params.multi_items()
    elif isinstance(params, Mapping):
        for key, value in params.items():
            if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
                result[str(key)] = [_as_str(value)]
            else:
                result[str(key)] = [_as_str(v) for v in value]
        return result
    else:
        items = params

    for key, value in items:
        result.setdefault(str(key), []).append(_as_str(value))
    return result


def encode(params: ParamSet) -> str:
    """
    Encode a ParamSet as a query string in canonical order.

    Keys are sorted ascending and so are the values of a repeated key. Keys
    without values produce no output.
    """
    pairs = []
    for key in sorted(params):
        for value in sorted(params[key]):
            pairs.append(f"{quote_plus(key)}={quote_plus(value)}")
    return "&".join(pairs)


def first(params: ParamSet, key: str) -> str:
    """Return the first value for ``key``, or an empty string."""
    values = params.get(key)
    return values[0] if values else ""


def without(params: ParamSet, *keys: str) -> ParamSet:
    """Return a copy of ``params`` with ``keys`` removed."""
    return {k: list(v) for k, v in params.items() if k not in keys}


def _as_str(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)
