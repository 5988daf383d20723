import inspect
import logging
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from hancock.keys import KeyLookup, KeyNotFoundError
from hancock.params import APIKEY_PARAM, encode, first, normalize
from hancock.signature import STATUS_UNAUTHORIZED, SignatureError, validate

logger = logging.getLogger(__name__)

Handler = Callable[[Request], Awaitable[Response] | Response]
Clock = Callable[[], float]


def _with_query(request: Request, query: str) -> Request:
    """Rebuild ``request`` with a replacement query string."""
    scope = dict(request.scope)
    scope["query_string"] = query.encode("latin-1")
    return Request(scope, request.receive)


def _unknown_key_error(public_key: str, exc: Exception) -> SignatureError:
    """Map any key lookup failure onto a 401; only a missing key explains itself."""
    if isinstance(exc, KeyNotFoundError):
        message = str(exc)
    else:
        message = f"API key retrieval failed: {public_key!r}"
    return SignatureError(STATUS_UNAUTHORIZED, "unknown_key", message)


def wrap_signed(
    key_lookup: KeyLookup,
    handler: Handler,
    clock: Clock | None = None,
) -> Callable[[Request], Awaitable[Response]]:
    """
    Wrap ``handler`` so it only runs for correctly signed requests.

    The ``apikey`` parameter is resolved through ``key_lookup``; any lookup
    failure, including an unreadable key record or a store error, gets a 401
    without any signature check. The request is then validated against the
    key's secret and policy, and failures are answered with the error's
    status code. The inner handler receives a request whose query
    string no longer contains ``apikey``, ``ts`` or ``data``; the public key
    is available as ``request.state.apikey``.
    """

    async def signed_handler(request: Request) -> Response:
        raw_query = request.url.query
        query = normalize(raw_query)
        public_key = first(query, APIKEY_PARAM)

        try:
            record = key_lookup(public_key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("API key retrieval failed: `%s`; %s", public_key, exc)
            error = _unknown_key_error(public_key, exc)
            return JSONResponse(status_code=error.status_code, content={"error": error.message})

        now = int(clock()) if clock is not None else None
        clean, error = validate(request.method, query, record.secret_key, record.policy, now=now)
        if error is not None:
            logger.warning(
                "URL validation failed for query-string: `%s`; %s", raw_query, error
            )
            return JSONResponse(status_code=error.status_code, content={"error": error.message})

        inner_request = _with_query(request, encode(clean))
        inner_request.state.apikey = public_key
        if inspect.iscoroutinefunction(handler):
            return await handler(inner_request)
        return await run_in_threadpool(handler, inner_request)

    signed_handler.__name__ = getattr(handler, "__name__", signed_handler.__name__)
    signed_handler.__doc__ = getattr(handler, "__doc__", None)
    return signed_handler


def signed_wrapper(
    key_lookup: KeyLookup,
    clock: Clock | None = None,
) -> Callable[[Handler], Callable[[Request], Awaitable[Response]]]:
    """Decorator form of wrap_signed() for a fixed key lookup."""

    def decorator(handler: Handler) -> Callable[[Request], Awaitable[Response]]:
        return wrap_signed(key_lookup, handler, clock=clock)

    return decorator
