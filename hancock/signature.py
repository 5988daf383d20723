import base64
import hashlib
import hmac
import logging
import re
import time
from typing import Any, NamedTuple
from urllib.parse import urlencode, urlsplit, urlunsplit

from hancock.params import (
    APIKEY_PARAM,
    ENVELOPE_PARAMS,
    SIGNATURE_PARAM,
    TIMESTAMP_PARAM,
    ParamSet,
    encode,
    first,
    normalize,
    without,
)
from hancock.schemas import FreshnessPolicy, PolicyMode

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 300

STATUS_UNAUTHORIZED = 401
STATUS_NOT_ACCEPTABLE = 406

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_DECIMAL_RE = re.compile(r"[+-]?[0-9]+")


class SignatureError(ValueError):
    """A failed verification, with the HTTP status it maps to."""

    def __init__(self, status_code: int, reason: str, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.message = message


class ValidationResult(NamedTuple):
    params: ParamSet | None
    error: SignatureError | None

    @property
    def ok(self) -> bool:
        return self.error is None


def _secret_bytes(secret_key: bytes | str) -> bytes:
    if isinstance(secret_key, str):
        return secret_key.encode("utf-8")
    return secret_key


def _utc_seconds() -> int:
    return int(time.time())


def canonicalize(method: str, params: ParamSet) -> str:
    """Build the exact string that gets authenticated: ``METHOD:sorted-query``."""
    return f"{method}:{encode(params)}"


def compute_signature(secret_key: bytes | str, canonical: str) -> str:
    """Compute the base64url (padded) HMAC-SHA256 of a canonical string."""
    digest = hmac.new(
        _secret_bytes(secret_key), canonical.encode("utf-8"), hashlib.sha256
    ).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii")


def sign_params(
    method: str,
    public_key: str,
    secret_key: bytes | str,
    params: Any = None,
    now: int | None = None,
) -> ParamSet:
    """
    Return a signed copy of ``params``.

    The copy carries ``apikey``, ``ts`` and ``data``. Values the caller put
    under those keys are replaced.
    """
    signed = normalize(params)
    replaced = [key for key in ENVELOPE_PARAMS if key in signed]
    if replaced:
        logger.debug("Replacing caller-supplied envelope parameters: %s", replaced)
        signed = without(signed, *replaced)

    timestamp = now if now is not None else _utc_seconds()
    signed[APIKEY_PARAM] = [public_key]
    signed[TIMESTAMP_PARAM] = [str(int(timestamp))]
    signed[SIGNATURE_PARAM] = [
        compute_signature(secret_key, canonicalize(method, signed))
    ]
    return signed


def sign_query(
    method: str,
    public_key: str,
    secret_key: bytes | str,
    params: Any = None,
    now: int | None = None,
) -> str:
    """Return a signed query string with ``data`` appended last."""
    signed = sign_params(method, public_key, secret_key, params, now=now)
    mac = signed.pop(SIGNATURE_PARAM)[0]
    return f"{encode(signed)}&{urlencode({SIGNATURE_PARAM: mac})}"


def sign_url(
    method: str,
    public_key: str,
    secret_key: bytes | str,
    url: str,
    params: Any = None,
    now: int | None = None,
) -> str:
    """
    Return ``url`` with a signed query string.

    Parameters already in the URL's query are signed along with ``params``.
    """
    parts = urlsplit(url)
    merged = normalize(parts.query)
    for key, values in normalize(params).items():
        merged.setdefault(key, []).extend(values)
    query = sign_query(method, public_key, secret_key, merged, now=now)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def is_fresh(ts: str, window: int, now: int | None = None) -> tuple[str, bool]:
    """
    Check a raw timestamp against a freshness window.

    Returns ``("invalid", False)`` when ``ts`` is not a 64-bit decimal integer,
    otherwise ``("expired", ok)`` where ``ok`` means the absolute distance from
    ``now`` is at most ``window`` seconds.
    """
    if not isinstance(ts, str) or not _DECIMAL_RE.fullmatch(ts):
        return "invalid", False
    timestamp = int(ts)
    if not _INT64_MIN <= timestamp <= _INT64_MAX:
        return "invalid", False

    current = now if now is not None else _utc_seconds()
    return "expired", abs(int(current) - timestamp) <= window


def _as_policy(policy: FreshnessPolicy | int) -> FreshnessPolicy:
    if isinstance(policy, FreshnessPolicy):
        return policy
    return FreshnessPolicy.from_seconds(policy)


def validate(
    method: str,
    params: Any,
    secret_key: bytes | str,
    policy: FreshnessPolicy | int,
    now: int | None = None,
) -> ValidationResult:
    """
    Verify a signed parameter set.

    Args:
        method: HTTP method of the request, exactly as the signer used it.
        params: Raw query string or any parameter input ``normalize`` accepts.
            It is copied, never modified.
        secret_key: Secret key matching the request's ``apikey``.
        policy: A FreshnessPolicy, or an integer window (-1 skips the
            timestamp check, -2 disables verification).
        now: Injectable current time (UTC seconds). Uses time.time() if None.

    Returns:
        ValidationResult with the parameters minus ``apikey``, ``ts`` and
        ``data`` on success, or a SignatureError carrying a 406 status for a
        bad timestamp and 401 for a signature mismatch.
    """
    policy = _as_policy(policy)
    query = normalize(params)

    if policy.mode is PolicyMode.DISABLED:
        logger.warning("Signature verification is disabled; accepting request unchecked.")
        return ValidationResult(without(query, *ENVELOPE_PARAMS), None)

    if policy.mode is PolicyMode.ENFORCE:
        ts = first(query, TIMESTAMP_PARAM)
        reason, ok = is_fresh(ts, policy.window, now=now)
        if not ok:
            return ValidationResult(
                None,
                SignatureError(
                    STATUS_NOT_ACCEPTABLE, reason, f"{reason} timestamp {ts}"
                ),
            )

    provided = first(query, SIGNATURE_PARAM)
    remaining = without(query, SIGNATURE_PARAM)
    expected = compute_signature(secret_key, canonicalize(method, remaining))
    if not hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8")):
        return ValidationResult(
            None,
            SignatureError(
                STATUS_UNAUTHORIZED,
                "mismatch",
                f"signature mismatch {expected} != {provided}",
            ),
        )

    return ValidationResult(without(remaining, APIKEY_PARAM, TIMESTAMP_PARAM), None)


def verify(
    method: str,
    params: Any,
    secret_key: bytes | str,
    policy: FreshnessPolicy | int,
    now: int | None = None,
) -> ParamSet:
    """Like validate(), but raises the SignatureError instead of returning it."""
    result = validate(method, params, secret_key, policy, now=now)
    if result.error is not None:
        raise result.error
    return result.params
