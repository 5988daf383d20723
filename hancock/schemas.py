from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, StrictStr, model_validator

# Integer windows used by stored key records for the two non-enforcing modes.
SKIP_FRESHNESS_SECONDS = -1
DISABLED_SECONDS = -2


class PolicyMode(str, Enum):
    ENFORCE = "enforce"
    SKIP_FRESHNESS = "skip_freshness"
    DISABLED = "disabled"


class FreshnessPolicy(BaseModel):
    """
    How a verifier treats the timestamp and signature of a request.

    ``enforce`` checks the timestamp against ``window`` seconds and then the
    signature. ``skip_freshness`` checks only the signature. ``disabled``
    checks nothing and must be chosen explicitly.
    """

    model_config = ConfigDict(frozen=True)

    mode: PolicyMode
    window: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def window_matches_mode(self) -> "FreshnessPolicy":
        if self.mode is PolicyMode.ENFORCE and self.window is None:
            raise ValueError("an enforcing policy requires a window")
        if self.mode is not PolicyMode.ENFORCE and self.window is not None:
            raise ValueError(f"a {self.mode.value} policy takes no window")
        return self

    @classmethod
    def enforce(cls, window: int) -> "FreshnessPolicy":
        return cls(mode=PolicyMode.ENFORCE, window=window)

    @classmethod
    def skip_freshness(cls) -> "FreshnessPolicy":
        return cls(mode=PolicyMode.SKIP_FRESHNESS)

    @classmethod
    def disabled_insecure(cls) -> "FreshnessPolicy":
        """Accept every request without checking timestamp or signature."""
        return cls(mode=PolicyMode.DISABLED)

    @classmethod
    def from_seconds(cls, seconds: int) -> "FreshnessPolicy":
        """
        Map an integer window onto a policy.

        Non-negative values enforce that window, -1 skips the freshness check
        and -2 disables verification. Other negative values raise ValueError.
        """
        if seconds == SKIP_FRESHNESS_SECONDS:
            return cls.skip_freshness()
        if seconds == DISABLED_SECONDS:
            return cls.disabled_insecure()
        if seconds < 0:
            raise ValueError(f"Invalid freshness window: {seconds!r}")
        return cls.enforce(seconds)

    def to_seconds(self) -> int:
        if self.mode is PolicyMode.SKIP_FRESHNESS:
            return SKIP_FRESHNESS_SECONDS
        if self.mode is PolicyMode.DISABLED:
            return DISABLED_SECONDS
        return self.window


class SignedRequestInfo(BaseModel):
    apikey: StrictStr
    params: dict[StrictStr, list[StrictStr]]
