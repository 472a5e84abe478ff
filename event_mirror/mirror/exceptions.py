"""
Exceptions raised while mirroring a single chain event.

Every error is contained at the event level by the router: the event is
skipped and reported, the batch continues. ``retryable`` tells the caller
whether re-delivering the same event later can succeed.
"""
from typing import Optional


class MirrorError(Exception):
    """Base exception for all per-event mirroring failures."""

    def __init__(
        self,
        message: str,
        retryable: bool = False,
        transaction_hash: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.retryable = retryable
        self.transaction_hash = transaction_hash

    def to_dict(self) -> dict:
        """Convert to dictionary for reports and structured logs."""
        result = {
            "error_type": type(self).__name__,
            "error_message": self.message,
            "retryable": self.retryable,
        }
        if self.transaction_hash is not None:
            result["transaction_hash"] = self.transaction_hash
        return result


# ============================================
# Permanent: re-delivery of the same payload cannot succeed
# ============================================

class UnresolvableAuthorError(MirrorError):
    """No MEMBER address in the payload, or its identity could not be resolved."""

    def __init__(self, message: str = "Event has no resolvable author", **kwargs):
        super().__init__(message, retryable=False, **kwargs)


class MalformedEventError(MirrorError):
    """The decoded payload lacks a field the mirror needs, or holds a bad value."""

    def __init__(self, message: str = "Malformed event payload", **kwargs):
        super().__init__(message, retryable=False, **kwargs)


class UnmappedVoteChoiceError(MirrorError):
    """The vote code does not select any poll option."""

    def __init__(self, message: str = "Vote choice does not map to a poll option", **kwargs):
        super().__init__(message, retryable=False, **kwargs)


# ============================================
# Recoverable: retry once the missing piece exists
# ============================================

class MissingCorrelationError(MirrorError):
    """A vote references a proposal or poll option that is not mirrored yet."""

    def __init__(self, message: str = "Referenced proposal is not mirrored yet", **kwargs):
        super().__init__(message, retryable=True, **kwargs)


class UpstreamFetchError(MirrorError):
    """Block metadata needed for the record could not be fetched."""

    def __init__(self, message: str = "Upstream fetch failed", **kwargs):
        super().__init__(message, retryable=True, **kwargs)


class PersistenceWriteError(MirrorError):
    """An upsert did not yield a record id; record state is unknown."""

    def __init__(self, message: str = "Record write failed", **kwargs):
        super().__init__(message, retryable=True, **kwargs)
