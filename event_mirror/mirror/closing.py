"""
Closing rule: when voting on a mirrored proposal ends.

The default rule understands Moloch-style period parameters read by the
state snapshotter: ``periodDuration`` (seconds per period) together with
``votingPeriodLength`` and ``gracePeriodLength`` (in periods). Without them
the closing only records the submission height.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping

ClosingRule = Callable[[Mapping[str, Any], int, int], Dict[str, Any]]


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def default_closing_rule(state: Mapping[str, Any], block_number: int, block_timestamp: int) -> Dict[str, Any]:
    """Closing object for a proposal submitted at ``block_number``.

    Args:
        state: Snapshot of on-chain parameters
        block_number: Height of the submitting block
        block_timestamp: Unix time of the submitting block

    Returns:
        ``{"height", "periods", "calendar"}``; ``calendar`` is an ISO-8601 UTC
        string or None when the period parameters are unknown
    """
    period_duration = _as_int(state.get("periodDuration"))
    periods = _as_int(state.get("votingPeriodLength")) + _as_int(state.get("gracePeriodLength"))

    calendar = None
    if period_duration > 0 and periods > 0:
        opened = datetime.fromtimestamp(block_timestamp, tz=timezone.utc)
        calendar = (opened + timedelta(seconds=period_duration * periods)).isoformat()

    return {
        "height": block_number,
        "periods": periods,
        "calendar": calendar,
    }
