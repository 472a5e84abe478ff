"""
Event mirror for DAO governance contracts.

Reads proposal and vote events emitted by tracked contracts, provisions a
local identity for every address they mention, and maintains idempotent
proposal, poll-option and vote records in the local database.
"""

__all__ = [
]
