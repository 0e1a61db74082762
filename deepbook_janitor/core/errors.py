"""
Error taxonomy for the janitor.

Read-side errors (FetchError, TopologyError, DecodeError) are caught at the
smallest enclosing scope and never abort a run. SubmissionError is reported per
batch. CredentialFormatError and ConfigError abort the process at startup.
"""

from __future__ import annotations

from typing import Optional


class JanitorError(Exception):
    """Base class for all janitor errors."""


class ConfigError(JanitorError):
    """Invalid settings or pool registry."""


class CredentialFormatError(JanitorError):
    """Private key material is not in a recognised encoding."""


class FetchError(JanitorError):
    """A gateway read call failed (transport, RPC error, bad response)."""


class NotFoundError(FetchError):
    """The requested object does not exist."""

    def __init__(self, object_id: str, detail: str = "") -> None:
        self.object_id = object_id
        super().__init__(f"object {object_id} not found" + (f": {detail}" if detail else ""))


class WrongKindError(FetchError):
    """The object exists but its content is not a Move object."""

    def __init__(self, object_id: str, kind: Optional[str]) -> None:
        self.object_id = object_id
        self.kind = kind
        super().__init__(f"object {object_id} has unexpected kind {kind!r}")


class TopologyError(JanitorError):
    """Pool structure could not be walked down to the order book."""

    def __init__(self, pool_id: str, reason: str) -> None:
        self.pool_id = pool_id
        self.reason = reason
        super().__init__(f"pool {pool_id}: {reason}")


class DecodeError(JanitorError):
    """One remote item does not match the order shape."""


class SubmissionError(JanitorError):
    """A cleanup batch failed to submit or executed with failure status."""

    def __init__(self, batch_index: int, reason: str, digest: Optional[str] = None) -> None:
        self.batch_index = batch_index
        self.reason = reason
        self.digest = digest
        msg = f"batch {batch_index} failed: {reason}"
        if digest:
            msg += f" (digest {digest})"
        super().__init__(msg)
