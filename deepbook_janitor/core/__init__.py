"""
Core package.

Value types, the gateway protocol, the error taxonomy and the structured
logging context shared by every other package.
"""

from deepbook_janitor.core.context import ScanContext
from deepbook_janitor.core.errors import (
    ConfigError,
    CredentialFormatError,
    DecodeError,
    FetchError,
    JanitorError,
    NotFoundError,
    SubmissionError,
    TopologyError,
    WrongKindError,
)
from deepbook_janitor.core.types import (
    U64_MAX,
    BatchDescriptor,
    CleanupBatch,
    ObjectData,
    ObjectGateway,
    Order,
    Page,
    PoolConfig,
    PoolTopology,
    Side,
    Signer,
    SubmitOutcome,
)
from deepbook_janitor.core.utils import chunked, mist_to_sui, now_ms

__all__ = [
    "ScanContext",
    "ConfigError",
    "CredentialFormatError",
    "DecodeError",
    "FetchError",
    "JanitorError",
    "NotFoundError",
    "SubmissionError",
    "TopologyError",
    "WrongKindError",
    "U64_MAX",
    "BatchDescriptor",
    "CleanupBatch",
    "ObjectData",
    "ObjectGateway",
    "Order",
    "Page",
    "PoolConfig",
    "PoolTopology",
    "Side",
    "Signer",
    "SubmitOutcome",
    "chunked",
    "mist_to_sui",
    "now_ms",
]
