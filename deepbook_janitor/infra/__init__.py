"""
Infrastructure package.

RPC gateway, key handling and logging configuration.
"""

from deepbook_janitor.infra.logging_cfg import build_logger, log_event
from deepbook_janitor.infra.signer import Ed25519Signer, load_signer
from deepbook_janitor.infra.sui_rpc import SuiRpcGateway

__all__ = [
    "build_logger",
    "log_event",
    "Ed25519Signer",
    "load_signer",
    "SuiRpcGateway",
]
