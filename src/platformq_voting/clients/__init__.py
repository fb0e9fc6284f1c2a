"""
HTTP clients for the voting core's external collaborators
"""

from .chain import ChainGatewayClient
from .pinning import PinningClient
from .snapshot import SnapshotClient

__all__ = [
    "ChainGatewayClient",
    "PinningClient",
    "SnapshotClient",
]
