from enum import Enum


class TransferSourceKind(str, Enum):
    """Backends able to produce raw transfer events."""

    LOG_SCAN = "log_scan"
    ASSET_TRANSFERS = "asset_transfers"
