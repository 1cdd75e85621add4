"""Central configuration for runtime-tunable parameters.

All constants can be overridden via environment variables so that the
collector runs with the reference freshness policy by default, while tests
and deployments can change the burst window, endpoint or export target
without touching code.
"""

from __future__ import annotations

import os
from pathlib import Path


# ===========================================================================
# Freshness Policy
# ===========================================================================
# DAOGUARD_BURST_THRESHOLD: Minimum spacing (in seconds) between two arrivals that
#   claim the same sequence number. A same-sequence DAO with a new origin
#   timestamp arriving sooner than this is rejected as a burst.
#   Defaults to 0.2.
#   Example: export DAOGUARD_BURST_THRESHOLD=0.5
BURST_THRESHOLD: float = float(os.getenv("DAOGUARD_BURST_THRESHOLD", "0.2"))


# ===========================================================================
# Network Defaults
# ===========================================================================
# DAOGUARD_HOST: Address the collector binds its UDP socket to.
#   Defaults to "127.0.0.1".
#   Example: export DAOGUARD_HOST=::
DEFAULT_HOST: str = os.getenv("DAOGUARD_HOST", "127.0.0.1")

# DAOGUARD_PORT: UDP port the collector listens on for DAOs.
#   Defaults to 12345.
#   Example: export DAOGUARD_PORT=5683
DEFAULT_PORT: int = int(os.getenv("DAOGUARD_PORT", "12345"))


# ===========================================================================
# Run Duration
# ===========================================================================
# DAOGUARD_DURATION: Seconds the collector runs before shutting down and
#   exporting its metrics. Unset (or empty) means run until SIGINT/SIGTERM.
#   Example: export DAOGUARD_DURATION=25
DURATION: float | None = float(os.environ["DAOGUARD_DURATION"]) if os.getenv("DAOGUARD_DURATION") else None


# ===========================================================================
# Metrics Export
# ===========================================================================
# DAOGUARD_METRICS_CSV: CSV file that receives one appended row per export.
#   Defaults to "dao_metrics.csv" in the working directory.
METRICS_CSV: Path = Path(os.getenv("DAOGUARD_METRICS_CSV", "dao_metrics.csv"))


# ===========================================================================
# Payload Authentication
# ===========================================================================
# DAOGUARD_KEY: Shared HMAC key as a hex string. When set, every datagram must
#   carry a valid HMAC-SHA256 tag or it is dropped before decoding.
#   Defaults to unset (signing disabled).
#   Example: export DAOGUARD_KEY=00112233445566778899AABBCCDDEEFF
KEY_HEX: str = os.getenv("DAOGUARD_KEY", "")
KEY: bytes | None = bytes.fromhex(KEY_HEX) if KEY_HEX else None


# ===========================================================================
# Debugging and Logging
# ===========================================================================
# DAOGUARD_DEBUG: If "1", enables debug logging (per-rule reject reasons).
#   Defaults to "0" (disabled).
DEBUG: bool = os.getenv("DAOGUARD_DEBUG", "0") == "1"
