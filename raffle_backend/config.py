"""
Raffle backend configuration.
Secrets are read per request; everything else is read once at import.
"""

import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./raffle.db")
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# Randomness oracle (JSON-RPC over HTTP)
ORACLE_RPC_URL = os.getenv("ORACLE_RPC_URL")
ORACLE_API_KEY = os.getenv("ORACLE_API_KEY")
ORACLE_TIMEOUT_SECONDS = int(os.getenv("ORACLE_TIMEOUT_SECONDS", "30"))

# Treasury / payout service
PAYOUT_API_URL = os.getenv("PAYOUT_API_URL")
PAYOUT_API_KEY = os.getenv("PAYOUT_API_KEY")
PAYOUT_TIMEOUT_SECONDS = int(os.getenv("PAYOUT_TIMEOUT_SECONDS", "30"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]

# Defaults for newly created raffles (fixed per raffle once created)
DEFAULT_ENTRANCE_FEE = int(os.getenv("RAFFLE_ENTRANCE_FEE", "10000000000000000"))  # 0.01 ether in wei
DEFAULT_INTERVAL_SECONDS = int(os.getenv("RAFFLE_INTERVAL_SECONDS", "30"))
DEFAULT_KEY_HASH = os.getenv(
    "RAFFLE_KEY_HASH",
    "0x474e34a077df58807dbe9c96d3c009b23b3c6d0cce433e59bbf5b34f823bc56c",
)
DEFAULT_SUBSCRIPTION_ID = os.getenv("RAFFLE_SUBSCRIPTION_ID", "0")
DEFAULT_CALLBACK_GAS_LIMIT = int(os.getenv("RAFFLE_CALLBACK_GAS_LIMIT", "500000"))
DEFAULT_REQUEST_CONFIRMATIONS = int(os.getenv("RAFFLE_REQUEST_CONFIRMATIONS", "3"))

# One random word per draw
NUM_WORDS = 1

# Automation keeper
KEEPER_POLL_SECONDS = int(os.getenv("KEEPER_POLL_SECONDS", "15"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE")
