import os
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file

# --------------------------------------------------
# Chain Connection Configuration
# --------------------------------------------------
# HTTP JSON-RPC endpoint of the Ethereum node the worker reads events from
WEB3_PROVIDER_URI = os.environ.get("WEB3_PROVIDER_URI") or "http://localhost:8545"
CHAIN_REQUEST_TIMEOUT = float(os.environ.get("CHAIN_REQUEST_TIMEOUT", "30"))
# Block timestamps kept in memory by the connector
BLOCK_CACHE_SIZE = int(os.environ.get("BLOCK_CACHE_SIZE", "1024"))

# First block scanned for contracts that do not declare their own startBlock
START_BLOCK = int(os.environ.get("START_BLOCK", "5000000"))

# --------------------------------------------------
# Database Configuration
# --------------------------------------------------
DATABASE_HOST = os.environ.get("DATABASE_HOST")
DATABASE_PORT = os.environ.get("DATABASE_PORT")
DATABASE_NAME = os.environ.get("DATABASE_NAME")
DATABASE_USER = os.environ.get("DATABASE_USER")
DATABASE_PASSWORD = os.environ.get("DATABASE_PASSWORD")

# Connections held by the worker's pool; store calls run on worker threads
DB_POOL_MIN = int(os.environ.get("DB_POOL_MIN", "1"))
DB_POOL_MAX = int(os.environ.get("DB_POOL_MAX", "5"))

# --------------------------------------------------
# Mirror Worker Configuration
# --------------------------------------------------
# YAML file listing the tracked contracts and their event mappings
MIRROR_CONFIG_PATH = os.environ.get("MIRROR_CONFIG_PATH", "mirror.yaml")

# Seconds between sync passes when the worker runs continuously (0 = run once)
MIRROR_POLL_INTERVAL = float(os.environ.get("MIRROR_POLL_INTERVAL", "0"))

# Event names that the router treats as proposal submissions and votes
PROPOSAL_EVENT_NAMES = [
    name.strip() for name in os.environ.get("PROPOSAL_EVENT_NAMES", "SubmitProposal").split(",") if name.strip()
]
VOTE_EVENT_NAMES = [
    name.strip() for name in os.environ.get("VOTE_EVENT_NAMES", "SubmitVote").split(",") if name.strip()
]
