"""Program IDs, seeds, and protocol constants for the yield-sensitive DLMM."""

from solders.pubkey import Pubkey

# ============================================================================
# PROGRAM IDS
# ============================================================================

PROGRAM_ID = Pubkey.from_string("ebvdBEBKz6UK1Xs9mnGs7TsR2vgKyPP2idaFEqGRTRQ")

TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")

ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string(
    "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
)

SYSTEM_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")

# ============================================================================
# PDA SEEDS
# ============================================================================

SEED_NAMESPACE = b"v3"
SEED_POOL = b"pool"
SEED_VAULT = b"vault"
SEED_TREASURY = b"treasury"
SEED_ORDERBOOK = b"orderbook"
SEED_POSITION = b"pos"
SEED_METRICS = b"metrics"

# Suffix mixed into every program address hash
PDA_MARKER = b"ProgramDerivedAddress"

MAX_SEED_LEN = 32
MAX_SEEDS = 16

# ============================================================================
# ANCHOR DISCRIMINATORS
# ============================================================================

DISCRIMINATOR_SIZE = 8
INSTRUCTION_NAMESPACE = "global"
ACCOUNT_NAMESPACE = "account"

# ============================================================================
# PROTOCOL
# ============================================================================

POOL_VERSION = 3
EVENT_VERSION = 3

MAX_ADMINS = 8
MAX_BANDS = 64
EVENT_Q_CAP = 256
DEFAULT_MAX_QUEUE_PER_LEVEL = 64

POOL_SPACE = 16 * 1024
ORDERBOOK_SPACE = 16 * 1024

# Sentinel used by the program for an empty ask side
BEST_ASK_NONE = 2**64 - 1

LAMPORTS_PER_SOL = 1_000_000_000
