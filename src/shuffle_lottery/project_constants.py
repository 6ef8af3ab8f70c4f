"""
Immutable parameters of the shuffle lottery.

These values define the public rules of every draw.
Changing any of them changes past and future winner sets and MUST be
publicly announced.
"""

# Length of one epoch in seconds
EPOCH_DURATION = 384

# Winners drawn per epoch (K)
WINNER_COUNT = 5

# The lottery is live only with strictly more members than this
MIN_MEMBERS_EXCLUSIVE = WINNER_COUNT

# Seeds are unsigned 256-bit integers; 0 means "no seed"
SEED_BITS = 256
MAX_SEED = 2**SEED_BITS - 1

# Domain separation tags. Keep stable: changing them invalidates old audits.
DOMAIN_PREFIX = b"shuffle-lottery."
DOMAIN_EPOCH_SEED = DOMAIN_PREFIX + b"epoch-seed.v1"
DOMAIN_SHUFFLE_DRAW = DOMAIN_PREFIX + b"shuffle-draw.v1"
DOMAIN_BLOCKHASH_SEED = DOMAIN_PREFIX + b"blockhash-seed.v1"
DOMAIN_REQUEST_ID = DOMAIN_PREFIX + b"request-id.v1"

HASH_FN = "sha256"

# base58 of the all-zero 32-byte key (system program); never a member
NULL_MEMBER = "11111111111111111111111111111111"
MEMBER_KEY_BYTES = 32

# Slots between a blockhash request and the slot that fulfills it (~13s)
ORACLE_SLOT_DELAY = 32
