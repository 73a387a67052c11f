import os

APPLICATION_NAME = "RankKeeper"
APPLICATION_VERSION = 1.04

# "Unrated" prior used by the skill-rating library
DEFAULT_MU = 25.0
DEFAULT_SIGMA = 8.333

# Manual reorder tie-break tuning
SCORE_EPSILON = 1e-6
TIE_BREAK_STEP = 1e-5
TIE_BREAK_SIGMA_FACTOR = 0.9999
EDGE_PLACEMENT_OFFSET = 0.001
DISTINCT_SCORE_FALLBACK_GAP = 1.0

# Refinement battles queued around a manually moved item
REFINEMENT_NEIGHBOR_COUNT = 2
REFINEMENT_PRIORITY_MANUAL_REORDER = 0

CONFIG_FOLDER_NAME = "RankKeeper"
CONFIG_FILE_NAME = "config.json"
STORE_FILE_NAME = "ratings_store.json"
LOG_FILE_NAME = "Debug.log"
LOG_FILE_MAX_BYTES = 1_000_000
LOG_FILE_BACKUP_COUNT = 3
LOGGER_NAME = "rankkeeper"

DATA_FOLDER_DEFAULT = os.path.join(os.getcwd(), "Data")

CLOUD_REQUEST_TIMEOUT = 30
CLOUD_ENDPOINT_PUSH = "sync-ratings"
CLOUD_ENDPOINT_PUSH_INCREMENTAL = "sync-ratings-incremental"
CLOUD_ENDPOINT_PULL = "get-ratings"

# Pull request body field
PAYLOAD_FIELD_SESSION_ID = "sessionId"

LEADERBOARD_SIZE_DEFAULT = 25
