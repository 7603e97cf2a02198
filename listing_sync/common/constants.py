"""Application constants."""

USER_AGENT = "listing-sync/2.1 (+scheduled importer)"

COMMANDS = (
    "run-task",
    "load-schema",
    "serve",
)
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20

# Offset value meaning "no page pending": both the start and the end of a batch.
COMPLETED_OFFSET_VALUE = 0

TOKEN_TIMEOUT_SECONDS = 30
TOKEN_EXPIRATION_OFFSET_SECONDS = 30
DEFAULT_SOURCE_TIMEOUT_SECONDS = 45
DEFAULT_LOCK_TTL_SECONDS = 900

MAX_AWARD_YEARS_TO_SHOW = 8
AWARD_WEIGHT_TARGET_COUNT = 4

TAXONOMY_AWARD = "award"
TAXONOMY_CITY = "city"
TAXONOMY_STATE = "state"

POST_STATUS_PUBLISH = "publish"
DEFAULT_POST_TYPE = "listing"

# Option keys in the state store.
OPTION_CURRENT_OFFSET = "current_offset"
OPTION_LAST_IMPORT_START = "last_import_start"
OPTION_LAST_IMPORT_SUCCESS = "last_import_success"
OPTION_TOKEN_EXPIRES_AT = "token_expires_at"

TASK_FUNCTION_QUERY_VAR = "lsync_task_function"
TASK_AUTH_KEY_QUERY_VAR = "lsync_task_auth_key"

LOG_CHAR_LIMIT = 40960

JSON_LOG_FIELDS = (
    "timestamp",
    "level",
    "run_id",
    "stage",
    "component",
    "event",
    "status",
    "offset",
    "unique_id",
    "item_id",
    "rows_in",
    "rows_out",
    "error_code",
    "notice",
    "message",
)
