"""Constants for coffer-client."""

# Blob references
DEFAULT_HASH_ALGORITHM = "sha1"
READ_CHUNK_SIZE = 8192

# Wire formats
BLOB_CONTENT_TYPE = "data/octet-stream"
PART_CONTENT_TYPE = "application/octet-stream"
CONTAINERS_PATH = "containers"

# Expected statuses
STATUS_OK = 200
STATUS_CREATED = 201

# Connection pools
DEFAULT_POOL_SIZE = 10
POOL_NAME_PREFIX = "Pool:"

# Configuration
CONFIG_DIR = ".coffer"
CONFIG_FILE = "config.yaml"

# Version
CLIENT_VERSION = "0.1.0"
