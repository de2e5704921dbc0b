STATE_DIR_NAME = ".todo_api"
CONFIG_FILE = "config.yaml"
STORE_FILE = "store.yaml"
STORE_LOCK_FILE = "store.lock"

STORE_SCHEMA_VERSION = 1
WINDOWS_LOCK_BYTES = 4096

TASK_CACHE_NAME = "TaskItem"
DEPENDENCY_CACHE_NAME = "TaskDependency"

DEFAULT_TASK_TTL_MINUTES = 5
DEFAULT_DEPENDENCY_TTL_MINUTES = 15
DEFAULT_PAGE_SIZE = 20

DEFAULT_TASK_PRIORITY = "P2"
DEFAULT_TASK_STATUS = "todo"

CACHE_FILE = "cache.yaml"
CACHE_LOCK_FILE = "cache.lock"
CACHE_SWEEP_INTERVAL_SECONDS = 60
MAX_PAGE_SIZE = 100
