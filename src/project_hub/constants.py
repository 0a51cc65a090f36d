STATE_DIR_NAME = ".project_hub"
CONFIG_FILE = "config.yaml"
ARTIFACTS_DIR = "artifacts"
TASKS_FILE = "tasks.yaml"
TASKS_LOCK_FILE = "tasks.lock"
BOARD_EVENTS_FILE = "board_events.jsonl"
WINDOWS_LOCK_BYTES = 4096

DEFAULT_ORDER_INCREMENT = 10.0
DEFAULT_DUE_SOON_DAYS = 2
DEFAULT_CASCADE_DELETE_DEPENDENCIES = True

DAILY_LOG_REMINDER_MESSAGE = "Please remember to submit your daily log for today."
