import os
from platformdirs import user_config_dir

APP_NAME = "ChunkCopy"
CHUNKCOPY_HOME = os.getenv("CHUNKCOPY_HOME", user_config_dir(".", APP_NAME))
ENV_FILE = os.path.join(CHUNKCOPY_HOME, ".env")
LOG_DIR = os.path.join(CHUNKCOPY_HOME, "logs")
