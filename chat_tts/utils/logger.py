"""
Logger Utility for chat-tts
Provides a centralized logger for the application.
"""
import logging
import sys
import os
import json
from logging.handlers import RotatingFileHandler

# --- Configuration ---
# Use an absolute path to the project root to ensure files are always found
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))
CONFIG_PATH = os.path.join(PROJECT_ROOT, 'chat_tts', 'common', 'config.json')
LOG_DIR = os.path.join(PROJECT_ROOT, 'logs')

LOG_FORMAT = '%(asctime)s - %(levelname)s - [%(name)s] (%(threadName)s) - %(message)s'

def _logging_enabled(config_path):
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = json.load(f)
        return bool(config.get('logging_enabled', False))
    except (FileNotFoundError, json.JSONDecodeError) as e:
        # Fallback for situations where config is not available
        print(f"[PRE-LOGGING WARNING] Could not load config to check logging status: {e}", file=sys.stderr)
        return os.environ.get('LOGGING_ENABLED', 'false').lower() == 'true'

def setup_logging(config_path=CONFIG_PATH, log_dir=LOG_DIR):
    """
    Configures the root logger for the process.
    This function is idempotent and safe to call multiple times.
    It reads the configuration to decide whether to enable logging.
    """
    root_logger = logging.getLogger()

    # If handlers are already configured, another part of the process did it. Don't add more.
    if root_logger.hasHandlers():
        return

    logging_enabled = _logging_enabled(config_path)

    # If disabled, we set the level so high that nothing gets through.
    # If enabled, we set it to DEBUG to capture everything, and let handlers filter.
    log_level = logging.DEBUG if logging_enabled else logging.CRITICAL + 1
    root_logger.setLevel(log_level)

    if not logging_enabled:
        # Add a NullHandler to prevent "No handlers could be found" warnings
        root_logger.addHandler(logging.NullHandler())
        return

    formatter = logging.Formatter(LOG_FORMAT)

    # Console Handler
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(logging.INFO) # Console shows INFO and above
    root_logger.addHandler(stream_handler)

    # File Handler (with rotation)
    os.makedirs(log_dir, exist_ok=True)
    log_file_path = os.path.join(log_dir, 'app.log')

    # Rotates logs after 5MB, keeping 3 backup files.
    file_handler = RotatingFileHandler(log_file_path, maxBytes=5*1024*1024, backupCount=3, encoding='utf-8')
    file_handler.setFormatter(formatter)
    file_handler.setLevel(logging.DEBUG) # Log file captures everything (DEBUG and above)
    root_logger.addHandler(file_handler)

    root_logger.info(f"Logging configured for process {os.getpid()}. Log file: {log_file_path}")


def get_logger(name: str) -> logging.Logger:
    """
    Retrieves a logger instance. It will inherit the root configuration.
    """
    return logging.getLogger(name)
