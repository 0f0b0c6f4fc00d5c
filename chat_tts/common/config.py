"""
Configuration Loader for chat-tts
Provides methods to load and access shared configuration settings.
"""
import os
import json
import logging

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), 'config.json')

logger = logging.getLogger(__name__)

def load_config(config_path=None):
    """
    Loads the JSON configuration. A missing file yields an empty dict so callers
    can always fall back to `.get(key, default)`.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
        logger.debug(f"Using default config path: {config_path}")
    if not os.path.exists(config_path):
        logger.warning(f"Config file not found at {config_path}, using defaults.")
        return {}
    with open(config_path, 'r', encoding='utf-8') as f:
        return json.load(f)
