"""
Environment Variable Utility for chat-tts
Provides functions for fetching environment variables.
"""
import os
import logging
import dotenv

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}

#get ENV variables, e.g. the default channel to join
def get_env_var(env_var, var_type=str, default=None):
    """
    Fetches information from the process environment or, failing that, the .env file.

    Args:
        env_var (str): Any environment variable in .env file.
        var_type (type): Conversion applied to the raw string; bool understands "true"/"false".
        default: Returned when the variable is missing or cannot be converted.
    Returns:
        The converted value of the environment variable, or default if not found.
    """
    env_key = os.environ.get(env_var)
    if not env_key:
        dotenv_path = dotenv.find_dotenv(usecwd=True)
        if dotenv_path:
            env_key = dotenv.get_key(dotenv_path=dotenv_path, key_to_get=env_var)

    if not env_key:
        return default
    try:
        if var_type is bool:
            return env_key.strip().lower() in _TRUE_VALUES
        if var_type:
            return var_type(env_key)
        return env_key
    except (TypeError, ValueError):
        logger.warning(f"{env_var}={env_key!r} is not of type {var_type.__name__}, using default {default!r}")
        return default
