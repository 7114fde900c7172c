import yaml
import os
import shutil
import tempfile
import logging
from dotenv import load_dotenv

from utils.constants import COMMAND_PREFIX, CONNECT_TIMEOUT, DEFAULT_VOLUME

"""
Bot configuration management.

Loads the configuration from environment variables (optionally from a
.env file) and, in production, from a YAML file layered on top.
"""

logger = logging.getLogger(__name__)

CONFIG_PATH = os.path.join(os.path.dirname(__file__), '..', 'config', 'config.yaml')
ENV_PATH = os.path.join(os.path.dirname(__file__), '..', '..', '.env')


def get_ffmpeg_path():
    """
    Get the FFmpeg path, checking multiple locations in order.
    """
    # Check bin directory in project root first
    bin_ffmpeg = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..', 'bin', 'ffmpeg'))
    logger.debug(f"Checking for FFmpeg in bin directory: {bin_ffmpeg}")
    if os.path.exists(bin_ffmpeg):
        logger.info(f"Found FFmpeg in bin directory: {bin_ffmpeg}")
        return bin_ffmpeg

    # Then check environment variable
    env_ffmpeg = os.getenv('FFMPEG_PATH')
    if env_ffmpeg:
        logger.debug(f"Checking FFmpeg from environment variable: {env_ffmpeg}")
        if os.path.exists(env_ffmpeg):
            logger.info(f"Found FFmpeg from environment variable: {env_ffmpeg}")
            return env_ffmpeg

    # Finally, try system-wide ffmpeg
    found = shutil.which('ffmpeg')
    if found:
        return found
    logger.warning("No FFmpeg found in specific paths, falling back to system-wide 'ffmpeg'")
    return 'ffmpeg.exe' if os.name == 'nt' else 'ffmpeg'


def load_config(env_path: str = ENV_PATH, config_path: str = CONFIG_PATH) -> dict:
    """
    Loads configuration from environment variables (development) or
    config.yaml merged over them (production).

    Returns:
        dict: Dictionary containing bot configuration

    Raises:
        ValueError: If no bot token is configured
    """
    # Load .env file if it exists
    if os.path.exists(env_path):
        logger.debug(f"Loading .env file from: {env_path}")
        load_dotenv(env_path)

    # Determine if we're in development mode
    is_dev = os.getenv('BOT_ENV', '').lower() == 'development'
    logger.info(f"Running in {'development' if is_dev else 'production'} mode")

    default_config = {
        'bot_token': os.getenv('DISCORD_TOKEN') or os.getenv('TOKEN'),
        'command_prefix': os.getenv('BOT_PREFIX', COMMAND_PREFIX).strip(),
        'ffmpeg_path': get_ffmpeg_path(),
        'log_level': os.getenv('LOG_LEVEL', 'INFO'),
        'download_dir': os.getenv('DOWNLOAD_DIR', tempfile.gettempdir()),
        'connect_timeout': float(os.getenv('CONNECT_TIMEOUT', CONNECT_TIMEOUT)),
        'volume': DEFAULT_VOLUME,
        'debug': os.getenv('DEBUG', 'false').lower() == 'true'
    }

    config = default_config.copy()

    if not is_dev and os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                yaml_config = yaml.safe_load(f)
            # Merge yaml config with defaults
            config = {**default_config, **(yaml_config or {})}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading config.yaml: {e}")

    if config['debug']:
        config['log_level'] = 'DEBUG'

    # Validate required configuration
    if not config.get('bot_token'):
        raise ValueError("Bot token is required in configuration")

    return config
