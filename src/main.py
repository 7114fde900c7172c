import asyncio
import logging

from bot import MusicBot
from utils.config import load_config
from utils.logging_config import setup_logging

logger = logging.getLogger('MusicBot')


async def main():
    """Main entry point for the bot."""
    config = load_config()
    setup_logging(config['log_level'])
    logger.info(f"Successfully loaded configuration. Command prefix: {config['command_prefix']}")

    bot = MusicBot(config)
    async with bot:
        await bot.start(config['bot_token'])


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == '__main__':
    run()
