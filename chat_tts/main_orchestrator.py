"""Main Orchestrator for chat-tts
Builds the speech engine, the chat session and the background services, then
narrates one Twitch channel until interrupted or until the connection drops.
"""
import argparse
import asyncio
import sys
from typing import Optional

from dotenv import load_dotenv

from chat_tts.common import config as app_config
from chat_tts.services.memory_watchdog_service import MemoryWatchdogService
from chat_tts.session import SessionCoordinator
from chat_tts.utils import logger as app_logger
from chat_tts.utils.env_utils import get_env_var

def _create_pyttsx3_engine(tts_settings: dict):
    from TTS_Wizard.pyttsx3_engine import Pyttsx3Engine
    engine = Pyttsx3Engine(
        base_words_per_minute=tts_settings.get("base_words_per_minute", 180),
        voice_id=tts_settings.get("voice_id"),
    )
    engine.start()
    return engine

# A registry to map engine names to their factories.
TTS_ENGINE_REGISTRY = {
    "pyttsx3": _create_pyttsx3_engine,
}

class MainOrchestrator:
    def __init__(self, channel: str, config: Optional[dict] = None):
        self.logger = app_logger.get_logger("MainOrchestrator")
        self.channel = channel
        self.config = config if config is not None else app_config.load_config()
        self.session: Optional[SessionCoordinator] = None
        self.watchdog: Optional[MemoryWatchdogService] = None
        self._connection_lost: Optional[asyncio.Event] = None

    def create_engine(self):
        tts_settings = self.config.get("tts_settings", {})
        engine_name = tts_settings.get("tts_engine", "pyttsx3")
        factory = TTS_ENGINE_REGISTRY.get(engine_name)
        if not factory:
            raise ValueError(f"Unknown TTS engine name: {engine_name}")
        self.logger.info(f"Using TTS engine: {engine_name}")
        return factory(tts_settings)

    async def run_async_loop(self) -> int:
        self._connection_lost = asyncio.Event()
        self.session = SessionCoordinator(
            engine=self.create_engine(),
            config=self.config,
            on_connection_lost=self._connection_lost.set,
        )
        self.watchdog = MemoryWatchdogService({"config": self.config, "session": self.session})

        try:
            if not await self.session.connect(self.channel):
                self.logger.error(f"Failed to join #{self.channel}.")
                return 1
            await self.watchdog.start()
            # No automatic reconnect: the session ends when the server drops us
            await self._connection_lost.wait()
            return 1
        except asyncio.CancelledError:
            self.logger.info("Main orchestrator async loop cancelled.")
            return 0
        finally:
            await self._cleanup()

    async def _cleanup(self):
        self.logger.info("Starting orchestrator cleanup...")
        if self.watchdog:
            await self.watchdog.stop()
        if self.session:
            self.session.close()
        self.logger.info("Orchestrator cleanup completed.")

    def run(self) -> int:
        self.logger.info(f"Starting chat narration for #{self.channel}...")
        try:
            return asyncio.run(self.run_async_loop())
        except KeyboardInterrupt:
            self.logger.info("Narration interrupted by user (KeyboardInterrupt).")
            return 0
        finally:
            self.logger.info("chat-tts shutting down.")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Read a Twitch channel's chat out loud.")
    parser.add_argument("channel", nargs="?", help="Channel to join (defaults to TW_CHANNEL from the environment)")
    parser.add_argument("--config", help="Path to a config.json file")
    parser.add_argument("--rate", type=float, help="Speech rate between 0.5 and 2.0")
    parser.add_argument("--max-queue", type=int, help="Maximum number of messages waiting to be read")
    parser.add_argument("--max-history", type=int, help="Maximum number of chat messages kept in history")
    return parser

def apply_overrides(config: dict, args: argparse.Namespace) -> dict:
    """Copies CLI overrides into the config dict (command line wins over config.json)."""
    tts_settings = config.setdefault("tts_settings", {})
    livechat_settings = config.setdefault("livechat_settings", {})
    if args.rate is not None:
        tts_settings["speech_rate"] = args.rate
    if args.max_queue is not None:
        tts_settings["max_queue_size"] = args.max_queue
    if args.max_history is not None:
        livechat_settings["max_history_size"] = args.max_history
    return config

def main(argv=None) -> int:
    load_dotenv()
    args = build_arg_parser().parse_args(argv)
    if args.config:
        app_logger.setup_logging(config_path=args.config)
    else:
        app_logger.setup_logging()

    channel = args.channel or get_env_var("TW_CHANNEL", str)
    if not channel:
        print("No channel given. Pass one on the command line or set TW_CHANNEL in .env.", file=sys.stderr)
        return 2

    config = apply_overrides(app_config.load_config(args.config), args)
    return MainOrchestrator(channel, config).run()

if __name__ == "__main__":
    sys.exit(main())
