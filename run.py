import sys

from chat_tts.main_orchestrator import main

# Convenience launcher: `python run.py <channel>`; same as the `chat-tts` console script
if __name__ == "__main__":
    sys.exit(main())
