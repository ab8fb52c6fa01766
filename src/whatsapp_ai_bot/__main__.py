"""Allow running the bot with `python -m whatsapp_ai_bot`."""
import sys

from whatsapp_ai_bot.core.daemon import main

if __name__ == "__main__":
    sys.exit(main())
