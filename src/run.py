"""
Point d'entrée du bot de salons vocaux temporaires.

Lancement : `python src/run.py` (le dossier src/ est ajouté à sys.path pour les imports absolus
`core`, `db`, `commands`, `views`).
"""
from __future__ import annotations

import sys
import os

_CURRENT_DIR = os.path.dirname(__file__)
if _CURRENT_DIR not in sys.path:
    sys.path.insert(0, _CURRENT_DIR)

from core.logging_config import setup_logging  # noqa: E402
setup_logging()

from core import config, bot as bot_module  # noqa: E402


def main() -> None:
    if not config.BOT_TOKEN:
        raise SystemExit("BOT_TOKEN manquant")
    if not config.DATABASE_URL:
        raise SystemExit("DATABASE_URL manquant (PostgreSQL requis pour les salons temporaires)")
    bot = bot_module.Bot()
    try:
        # Logging déjà configuré : on empêche discord.py d'installer son propre handler
        bot.run(config.BOT_TOKEN, log_handler=None)
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    main()
