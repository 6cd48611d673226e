"""Entry point for the MP3 shuffle player."""

import logging

from shuffle_player.config import LOG_LEVEL
from shuffle_player.ui import ShufflePlayerApp


def main():
    """Run the MP3 shuffle player."""
    logging.basicConfig(
        level=LOG_LEVEL,
        format='[%(levelname)s] %(name)s: %(message)s',
    )
    app = ShufflePlayerApp()
    app.mainloop()


if __name__ == '__main__':
    main()
