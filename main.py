"""Command-line runner for the CLI arcade.

    python main.py            # Clisnake
    python main.py --pong     # Clipong bouncing-ball demo
    python main.py --duel     # Clipong Duel
"""

import sys

from arcade_app import cli


def main():
    return cli()


if __name__ == "__main__":
    sys.exit(main())
