"""Allow ``python -m dynacounter``."""

from .cli.main import main

main()
