"""Allow ``python -m annex_remote_b2``."""

from .cli import main

main()
