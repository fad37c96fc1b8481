"""Allow ``python -m acmer``."""

from acmer.cli.main import main

main()
