"""Allow ``python -m kevm_dispatch``."""

from kevm_dispatch.cli import main

main()
