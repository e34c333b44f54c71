"""Run the Homefence API server: ``python -m homefence``."""

from homefence.main import run

run()
