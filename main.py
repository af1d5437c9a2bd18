"""Development entrypoint for the Village Wars HTTP API."""

from __future__ import annotations

import sys

from villagewars.main import main

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:] or ["serve", "--reload"]))
