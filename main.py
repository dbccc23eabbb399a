from __future__ import annotations

import sys

from league_history.utils.env import load_env
from league_history.utils.logging import configure_logging
from league_history.web import server


def main(argv: list[str] | None = None) -> int:
    load_env()
    configure_logging()
    return server.main(argv if argv is not None else sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(main())
