"""Run the pagesnap server: ``python -m pagesnap``."""

import sys

import uvicorn

from pagesnap.env_utils import ConfigError


def main() -> int:
    try:
        # Settings are parsed on import, so malformed values surface here too.
        from pagesnap import config

        config.validate()
    except ConfigError as exc:
        print(f"pagesnap: {exc}", file=sys.stderr)
        return 1
    uvicorn.run("pagesnap.main:app", host="0.0.0.0", port=config.PORT)
    return 0


if __name__ == "__main__":
    sys.exit(main())
