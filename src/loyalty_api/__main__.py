import argparse
import os
from typing import Sequence

import uvicorn


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="loyalty-api", description="Run the loyalty accrual service.")
    parser.add_argument("-a", dest="run_address", help="listen address, host:port")
    parser.add_argument("-d", dest="database_uri", help="database connection URL")
    parser.add_argument("-r", dest="accrual_system_address", help="accrual system base address")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    # Flags take precedence over the environment; settings are read on app import.
    for env_name, value in (
        ("RUN_ADDRESS", args.run_address),
        ("DATABASE_URL", args.database_uri),
        ("ACCRUAL_SYSTEM_ADDRESS", args.accrual_system_address),
    ):
        if value:
            os.environ[env_name] = value

    from loyalty_api.core.settings import settings

    uvicorn.run(
        "loyalty_api.app:create_app",
        factory=True,
        host=settings.run_host,
        port=settings.run_port,
    )


if __name__ == "__main__":
    main()
