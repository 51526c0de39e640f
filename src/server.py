"""Protean Engine runner for the logistics domain.

Starts the Engine workers that process events asynchronously when the
production overlay selects async event processing. The tracking view and
the driver cash ledger are fed from here in that mode, reading the shared
event store and broker named by MESSAGE_DB_URL and REDIS_URL.

Usage:
    python src/server.py
"""

import argparse
import asyncio

from protean.server.engine import Engine


def _get_domain():
    from logistics.domain import logistics

    logistics.init()
    return logistics


async def run():
    await Engine(_get_domain()).run()


def main():
    argparse.ArgumentParser(description="ParcelHub Engine runner").parse_args()
    asyncio.run(run())


if __name__ == "__main__":
    main()
