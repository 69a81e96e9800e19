from typing import List
import argparse
import aiohttp
import asyncio
import logging

logger = logging.getLogger(__name__)

from org.matrix.uvs.resolve.server import is_blacklisted_host, resolve_server


async def realMain() -> None:
    parser = argparse.ArgumentParser(
        prog="resolve", description="Resolve Matrix server names"
    )
    parser.add_argument("server_name", nargs="+", help="The server name(s) to resolve.")
    parser.add_argument(
        "--check-blacklist",
        action="store_true",
        help="Also report whether the resolved host is in a blacklisted IP range.",
    )

    args = vars(parser.parse_args())

    server_names: List[str] = args.get("server_name", [])

    async with aiohttp.ClientSession() as session:
        for server_name in server_names:
            try:
                resolved = await resolve_server(session, server_name)
                if resolved is None:
                    print(f"{server_name}: invalid server name")
                    continue
                print(f"{server_name}: {resolved.base_url}")
                if args.get("check_blacklist"):
                    blacklisted = await is_blacklisted_host(resolved.host)
                    print(f"{server_name}: blacklisted={blacklisted}")
            except Exception:
                logging.exception("Exception resolving server name %s", server_name)


def main() -> None:
    asyncio.run(realMain())


if __name__ == "__main__":
    main()
