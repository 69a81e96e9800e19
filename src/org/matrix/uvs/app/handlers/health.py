from aiohttp import web


async def handle_health(request: web.Request) -> web.Response:
    return web.Response(text="👍")
