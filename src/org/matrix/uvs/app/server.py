import logging
from time import time
from typing import Optional
from urllib.parse import urlparse
from aiohttp import web
import aiohttp
import sentry_sdk
from sentry_sdk.integrations.aiohttp import AioHttpIntegration

from org.matrix.uvs.app.config import (
    MetricsClientAppKey,
    SessionAppKey,
    Settings,
    SettingsAppKey,
)
from org.matrix.uvs.app.handlers.health import handle_health
from org.matrix.uvs.app.handlers.verify import (
    handle_verify_user,
    handle_verify_user_in_room,
)
from org.matrix.uvs.app.metrics import create_metrics_client
from org.matrix.uvs.resolve.server import BlacklistingResolver

logger = logging.getLogger(__name__)


def create_connector(settings: Settings) -> Optional[aiohttp.TCPConnector]:
    """
    Build the connector for the shared client session.

    In multi-homeserver mode, unless the IP blacklist is disabled, hostnames are
    resolved through BlacklistingResolver so that private addresses are never dialled.
    The configured homeserver is exempt.

    Returns:
        A TCPConnector, or None to use aiohttp's default connector
    """
    if not settings.openid_verify_any_homeserver or settings.disable_ip_blacklist:
        return None

    allowed_hosts = []
    if settings.homeserver_url is not None:
        homeserver_host = urlparse(settings.homeserver_url).hostname
        if homeserver_host is not None:
            allowed_hosts.append(homeserver_host)

    resolver = BlacklistingResolver(
        allowed_hosts=allowed_hosts, timeout=settings.request_timeout
    )
    return aiohttp.TCPConnector(resolver=resolver)


async def client_context(app: web.Application):
    logger.info("Starting up")
    settings: Settings = app[SettingsAppKey]

    trace_config = aiohttp.TraceConfig()

    if settings.debug:

        async def on_request_start(
            session, trace_config_ctx, params: aiohttp.TraceRequestStartParams
        ):
            # Userinfo URLs carry the caller's token in the query string.
            logging.info("Starting request: %s %s", params.method, params.url.path)

        async def on_request_end(
            session, trace_config_ctx, params: aiohttp.TraceRequestEndParams
        ):
            logging.info(
                "Ending request: %s %s %s",
                params.method,
                params.url.path,
                params.response.status,
            )

        trace_config.on_request_start.append(on_request_start)
        trace_config.on_request_end.append(on_request_end)

    app[SessionAppKey] = aiohttp.ClientSession(
        connector=create_connector(settings), trace_configs=[trace_config]
    )

    if MetricsClientAppKey not in app:
        metrics_client = create_metrics_client(
            settings.metrics_backend,
            host=settings.statsd_host,
            port=settings.statsd_port,
            debug=settings.debug,
        )
        await metrics_client.connect()
        app[MetricsClientAppKey] = metrics_client

    logger.info("Startup complete")

    yield

    logger.info("Shutting down")

    await app[SessionAppKey].close()
    await app[MetricsClientAppKey].close()


@web.middleware
async def sentry_middleware(request: web.Request, handler):
    try:
        response = await handler(request)
        return response
    except web.HTTPException:
        raise
    except Exception as e:
        sentry_sdk.capture_exception(e)
        raise e


@web.middleware
async def statsd_middleware(request: web.Request, handler):
    metrics_client = request.app[MetricsClientAppKey]
    request_method: str = request.method
    request_path = request.path

    start_time: float = time()
    response_status_code = 0

    try:
        response = await handler(request)
        response_status_code = response.status
        return response
    except web.HTTPException as e:
        response_status_code = e.status
        raise e
    except Exception as e:
        metrics_client.increment(
            "uvs.server.request.exception",
            1,
            tag_dict={
                "exception": type(e).__name__,
                "path": request_path,
                "method": request_method,
            },
        )
        raise e
    finally:
        metrics_client.timer(
            "uvs.server.request.time",
            time() - start_time,
            tag_dict={"path": request_path, "method": request_method},
        )
        metrics_client.increment(
            "uvs.server.request.count",
            1,
            tag_dict={
                "path": request_path,
                "method": request_method,
                "status": response_status_code,
            },
        )


async def start_web_server(settings: Optional[Settings] = None) -> web.Application:

    if settings is None:
        settings = Settings()  # type: ignore
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            send_default_pii=False,
            integrations=[AioHttpIntegration()],
        )
    app = web.Application(middlewares=[statsd_middleware, sentry_middleware])

    app[SettingsAppKey] = settings

    app.add_routes([web.get("/health", handle_health)])

    app.add_routes(
        [
            web.post("/verify/user", handle_verify_user),
            web.post("/verify/user/in-room", handle_verify_user_in_room),
        ]
    )

    app.cleanup_ctx.append(client_context)

    if settings.openid_verify_any_homeserver:
        logger.info("Verifying OpenID tokens against any homeserver")
    else:
        logger.info("Verifying OpenID tokens against %s", settings.homeserver_url)
    if not settings.auth_token:
        logger.warning("UVS_AUTH_TOKEN is not set, caller authentication is disabled")

    return app
