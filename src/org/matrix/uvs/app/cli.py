import os
from aiohttp import web
import logging
from logging.config import dictConfig
import json


def configure_logging():
    logging_config_file = os.getenv("LOGGING_CONFIG_FILE", "")

    if len(logging_config_file) > 0:
        with open(logging_config_file) as fl:
            dictConfig(json.load(fl))
        return

    logging.basicConfig()
    logging.getLogger().setLevel(logging.DEBUG)


def invoke():
    configure_logging()

    from org.matrix.uvs.app.config import Settings
    from org.matrix.uvs.app.server import start_web_server

    settings = Settings()  # type: ignore

    web.run_app(
        start_web_server(settings),
        host=settings.listen_address,
        port=settings.port,
        handler_cancellation=True,
    )


if __name__ == "__main__":
    invoke()
