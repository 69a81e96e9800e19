import logging
from typing import Optional, Type, TypeVar
from aiohttp import web
from pydantic import ValidationError

from org.matrix.uvs.app.config import (
    MetricsClientAppKey,
    SessionAppKey,
    SettingsAppKey,
)
from org.matrix.uvs.app.metrics import MetricsClient
from org.matrix.uvs.verify.client import IdentityClient
from org.matrix.uvs.verify.engine import Verifier
from org.matrix.uvs.verify.exceptions import (
    BadRequestException,
    CallerUnauthorizedException,
)
from org.matrix.uvs.verify.gate import check_caller_authorization
from org.matrix.uvs.verify.homeserver import HomeserverResolver
from org.matrix.uvs.verify.models import (
    VerificationResult,
    VerifyUserInRoomRequest,
    VerifyUserRequest,
)

logger = logging.getLogger(__name__)

RequestModel = TypeVar("RequestModel", VerifyUserRequest, VerifyUserInRoomRequest)


def verifier_for(app: web.Application) -> Verifier:
    settings = app[SettingsAppKey]
    http_session = app[SessionAppKey]
    return Verifier(
        settings,
        IdentityClient(http_session, settings),
        HomeserverResolver(settings, http_session),
    )


async def parse_body(
    request: web.Request, model: Type[RequestModel]
) -> Optional[RequestModel]:
    try:
        data = await request.read()
        return model.model_validate_json(data)
    except (OSError, ValidationError) as e:
        logger.info("Invalid verification request body: %s", e)
        return None


def record_result(
    metrics_client: MetricsClient, name: str, result: VerificationResult
) -> None:
    tags = {"verified": str(result.user_verified).lower()}
    if result.room_membership_verified is not None:
        tags["room_membership"] = str(result.room_membership_verified).lower()
    if result.failure is not None:
        tags["failure"] = result.failure.name
    metrics_client.increment(name, 1, tag_dict=tags)


def unauthorized_response(
    metrics_client: MetricsClient, e: CallerUnauthorizedException, room: bool
) -> web.Response:
    logger.info("Rejected caller: %s", e)
    metrics_client.increment("uvs.verify.unauthorized", 1)
    return web.json_response(
        status=e.status, data=VerificationResult.unverified(room=room).to_response()
    )


def bad_request_response(message: str) -> web.Response:
    return web.json_response(status=400, data={"error": message})


async def handle_verify_user(request: web.Request) -> web.Response:
    settings = request.app[SettingsAppKey]
    metrics_client = request.app[MetricsClientAppKey]
    authorization = request.headers.get("Authorization", None)

    try:
        check_caller_authorization(settings.auth_token, authorization)
    except CallerUnauthorizedException as e:
        return unauthorized_response(metrics_client, e, room=False)

    verify_request = await parse_body(request, VerifyUserRequest)
    if verify_request is None:
        return bad_request_response("Invalid request body")

    try:
        result = await verifier_for(request.app).verify_user(
            verify_request, authorization
        )
    except BadRequestException as e:
        return bad_request_response(str(e))

    record_result(metrics_client, "uvs.verify.user", result)
    return web.json_response(result.to_response())


async def handle_verify_user_in_room(request: web.Request) -> web.Response:
    settings = request.app[SettingsAppKey]
    metrics_client = request.app[MetricsClientAppKey]
    authorization = request.headers.get("Authorization", None)

    try:
        check_caller_authorization(settings.auth_token, authorization)
    except CallerUnauthorizedException as e:
        return unauthorized_response(metrics_client, e, room=True)

    verify_request = await parse_body(request, VerifyUserInRoomRequest)
    if verify_request is None:
        return bad_request_response("Invalid request body")

    try:
        result = await verifier_for(request.app).verify_user_in_room(
            verify_request, authorization
        )
    except BadRequestException as e:
        return bad_request_response(str(e))

    record_result(metrics_client, "uvs.verify.room", result)
    return web.json_response(result.to_response())
