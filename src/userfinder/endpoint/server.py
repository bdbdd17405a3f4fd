"""FastAPI application for the userfinder endpoint.

Routes are declared once in an explicit route table and installed when the
application is created:

    GET /v1/users/{id}    <- {"DisplayName": "alice"}

Every response under the versioned group carries
``Content-Type: application/json``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from userfinder import __version__
from userfinder.config.settings import ServerConfig
from userfinder.domain.models import CommandDecodeError, LookupCommand, decode_lookup_command
from userfinder.endpoint.middleware import Dispatch, access_log, json_content_type, scoped

logger = logging.getLogger(__name__)

CommandSink = Callable[[LookupCommand], None]

USERS_PATH_GROUP = "/users"


# ---------------------------------------------------------------------------
# Route table
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Route:
    method: str
    path: str
    endpoint: Callable
    name: str


@dataclass(frozen=True)
class RouteGroup:
    prefix: str
    middleware: tuple[Dispatch, ...]
    routes: tuple[Route, ...]


def log_command(command: LookupCommand) -> None:
    """Default command sink: write the decoded command to the process log."""
    logger.info("Find user by display name: %r", command)


async def find_user_by_display_name(request: Request, id: str) -> Response:
    """Decode a LookupCommand from the body and hand it to the command sink.

    The ``id`` path parameter is part of the route but not used; the display
    name comes from the JSON body. No lookup is performed and nothing is
    written to the response body.
    """
    body = await request.body()
    try:
        command = decode_lookup_command(body)
    except CommandDecodeError as e:
        logger.warning("Failed to decode lookup command: %s %s", e, e.errors)
        raise RequestValidationError(
            [{**err, "loc": ("body", *err["loc"])} for err in e.errors]
        ) from e
    request.app.state.command_sink(command)
    return Response()


def build_route_table(api_prefix: str = "/v1") -> tuple[RouteGroup, ...]:
    """Build the static route table for the given API version prefix."""
    return (
        RouteGroup(
            prefix=api_prefix.rstrip("/"),
            middleware=(json_content_type,),
            routes=(
                Route(
                    method="GET",
                    path=f"{USERS_PATH_GROUP}/{{id}}",
                    endpoint=find_user_by_display_name,
                    name="find_user_by_display_name",
                ),
            ),
        ),
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    config: ServerConfig | None = None,
    command_sink: CommandSink | None = None,
) -> FastAPI:
    """Create the userfinder application.

    Args:
        config: Server configuration; only ``api_prefix`` is used here.
        command_sink: Receives each decoded LookupCommand. Defaults to
                      logging it.
    """
    config = config or ServerConfig()

    app = FastAPI(
        title="userfinder",
        description="Find users by display name",
        version=__version__,
    )
    app.state.command_sink = command_sink or log_command

    route_table = build_route_table(config.api_prefix)
    for group in route_table:
        for route in group.routes:
            app.add_api_route(
                group.prefix + route.path,
                route.endpoint,
                methods=[route.method],
                name=route.name,
            )
        # Innermost first, so the chain runs in declaration order
        for dispatch in reversed(group.middleware):
            app.add_middleware(BaseHTTPMiddleware, dispatch=scoped(group.prefix, dispatch))

    app.add_middleware(BaseHTTPMiddleware, dispatch=access_log)
    app.state.route_table = route_table
    logger.debug(
        "Installed %d route(s)",
        sum(len(group.routes) for group in route_table),
    )
    return app
