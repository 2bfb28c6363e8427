"""aiohttp middlewares which apply the txnum protocol to an application.

Replays are rendered as a 409 response with a fly-replay header, which the
fly.io proxy intercepts and re-issues against the named instance.

Example:
    ```py
    node = litetx.connect_async()
    app = web.Application(middlewares=litefs_middlewares(node))
    ```
"""
from typing import Awaitable, Callable, List
from aiohttp import web
from litetx.async_consistency import AsyncNode
from litetx.types import MUTATION_METHODS, ReplayDirective


Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]
Middleware = Callable[[web.Request, Handler], Awaitable[web.StreamResponse]]

FLY_REPLAY_HEADER = "fly-replay"
"""The response header the fly.io proxy looks for to replay a request"""


def replay_response(directive: ReplayDirective) -> web.Response:
    """The response which asks the proxy to replay the request on the
    directive's target instance.
    """
    return web.Response(
        status=409, headers={FLY_REPLAY_HEADER: directive.fly_replay_header}
    )


async def _call_with_cookie(
    request: web.Request, handler: Handler, set_cookie_header: str
) -> web.StreamResponse:
    try:
        response = await handler(request)
    except web.HTTPException as e:
        e.headers.add("Set-Cookie", set_cookie_header)
        raise
    if not response.prepared:
        response.headers.add("Set-Cookie", set_cookie_header)
    return response


def ensure_primary_middleware(node: AsyncNode) -> Middleware:
    """Ensures that POST, PUT, PATCH, and DELETE requests are replayed to the
    primary instance if the current instance is not the primary instance, to
    avoid writing to a non-primary database.
    """

    @web.middleware
    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        if request.method in MUTATION_METHODS:
            directive = await node.require_primary()
            if directive is not None:
                return replay_response(directive)
        return await handler(request)

    return middleware


def transactional_consistency_middleware(node: AsyncNode) -> Middleware:
    """Ensures that if the client has a txnum cookie, the server waits until
    its transaction number is up to date before continuing. If it takes too
    long, the request is instead replayed on the primary instance.

    This should run before any database reads or writes.
    """

    @web.middleware
    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        result = await node.check_cookie(request.headers.get("Cookie"))
        if result.type == "replay":
            return replay_response(result.directive)
        if result.type == "delete-cookie":
            return await _call_with_cookie(request, handler, result.set_cookie_header)
        return await handler(request)

    return middleware


def set_tx_number_middleware(node: AsyncNode) -> Middleware:
    """Sets the txnum cookie on responses to mutation requests handled by
    the primary instance. Other cookies on the response are preserved, and
    the cookie is also set on raised HTTP exceptions such as the redirect of
    a POST-redirect-GET.

    This should wrap transactional_consistency_middleware, so that the fresh
    cookie comes after any deletion of the old one.
    """

    @web.middleware
    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        if request.method not in MUTATION_METHODS:
            return await handler(request)

        try:
            response = await handler(request)
        except web.HTTPException as e:
            set_cookie_header = await node.mint_tx_cookie()
            if set_cookie_header is not None:
                e.headers.add("Set-Cookie", set_cookie_header)
            raise

        if FLY_REPLAY_HEADER in response.headers or response.prepared:
            return response

        set_cookie_header = await node.mint_tx_cookie()
        if set_cookie_header is not None:
            response.headers.add("Set-Cookie", set_cookie_header)
        return response

    return middleware


def litefs_middlewares(node: AsyncNode) -> List[Middleware]:
    """All of the litetx middlewares in the order they should be installed"""
    return [
        ensure_primary_middleware(node),
        set_tx_number_middleware(node),
        transactional_consistency_middleware(node),
    ]
