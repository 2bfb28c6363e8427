"""WSGI middleware which applies the txnum protocol to any WSGI application.

Replays are rendered the same way as the aiohttp middlewares: a 409 response
with a fly-replay header.

Example:
    ```py
    app = LiteFSMiddleware(app, litetx.connect())
    ```
"""
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from litetx.consistency import Node
from litetx.types import MUTATION_METHODS, ReplayDirective


StartResponse = Callable[..., Any]
WSGIApplication = Callable[[Dict[str, Any], StartResponse], Iterable[bytes]]

FLY_REPLAY_HEADER = "fly-replay"
"""The response header the fly.io proxy looks for to replay a request"""


class LiteFSMiddleware:
    """Wraps a WSGI application so that:

    - mutation requests (POST, PUT, PATCH, DELETE) on a replica are replayed
      on the primary, if ensure_primary is set
    - requests carrying a txnum cookie wait for this node to catch up, or
      are replayed on the primary if it does not catch up in time
    - responses to mutation requests on the primary set the txnum cookie, if
      set_tx_number is set

    The txnum cookie is minted when the application calls start_response,
    which for typical frameworks is after the view has finished writing.
    """

    def __init__(
        self,
        app: WSGIApplication,
        node: Node,
        ensure_primary: bool = True,
        set_tx_number: bool = True,
    ):
        self.app = app
        """The wrapped WSGI application"""

        self.node = node
        """The node used to make consistency decisions"""

        self.ensure_primary = ensure_primary
        """True to replay mutation requests on replicas to the primary"""

        self.set_tx_number = set_tx_number
        """True to set the txnum cookie after mutation requests on the primary"""

    def __call__(
        self, environ: Dict[str, Any], start_response: StartResponse
    ) -> Iterable[bytes]:
        is_mutation = environ.get("REQUEST_METHOD", "GET").upper() in MUTATION_METHODS

        if self.ensure_primary and is_mutation:
            directive = self.node.require_primary()
            if directive is not None:
                return self._replay(directive, start_response)

        result = self.node.check_cookie(environ.get("HTTP_COOKIE"))
        if result.type == "replay":
            return self._replay(result.directive, start_response)

        extra_cookies: List[str] = []
        if result.type == "delete-cookie":
            extra_cookies.append(result.set_cookie_header)

        def wrapped_start_response(
            status: str,
            headers: List[Tuple[str, str]],
            exc_info: Optional[Any] = None,
        ) -> Any:
            headers = list(headers)
            for cookie in extra_cookies:
                headers.append(("Set-Cookie", cookie))

            if self.set_tx_number and is_mutation:
                minted = self.node.mint_tx_cookie()
                if minted is not None:
                    headers.append(("Set-Cookie", minted))

            return start_response(status, headers, exc_info)

        return self.app(environ, wrapped_start_response)

    def _replay(
        self, directive: ReplayDirective, start_response: StartResponse
    ) -> Iterable[bytes]:
        start_response(
            "409 Conflict",
            [
                (FLY_REPLAY_HEADER, directive.fly_replay_header),
                ("Content-Length", "0"),
            ],
        )
        return [b""]
