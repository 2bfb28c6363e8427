from typing import Literal, Union
from dataclasses import dataclass


TxNumber = int
"""The LiteFS replication position. All writes up to and including this
position have been applied to the local database. Never negative.
"""

MUTATION_METHODS = ("POST", "PUT", "PATCH", "DELETE")
"""The HTTP methods which are expected to write to the database and thus must
run on the primary.
"""


@dataclass(frozen=True)
class InstanceInfo:
    """Who the primary is, as seen from this process. This is derived from the
    .primary file on every call and must not be cached, since the lease can
    move at any time.
    """

    primary_instance: str
    """the hostname of the primary instance (the contents of the .primary file
    if present, otherwise the current instance)
    """

    current_instance: str
    """the hostname of the current instance"""

    current_is_primary: bool
    """whether the current instance is the primary instance"""


@dataclass(frozen=True)
class ReplayDirective:
    """Describes that a request must be re-issued against another instance.
    How this is put on the wire is up to the adapter.
    """

    target_instance: str
    """The instance the request should be replayed on, usually the primary"""

    @property
    def fly_replay_header(self) -> str:
        """The value for the fly-replay response header"""
        return f"instance={self.target_instance}"


@dataclass(frozen=True)
class ConsistencyOk:
    """The request carried no txnum cookie; nothing to reconcile."""

    type: Literal["ok"] = "ok"


@dataclass(frozen=True)
class DeleteCookie:
    """The request may proceed, but the txnum cookie must be cleared, either
    because this is the primary, because this replica has caught up, or because
    the cookie was garbage.
    """

    set_cookie_header: str
    """The Set-Cookie header value which expires the txnum cookie"""

    type: Literal["delete-cookie"] = "delete-cookie"


@dataclass(frozen=True)
class Replay:
    """This replica did not catch up in time; the request must be replayed
    on the primary.
    """

    target_instance: str
    """The primary instance to replay on"""

    type: Literal["replay"] = "replay"

    @property
    def directive(self) -> ReplayDirective:
        return ReplayDirective(target_instance=self.target_instance)


ConsistencyResult = Union[ConsistencyOk, DeleteCookie, Replay]
"""The outcome of checking a request's txnum cookie. Adapters switch on
`type` (or isinstance) and short-circuit with their own mechanism.
"""
