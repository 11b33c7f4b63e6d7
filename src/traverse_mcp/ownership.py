"""
Port ownership negotiation.

Every process makes exactly one attempt to bind the diagram server port.
The winner becomes OWNER and serves HTTP from the pre-bound socket; everyone
else becomes CLIENT and publishes through the owner's HTTP API. The role is
decided once and never renegotiated.
"""

from __future__ import annotations

import errno
import logging
import socket
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import uvicorn
from starlette.types import ASGIApp

logger = logging.getLogger("traverse-mcp")


class Role(Enum):
    OWNER = "owner"
    CLIENT = "client"


@dataclass
class OwnerListener:
    """A bound, listening socket. Holding it is what makes a process OWNER."""
    sock: socket.socket
    host: str
    port: int

    def close(self) -> None:
        self.sock.close()


@dataclass(frozen=True)
class PortUnavailable:
    """The port is already bound by another process."""
    host: str
    port: int
    reason: str


BindResult = Union[OwnerListener, PortUnavailable]


@dataclass(frozen=True)
class RoleDecision:
    role: Role
    port: int
    listener: Optional[OwnerListener] = None

    @property
    def is_owner(self) -> bool:
        return self.role is Role.OWNER


def try_bind_owner(port: int, host: str = "127.0.0.1", backlog: int = 128) -> BindResult:
    """Attempt a single bind of *host*:*port*.

    Address-in-use is returned as a ``PortUnavailable`` value. Any other
    socket error is a real failure and propagates.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    if sys.platform == "win32":
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_EXCLUSIVEADDRUSE, 1)
    else:
        # Allows rebinding over TIME_WAIT; a live listener still conflicts.
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
        sock.listen(backlog)
    except OSError as exc:
        sock.close()
        # Windows reports an exclusively held port as EACCES.
        if exc.errno == errno.EADDRINUSE or (
            sys.platform == "win32" and exc.errno == errno.EACCES
        ):
            return PortUnavailable(host=host, port=port, reason=exc.strerror or str(exc))
        raise
    bound_port = sock.getsockname()[1]
    return OwnerListener(sock=sock, host=host, port=bound_port)


def negotiate_role(port: int, host: str = "127.0.0.1") -> RoleDecision:
    """Decide OWNER or CLIENT for this process."""
    result = try_bind_owner(port, host)
    if isinstance(result, OwnerListener):
        logger.info("Bound %s:%d; acting as diagram server owner", result.host, result.port)
        return RoleDecision(role=Role.OWNER, port=result.port, listener=result)
    logger.info(
        "Port %d unavailable (%s); publishing through the existing owner",
        result.port, result.reason,
    )
    return RoleDecision(role=Role.CLIENT, port=result.port)


def build_uvicorn_server(app: ASGIApp, log_level: str = "warning") -> uvicorn.Server:
    config = uvicorn.Config(app, log_level=log_level, lifespan="off", access_log=False)
    return uvicorn.Server(config)


async def serve_owner(server: uvicorn.Server, listener: OwnerListener) -> None:
    """Run *server* on the already-bound socket until it is told to exit."""
    await server.serve(sockets=[listener.sock])
