"""A simulated RPC network for testing distributed services in one process.

The network can lose requests, lose replies, delay messages and disconnect
particular client end-points. Arguments and replies are serialized with
:mod:`labkit.labgob`, so an RPC never shares object references between caller
and handler.

Typical use::

    net = Network()
    end = net.make_end("end1")            # a client end-point
    server = Server()
    server.add_service(Service(handler_object))
    net.add_server("server1", server)
    net.connect("end1", "server1")
    net.enable("end1", True)
    reply = end.call("HandlerClass.method", args)

A handler method takes the decoded arguments and returns the reply.
:meth:`ClientEnd.call` raises :class:`RpcError` when no reply arrives, because
the network lost it or the server is down.
"""

from __future__ import annotations

import inspect
import io
import random
import threading
import time
from typing import Any, Callable, Hashable, Optional

from labkit.labgob import LabDecoder, LabEncoder

__all__ = ["RpcError", "ClientEnd", "Network", "Server", "Service"]

_POLL_INTERVAL = 0.1


class RpcError(Exception):
    """No reply was received: the request or reply was lost, or the server is gone."""


def _encode(value: Any) -> bytes:
    buffer = io.BytesIO()
    LabEncoder(buffer).encode(value)
    return buffer.getvalue()


def _decode(data: bytes) -> Any:
    return LabDecoder(io.BytesIO(data)).decode(object)


class Service:
    """An object whose public methods can be called over RPC.

    The service is named after the receiver's class unless ``name`` is given.
    """

    def __init__(self, receiver: Any, name: Optional[str] = None) -> None:
        cls = type(receiver)
        self.name = name or cls.__name__
        self._methods: dict[str, Callable[[Any], Any]] = {
            attr: getattr(receiver, attr)
            for attr in dir(cls)
            if not attr.startswith("_")
            and inspect.isfunction(inspect.getattr_static(cls, attr))
        }

    @property
    def methods(self) -> list[str]:
        return sorted(self._methods)

    def dispatch(self, method_name: str, args_data: bytes) -> bytes:
        handler = self._methods.get(method_name)
        if handler is None:
            raise LookupError(
                f"unknown method {method_name} in {self.name}; "
                f"expecting one of {self.methods}"
            )
        reply = handler(_decode(args_data))
        return _encode(reply)


class Server:
    """A collection of services sharing one RPC end-point."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._services: dict[str, Service] = {}
        self._count = 0

    def add_service(self, service: Service) -> None:
        with self._lock:
            self._services[service.name] = service

    def dispatch(self, svc_meth: str, args_data: bytes) -> bytes:
        with self._lock:
            self._count += 1
            service_name, _, method_name = svc_meth.rpartition(".")
            service = self._services.get(service_name)
            choices = sorted(self._services)
        if service is None:
            raise LookupError(
                f"unknown service {service_name} in {svc_meth}; expecting one of {choices}"
            )
        return service.dispatch(method_name, args_data)

    def get_count(self) -> int:
        """Number of incoming RPCs this server has handled."""
        with self._lock:
            return self._count


class _Outcome:
    """The result of running a handler in its own thread."""

    def __init__(self) -> None:
        self.finished = threading.Event()
        self.reply: bytes = b""
        self.error: Optional[BaseException] = None


class ClientEnd:
    """A client end-point that talks to one server through the network."""

    def __init__(self, network: Network, endname: Hashable) -> None:
        self._network = network
        self.endname = endname

    def call(self, svc_meth: str, args: Any) -> Any:
        """Send an RPC such as ``"Raft.AppendEntries"`` and return the reply.

        Raises RpcError if no reply was received.
        """
        reply_data = self._network._process(self.endname, svc_meth, _encode(args))
        return _decode(reply_data)

    def __repr__(self) -> str:
        return f"ClientEnd({self.endname!r})"


class Network:
    """Holds client end-points, servers and the connections between them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._reliable = True
        self._long_delays = False
        self._long_reordering = False
        self._ends: dict[Hashable, ClientEnd] = {}
        self._enabled: dict[Hashable, bool] = {}
        self._servers: dict[Hashable, Optional[Server]] = {}
        self._connections: dict[Hashable, Optional[Hashable]] = {}
        self._done = threading.Event()
        self._count = 0
        self._bytes = 0

    def __enter__(self) -> Network:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        """Shut the network down; later calls fail."""
        self._done.set()

    def reliable(self, yes: bool) -> None:
        with self._lock:
            self._reliable = yes

    def long_reordering(self, yes: bool) -> None:
        with self._lock:
            self._long_reordering = yes

    def long_delays(self, yes: bool) -> None:
        with self._lock:
            self._long_delays = yes

    def make_end(self, endname: Hashable) -> ClientEnd:
        with self._lock:
            if endname in self._ends:
                raise ValueError(f"make_end: {endname!r} already exists")
            end = ClientEnd(self, endname)
            self._ends[endname] = end
            self._enabled[endname] = False
            self._connections[endname] = None
            return end

    def add_server(self, servername: Hashable, server: Server) -> None:
        with self._lock:
            self._servers[servername] = server

    def delete_server(self, servername: Hashable) -> None:
        with self._lock:
            self._servers[servername] = None

    def connect(self, endname: Hashable, servername: Hashable) -> None:
        """Connect a client end-point to a server."""
        with self._lock:
            self._connections[endname] = servername

    def enable(self, endname: Hashable, enabled: bool) -> None:
        with self._lock:
            self._enabled[endname] = enabled

    def get_count(self, servername: Hashable) -> int:
        """A server's count of incoming RPCs."""
        with self._lock:
            server = self._servers.get(servername)
        if server is None:
            raise KeyError(servername)
        return server.get_count()

    def get_total_count(self) -> int:
        with self._lock:
            return self._count

    def get_total_bytes(self) -> int:
        with self._lock:
            return self._bytes

    # ------------------------------------------------------------ internals

    def _is_server_dead(self, endname: Hashable, servername: Hashable, server: Server) -> bool:
        with self._lock:
            return not self._enabled.get(endname, False) or self._servers.get(servername) is not server

    def _process(self, endname: Hashable, svc_meth: str, args_data: bytes) -> bytes:
        with self._lock:
            if self._done.is_set():
                raise RpcError("network has been cleaned up")
            self._count += 1
            self._bytes += len(args_data)
            enabled = self._enabled.get(endname, False)
            servername = self._connections.get(endname)
            server = self._servers.get(servername) if servername is not None else None
            reliable = self._reliable
            long_reordering = self._long_reordering
            long_delays = self._long_delays

        if not (enabled and servername is not None and server is not None):
            # Simulate no reply and an eventual timeout.
            ms = random.randrange(7000) if long_delays else random.randrange(100)
            time.sleep(ms / 1000)
            raise RpcError(f"no reply for {svc_meth} on {endname!r}")

        if not reliable:
            time.sleep(random.randrange(27) / 1000)
            if random.randrange(1000) < 100:
                raise RpcError(f"request {svc_meth} dropped")

        outcome = _Outcome()

        def run() -> None:
            try:
                outcome.reply = server.dispatch(svc_meth, args_data)
            except BaseException as exc:  # handed back to the caller
                outcome.error = exc
            finally:
                outcome.finished.set()

        threading.Thread(target=run, daemon=True).start()

        while not outcome.finished.wait(_POLL_INTERVAL):
            if self._is_server_dead(endname, servername, server):
                raise RpcError(f"server {servername!r} went away during {svc_meth}")

        # Never reply once the server has been deleted, so a caller cannot see
        # success for an update persisted by a superseded server instance.
        if self._is_server_dead(endname, servername, server):
            raise RpcError(f"server {servername!r} went away during {svc_meth}")
        if outcome.error is not None:
            raise outcome.error
        if not reliable and random.randrange(1000) < 100:
            raise RpcError(f"reply to {svc_meth} dropped")
        if long_reordering and random.randrange(900) < 600:
            ms = 200 + random.randrange(1 + random.randrange(2000))
            time.sleep(ms / 1000)
        with self._lock:
            self._bytes += len(outcome.reply)
        return outcome.reply