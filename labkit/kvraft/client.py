"""Client for the replicated key/value service."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence

from labkit.labrpc import ClientEnd, RpcError

__all__ = [
    "Err",
    "PutAppendArgs",
    "PutAppendReply",
    "GetArgs",
    "GetReply",
    "Clerk",
    "nrand",
]

log = logging.getLogger(__name__)


class Err(IntEnum):
    OK = 0
    ERR_NO_KEY = 1
    ERR_WRONG_LEADER = 2
    ERR_TIMEOUT = 3


@dataclass
class PutAppendArgs:
    key: str = ""
    value: str = ""
    op: str = ""  # "Put" or "Append"
    client_id: int = 0
    request_id: int = 0


@dataclass
class PutAppendReply:
    err: Err = Err.OK


@dataclass
class GetArgs:
    key: str = ""
    client_id: int = 0
    request_id: int = 0


@dataclass
class GetReply:
    err: Err = Err.OK
    value: str = ""


def nrand() -> int:
    """A random non-negative integer below 2**62."""
    return secrets.randbelow(1 << 62)


_RETRY = (Err.ERR_TIMEOUT, Err.ERR_WRONG_LEADER)


class Clerk:
    """Sends requests to the servers, retrying until one of them succeeds."""

    def __init__(self, servers: Sequence[ClientEnd]) -> None:
        if not servers:
            raise ValueError("a clerk needs at least one server")
        self.servers = list(servers)
        self.last_leader = 0
        self.client_id = nrand()
        self.next_request_id = 0

    def _take_request_id(self) -> int:
        request_id = self.next_request_id
        self.next_request_id += 1
        return request_id

    def _call_until_success(self, method: str, args: object) -> object:
        # Start with the server that answered last time; try each in turn.
        server_id = self.last_leader
        while True:
            try:
                reply = self.servers[server_id].call(method, args)
            except RpcError:
                log.debug("client[%d]: %s %r to server[%d] failed", self.client_id, method, args, server_id)
            else:
                if reply.err not in _RETRY:
                    self.last_leader = server_id
                    return reply
                log.debug("client[%d]: %s %r to server[%d]: %r", self.client_id, method, args, server_id, reply)
            server_id = (server_id + 1) % len(self.servers)

    def get(self, key: str) -> str:
        """Fetch the current value for a key; "" if it does not exist.

        Keeps trying forever in the face of all other errors.
        """
        args = GetArgs(key=key, client_id=self.client_id, request_id=self._take_request_id())
        reply = self._call_until_success("KVServer.Get", args)
        if reply.err == Err.ERR_NO_KEY:
            return ""
        return reply.value

    def put_append(self, key: str, value: str, op: str) -> None:
        args = PutAppendArgs(
            key=key,
            value=value,
            op=op,
            client_id=self.client_id,
            request_id=self._take_request_id(),
        )
        self._call_until_success("KVServer.PutAppend", args)

    def put(self, key: str, value: str) -> None:
        self.put_append(key, value, "Put")

    def append(self, key: str, value: str) -> None:
        self.put_append(key, value, "Append")