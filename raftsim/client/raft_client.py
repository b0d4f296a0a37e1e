import asyncio
import logging
from typing import Iterable, Optional

from raftsim.messages.client_request import ClientReplyMessage, ClientRequestMessage, SetConfigurationMessage
from raftsim.messages.message_codec import MessageCodec
from raftsim.simulation.simulated_rpc import SimulatedRpc


class RaftClientError(Exception):
    pass


class RaftClient:
    """
    Sends commands and configuration changes to the cluster over the client
    transport. Requests go to the leader hint, or the first peer if there is
    none. A NOT_LEADER reply redirects to the leader it names, a timeout
    moves on to the next peer in the list.

    Args:
        client_id:
            Id used as the sender of requests
        peers:
            All the servers this client may talk to, RaftPeer objects or ids
        client_rpc:
            The client to server transport
        leader_id:
            Server to try first
        rpc_timeout:
            Seconds to wait for each reply
        max_attempts:
            Requests sent before giving up with RaftClientError
        retry_delay:
            Pause before trying again when nobody knows who the leader is
    """

    def __init__(self, client_id: str, peers: Iterable, client_rpc: SimulatedRpc,
                 leader_id: Optional[str] = None, rpc_timeout: float = 0.3,
                 max_attempts: int = 20, retry_delay: float = 0.05):
        self.client_id = client_id
        self.peer_ids = [getattr(peer, 'id', peer) for peer in peers]
        if len(self.peer_ids) == 0:
            raise ValueError("client needs at least one peer")
        self.client_rpc = client_rpc
        self.leader_id = leader_id
        self.rpc_timeout = rpc_timeout
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.logger = logging.getLogger("RaftClient")

    async def send(self, command: str) -> ClientReplyMessage:
        def build(target):
            return ClientRequestMessage(sender=self.client_id, receiver=target, command=command)
        return await self.send_with_retry(build)

    async def set_configuration(self, peers: Iterable, version: int = 0) -> ClientReplyMessage:
        ids = [getattr(peer, 'id', peer) for peer in peers]

        def build(target):
            return SetConfigurationMessage(sender=self.client_id, receiver=target,
                                           peers=ids, version=version)
        return await self.send_with_retry(build)

    def next_peer(self, target):
        if target not in self.peer_ids:
            return self.peer_ids[0]
        return self.peer_ids[(self.peer_ids.index(target) + 1) % len(self.peer_ids)]

    async def send_with_retry(self, build_message) -> ClientReplyMessage:
        target = self.leader_id if self.leader_id is not None else self.peer_ids[0]
        for attempt in range(self.max_attempts):
            message = build_message(target)
            self.logger.debug("%s attempt %d sending %s", self.client_id, attempt, message)
            try:
                data = await asyncio.wait_for(
                    self.client_rpc.send_request(target, MessageCodec.encode_message(message)),
                    self.rpc_timeout)
            except asyncio.TimeoutError:
                self.logger.info("%s timeout waiting for %s", self.client_id, target)
                target = self.next_peer(target)
                continue
            reply = MessageCodec.decode_message(data)
            if reply.not_leader:
                if reply.leaderId is not None and reply.leaderId != target:
                    self.logger.debug("%s redirected from %s to %s", self.client_id, target, reply.leaderId)
                    target = reply.leaderId
                else:
                    target = self.next_peer(target)
                    await asyncio.sleep(self.retry_delay)
                continue
            self.leader_id = target
            return reply
        raise RaftClientError(f"{self.client_id} got no leader reply after {self.max_attempts} attempts")
