import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional


@dataclass
class Envelope:
    receiver: str
    payload: Any
    reply_future: Optional[asyncio.Future] = field(default=None, repr=False)


class PeerQueue:
    """
    Inbound queue for one peer id. Closing the queue holds messages back,
    the take delay slows each take, neither one drops anything.

    The take delay is the shortest time from the start of a take to its
    delivery, so a receiver that takes again as soon as it has handled a
    message gets at most one message per delay. Changing the delay wakes
    any take that is waiting out the old one.
    """

    def __init__(self, peer_id):
        self.peer_id = peer_id
        self.messages = deque()
        self.has_messages = asyncio.Event()
        self.open_event = asyncio.Event()
        self.open_event.set()
        self.delay_changed = asyncio.Event()
        self.take_delay = 0.0

    def put(self, envelope):
        self.messages.append(envelope)
        self.has_messages.set()

    def set_take_delay(self, delay):
        self.take_delay = delay
        # wake the current waiters only
        self.delay_changed.set()
        self.delay_changed.clear()

    async def wait_for_delay_change(self, seconds) -> bool:
        try:
            await asyncio.wait_for(self.delay_changed.wait(), seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def take(self):
        loop = asyncio.get_running_loop()
        started = loop.time()
        while True:
            await self.open_event.wait()
            await self.has_messages.wait()
            remaining = started + self.take_delay - loop.time()
            if remaining > 0 and await self.wait_for_delay_change(remaining):
                continue
            # gate may have closed or another take may have emptied the queue
            # while we waited, check again before popping
            if not self.open_event.is_set() or not self.messages:
                continue
            envelope = self.messages.popleft()
            if not self.messages:
                self.has_messages.clear()
            return envelope

    def __len__(self):
        return len(self.messages)


class SimulatedRpc:
    """
    In-process stand in for the network. One instance carries server to
    server traffic, another carries client to server traffic; both are
    built over the same peer set. Queues are keyed by peer id, not by
    server instance, so a replaced server picks up whatever was queued
    for its predecessor.
    """

    def __init__(self, peers: Iterable = ()):
        self.queues = {}
        self.logger = logging.getLogger("SimulatedRpc")
        self.add_peers(peers)

    def add_peers(self, peers: Iterable):
        for peer in peers:
            peer_id = getattr(peer, 'id', peer)
            if peer_id not in self.queues:
                self.queues[peer_id] = PeerQueue(peer_id)

    def get_peer_ids(self):
        return list(self.queues.keys())

    def post(self, receiver, payload):
        """ One way delivery, no reply expected. """
        queue = self.queues[receiver]
        self.logger.debug("queueing message for %s, %d already waiting", receiver, len(queue))
        queue.put(Envelope(receiver, payload))

    async def send_request(self, receiver, payload):
        """ Queues the request and waits for the receiver to call send_reply. """
        queue = self.queues[receiver]
        future = asyncio.get_running_loop().create_future()
        queue.put(Envelope(receiver, payload, reply_future=future))
        return await future

    def send_reply(self, envelope: Envelope, payload):
        if envelope.reply_future is None:
            raise Exception(f"message to {envelope.receiver} was not a request, cannot reply")
        # requester may have given up on the reply
        if not envelope.reply_future.done():
            envelope.reply_future.set_result(payload)

    async def take_message(self, peer_id) -> Envelope:
        return await self.queues[peer_id].take()

    def set_take_request_delay(self, peer_id, delay: float):
        self.logger.debug("setting take delay for %s to %f", peer_id, delay)
        self.queues[peer_id].set_take_delay(delay)

    def set_open_for_message(self, peer_id, is_open: bool):
        self.logger.debug("setting %s open for messages to %s", peer_id, is_open)
        queue = self.queues[peer_id]
        if is_open:
            queue.open_event.set()
        else:
            queue.open_event.clear()

    def is_open_for_message(self, peer_id) -> bool:
        return self.queues[peer_id].open_event.is_set()

    def get_take_request_delay(self, peer_id) -> float:
        return self.queues[peer_id].take_delay

    def pending_count(self, peer_id) -> int:
        return len(self.queues[peer_id])
