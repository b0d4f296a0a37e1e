import asyncio
import logging
import random
import traceback
from typing import Optional

from raftsim.api.types import ClusterSettings, RaftConfiguration, RoleName
from raftsim.messages.client_request import ClientReplyMessage
from raftsim.messages.message_codec import MessageCodec
from raftsim.roles.candidate import Candidate
from raftsim.roles.follower import Follower
from raftsim.roles.initializing import Initializing
from raftsim.roles.leader import Leader
from raftsim.server.server_state import ServerState
from raftsim.simulation.simulated_rpc import SimulatedRpc


class RaftServer:
    """
    One consensus engine instance bound to one peer id. It takes raft
    messages from the server transport and client requests from the client
    transport, each in its own task, and hands them to the current role.

    A killed server can be started again, it keeps its state (the log is the
    "persistent" part), but the cluster harness normally replaces a killed
    server with a new instance instead.
    """

    def __init__(self, server_id: str, server_rpc: SimulatedRpc, client_rpc: SimulatedRpc,
                 settings: Optional[ClusterSettings] = None, state: Optional[ServerState] = None,
                 rng: Optional[random.Random] = None):
        self.id = server_id
        self.server_rpc = server_rpc
        self.client_rpc = client_rpc
        self.settings = settings if settings is not None else ClusterSettings()
        self.state = state if state is not None else ServerState(server_id)
        self.rng = rng if rng is not None else random.Random()
        self.logger = logging.getLogger("RaftServer")
        self.role = None
        self.running = False
        self.tasks = []
        self.background_tasks = set()
        self.role_async_handle = None
        self.role_run_after_target = None
        self.message_problem_history = []

    async def start(self, conf: Optional[RaftConfiguration] = None):
        """
        Starts the server. With a configuration it starts as a Follower of
        that configuration (unless its log holds a newer one), without one
        it uses whatever configuration its state already has, and if there
        is none it starts in the Initializing role and waits for a leader.
        """
        assert not self.running, f"server {self.id} is already running"
        if conf is not None:
            self.state.set_start_conf(conf)
            await self.state.refresh_conf()
        self.running = True
        if self.state.get_conf() is None:
            self.role = Initializing(self)
        else:
            self.role = Follower(self)
        loop = asyncio.get_running_loop()
        self.tasks = [loop.create_task(self.server_loop()),
                      loop.create_task(self.client_loop())]
        await self.role.start()
        self.logger.info("%s started as %s with configuration %s", self.id, self.role,
                         self.state.get_conf())

    async def kill(self):
        if not self.running:
            return
        self.logger.info("%s killed while %s", self.id, self.role)
        self.running = False
        await self.stop_role()
        current = asyncio.current_task()
        tasks = [t for t in self.tasks + list(self.background_tasks) if t is not current]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.tasks = []
        self.background_tasks = set()

    def is_running(self) -> bool:
        return self.running

    def get_role_name(self) -> Optional[RoleName]:
        if self.role is None:
            return None
        return self.role.role_name

    def is_leader(self) -> bool:
        return self.get_role_name() == RoleName.leader

    def is_follower(self) -> bool:
        return self.get_role_name() == RoleName.follower

    def get_state(self) -> ServerState:
        return self.state

    # Called by Role
    def get_log(self):
        return self.state.get_log()

    # Called by Role
    def now(self) -> float:
        return asyncio.get_running_loop().time()

    # Called by Role
    def get_election_timeout(self) -> float:
        return self.rng.uniform(self.settings.election_timeout_min, self.settings.election_timeout_max)

    # Called by Role
    def get_heartbeat_period(self) -> float:
        return self.settings.heartbeat_period

    # Called by Role
    def get_max_entries_per_message(self) -> int:
        return self.settings.max_entries_per_message

    # Called by Role
    async def set_term(self, term):
        if term != await self.get_log().get_term():
            self.logger.debug("%s moving to term %d", self.id, term)
            self.state.leader_id = None
        await self.get_log().set_term(term)

    # Called by Role
    async def set_leader_id(self, leader_id):
        self.state.leader_id = leader_id

    # Called by Role
    async def change_to_follower(self, message=None):
        self.logger.warning("%s demoting from %s to follower", self.id, self.role)
        await self.stop_role()
        self.role = Follower(self)
        await self.role.start()
        if message:
            self.logger.debug('%s reprocessing message as follower %s', self.id, message)
            return await self.role.on_message(message)
        return None

    # Called by Role
    async def start_campaign(self):
        await self.stop_role()
        self.role = Candidate(self)
        self.logger.warning("%s starting campaign from term %d", self.id, await self.get_log().get_term())
        await self.role.start()

    # Called by Role
    async def win_vote(self, new_term):
        await self.stop_role()
        self.role = Leader(self, new_term)
        await self.set_leader_id(self.id)
        self.logger.warning("%s promoting to leader for term %s", self.id, new_term)
        await self.role.start()

    async def stop_role(self):
        if self.role is not None:
            await self.role.stop()
        await self.cancel_role_run_after()

    # Called by Role. Timers live here rather than in the role so that a
    # timer set by a role that has since been replaced never fires into it.
    async def role_run_after(self, delay, target):
        delay += 0.0
        if self.role_async_handle:
            self.role_async_handle.cancel()
        self.logger.debug('%s setting run after target to %s after %0.8f', self.id, target, delay)
        self.role_run_after_target = target
        loop = asyncio.get_running_loop()
        self.role_async_handle = loop.call_later(delay, self.launch_role_after, target)

    def launch_role_after(self, target):
        self.role_async_handle = None
        task = asyncio.get_running_loop().create_task(self.role_after_runner(target))
        self.background_tasks.add(task)
        task.add_done_callback(self.background_tasks.discard)

    async def role_after_runner(self, target):
        if not self.running or self.role.stopped:
            return
        if getattr(target, '__self__', None) is not self.role:
            return
        try:
            await target()
        except Exception:
            error = traceback.format_exc()
            self.logger.error(error)
            self.record_message_problem(None, error)

    # Called by Role
    async def cancel_role_run_after(self):
        if self.role_async_handle:
            self.role_async_handle.cancel()
            self.role_async_handle = None
        self.role_run_after_target = None

    # Called by Role
    async def send_message(self, message):
        self.logger.debug("%s sending message type %s to %s", self.id, message.get_code(), message.receiver)
        self.server_rpc.post(message.receiver, MessageCodec.encode_message(message))

    # Called by Role
    async def send_client_reply(self, envelope, reply):
        self.client_rpc.send_reply(envelope, MessageCodec.encode_message(reply))

    async def server_loop(self):
        while self.running:
            envelope = await self.server_rpc.take_message(self.id)
            await self.on_message(envelope.payload)

    async def client_loop(self):
        while self.running:
            envelope = await self.client_rpc.take_message(self.id)
            await self.on_client_request(envelope)

    async def on_message(self, data):
        try:
            message = MessageCodec.decode_message(data)
        except Exception:
            error = traceback.format_exc()
            self.logger.error(error)
            self.record_message_problem(data, error)
            return None
        try:
            self.logger.debug("%s handling message %s", self.id, message)
            return await self.role.on_message(message)
        except Exception:
            error = traceback.format_exc()
            self.logger.error(error)
            self.record_message_problem(message, error)
        return None

    async def on_client_request(self, envelope):
        try:
            message = MessageCodec.decode_message(envelope.payload)
        except Exception:
            error = traceback.format_exc()
            self.logger.error(error)
            self.record_message_problem(envelope.payload, error)
            return
        try:
            if self.is_leader():
                await self.role.on_client_request(envelope, message)
                return
            reply = ClientReplyMessage(sender=self.id, receiver=message.sender, success=False,
                                       leaderId=self.state.leader_id, error="NOT_LEADER")
            await self.send_client_reply(envelope, reply)
        except Exception:
            error = traceback.format_exc()
            self.logger.error(error)
            self.record_message_problem(message, error)
            reply = ClientReplyMessage(sender=self.id, receiver=message.sender, success=False,
                                       error="SERVER_ERROR")
            await self.send_client_reply(envelope, reply)

    def record_message_problem(self, message, problem):
        rec = dict(problem=problem, message=message)
        self.message_problem_history.append(rec)

    def get_message_problem_history(self, clear=False):
        res = self.message_problem_history
        if clear:
            self.message_problem_history = []
        return res

    def __str__(self):
        running = "running" if self.running else "stopped"
        return f"{self.id}:{self.get_role_name()}:{running}"
