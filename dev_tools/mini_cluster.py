import asyncio
import logging
import random
from typing import Iterable, List, Optional

import pytest

from dev_tools.leader_enforcer import LeaderEnforcer
from dev_tools.peer_changes import PeerChanges, compute_addition, compute_removal, init_configuration
from dev_tools.server_registry import ServerRegistry
from raftsim.api.log_api import LogRec
from raftsim.api.types import ClusterSettings, RaftConfiguration, RaftPeer
from raftsim.client.raft_client import RaftClient
from raftsim.server.raft_server import RaftServer
from raftsim.server.server_state import ServerState
from raftsim.simulation.simulated_rpc import SimulatedRpc


class MiniRaftCluster:
    """
    A cluster of RaftServers in one process, talking over two shared
    SimulatedRpc instances, one for server to server traffic and one for
    client to server traffic. Tests use it to shape membership, push a
    particular server into leadership, replace a server's log, and look at
    the outcome.

    Peer ids are s0, s1, ... in order of creation and are never reused, even
    after a peer is removed from the configuration.

    Args:
        num_servers:
            Size of the initial configuration
        settings:
            Timing settings shared by every server
        seed:
            Seeds every server's election timeout generator, same seed
            gives the same timeouts
        enforce_margin:
            Seconds added to the maximum election timeout for each wait in
            try_enforce_leader
    """

    def __init__(self, num_servers: int, settings: Optional[ClusterSettings] = None,
                 seed: int = 0, enforce_margin: float = 0.1):
        assert num_servers >= 1, "cluster needs at least one server"
        self.settings = settings if settings is not None else ClusterSettings()
        self.seed = seed
        self.logger = logging.getLogger("MiniRaftCluster")
        self.conf = init_configuration(num_servers)
        self.next_peer_number = num_servers
        self.server_count = 0
        self.server_rpc = SimulatedRpc(self.conf.peers)
        self.client_rpc = SimulatedRpc(self.conf.peers)
        self.registry = ServerRegistry()
        self.enforcer = LeaderEnforcer(self, margin=enforce_margin)
        for peer in self.conf.peers:
            self.registry.add(self.new_server(peer.id))

    def new_server(self, server_id: str, state: Optional[ServerState] = None) -> RaftServer:
        # every instance gets its own generator, a replacement does not
        # repeat its predecessor's timeouts
        rng = random.Random(f"{self.seed}:{server_id}:{self.server_count}")
        self.server_count += 1
        return RaftServer(server_id, self.server_rpc, self.client_rpc,
                          settings=self.settings, state=state, rng=rng)

    async def start(self):
        for server in self.registry:
            if not server.is_running():
                await server.start(self.conf)

    async def start_server(self, server_id: str, conf: Optional[RaftConfiguration] = None):
        await self.registry.get(server_id).start(conf)

    async def kill_server(self, server_id: str):
        await self.registry.get(server_id).kill()

    async def add_new_peers(self, number: int, start_new_peer: bool) -> PeerChanges:
        new_peers = []
        for i in range(number):
            new_peers.append(RaftPeer(f"s{self.next_peer_number}"))
            self.next_peer_number += 1
        # the transports have to know a peer before anything can send to it
        self.server_rpc.add_peers(new_peers)
        self.client_rpc.add_peers(new_peers)
        for peer in new_peers:
            server = self.new_server(peer.id)
            self.registry.add(server)
            if start_new_peer:
                # no configuration, it has to learn one from the leader
                await server.start(None)
        self.conf, changes = compute_addition(self.conf, new_peers)
        self.logger.info("added peers %s, configuration now %s",
                         [p.id for p in new_peers], self.conf)
        return changes

    def remove_peers(self, number: int, remove_leader: bool, excluded: Iterable = ()) -> PeerChanges:
        """
        Works out which peers to drop and updates the cluster configuration.
        The servers themselves are left alone, tests usually send the new
        configuration through a client and kill the removed servers later.
        """
        leader_id = None
        if remove_leader:
            leader = self.get_leader()
            assert leader is not None, "no leader to remove"
            leader_id = leader.id
        follower_ids = [server.id for server in self.get_followers()]
        self.conf, changes = compute_removal(self.conf, number, leader_id, follower_ids, excluded)
        self.logger.info("removing peers %s, configuration now %s",
                         [p.id for p in changes.removed_peers], self.conf)
        return changes

    async def enforce_server_log(self, server_id: str, entries: List[LogRec], conf: RaftConfiguration):
        """
        Replaces a server with a new instance for the same id whose log holds
        exactly the supplied entries, then starts it with conf. The old
        instance is killed before the new one is installed.
        """
        server = self.registry.get(server_id)
        new_state = await ServerState.build_server_state(server.get_state(), entries)
        await server.kill()
        new_server = self.new_server(server_id, state=new_state)
        self.registry.replace(new_server)
        self.logger.info("replaced %s with %d log records", server_id, len(entries))
        await new_server.start(conf)
        return new_server

    def get_leader(self) -> Optional[RaftServer]:
        leaders = [server for server in self.registry.running() if server.is_leader()]
        if len(leaders) == 0:
            return None
        assert len(leaders) == 1, f"more than one leader: {[str(s) for s in leaders]}"
        return leaders[0]

    def get_followers(self) -> List[RaftServer]:
        return [server for server in self.registry.running() if server.is_follower()]

    def get_servers(self) -> List[RaftServer]:
        return self.registry.values()

    def get_raft_server(self, server_id: str) -> RaftServer:
        return self.registry.get(server_id)

    def get_server_rpc(self) -> SimulatedRpc:
        return self.server_rpc

    def get_client_rpc(self) -> SimulatedRpc:
        return self.client_rpc

    def get_configuration(self) -> RaftConfiguration:
        return self.conf

    def create_client(self, client_id: str, leader_id: Optional[str] = None) -> RaftClient:
        return RaftClient(client_id, self.conf.peers, self.client_rpc, leader_id=leader_id,
                          rpc_timeout=self.settings.rpc_timeout)

    async def try_enforce_leader(self, leader_id: str) -> bool:
        return await self.enforcer.try_enforce_leader(leader_id)

    async def wait_for_leader(self, timeout: float = 2.0, period: float = 0.01) -> Optional[RaftServer]:
        loop = asyncio.get_running_loop()
        end_time = loop.time() + timeout
        while True:
            leader = self.get_leader()
            if leader is not None or loop.time() >= end_time:
                return leader
            await asyncio.sleep(period)

    async def shutdown(self):
        self.logger.info("shutting down cluster")
        for server in self.registry.running():
            await server.kill()

    def print_servers(self) -> str:
        lines = [f"#servers = {len(self.registry)}"]
        for server in self.registry:
            lines.append(f"  {server}")
        return "\n" + "\n".join(lines) + "\n"

    def print_all_logs(self) -> str:
        lines = [f"#servers = {len(self.registry)}"]
        for server in self.registry:
            lines.append(f"  {server}")
            lines.append(f"    {server.get_state().get_log().get_entry_string()}")
        return "\n" + "\n".join(lines) + "\n"


@pytest.fixture
async def cluster_maker():
    the_cluster = None

    def make_cluster(*args, **kwargs):
        nonlocal the_cluster
        the_cluster = MiniRaftCluster(*args, **kwargs)
        return the_cluster
    yield make_cluster
    if the_cluster is not None:
        await the_cluster.shutdown()
