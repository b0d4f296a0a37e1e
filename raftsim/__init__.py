"""
RaftSim - a compact Raft consensus engine with an in process simulated
transport, built for deterministic cluster tests.

Key Components:
- RaftServer: one engine instance bound to a peer id
- RaftClient: sends commands and configuration changes, following leader hints
- SimulatedRpc: per peer message queues with delay and open/closed controls
- VirtualTimeEventLoop: asyncio loop whose clock jumps to the next timer
- LogAPI/MemoryLog: log storage interface and its in memory implementation

Example usage:
    from raftsim import RaftServer, SimulatedRpc, RaftConfiguration

    conf = RaftConfiguration.from_ids(["s0", "s1", "s2"])
    server_rpc = SimulatedRpc(conf.peers)
    client_rpc = SimulatedRpc(conf.peers)
    servers = [RaftServer(pid, server_rpc, client_rpc) for pid in conf.get_peer_ids()]
    for server in servers:
        await server.start(conf)
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .api.types import RoleName, RaftPeer, RaftConfiguration, ClusterSettings
from .api.log_api import LogAPI, LogRec, RecordCode
from .log.memory_log import MemoryLog
from .server.server_state import ServerState
from .server.raft_server import RaftServer
from .client.raft_client import RaftClient, RaftClientError
from .simulation.simulated_rpc import SimulatedRpc
from .simulation.virtual_time import VirtualTimeEventLoop, VirtualTimeLoopPolicy, run_in_virtual_time

__all__ = [
    "RaftServer",
    "ServerState",
    "RaftClient",
    "RaftClientError",
    "SimulatedRpc",
    "VirtualTimeEventLoop",
    "VirtualTimeLoopPolicy",
    "run_in_virtual_time",
    "LogAPI",
    "LogRec",
    "RecordCode",
    "MemoryLog",
    "RoleName",
    "RaftPeer",
    "RaftConfiguration",
    "ClusterSettings",
    "__version__",
    "__license__",
]
