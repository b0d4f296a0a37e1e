from typing import Dict, Iterator, List

from raftsim.server.raft_server import RaftServer


class ServerRegistry:
    """
    Insertion ordered map of peer id to server instance, owned by the
    cluster. Servers are only ever added or replaced in place
    here, and each of those is a single dict update so a query never sees
    a half replaced entry. Unknown ids raise KeyError.
    """

    def __init__(self):
        self.servers: Dict[str, RaftServer] = {}

    def add(self, server: RaftServer):
        assert server.id not in self.servers, f"server {server.id} already registered"
        self.servers[server.id] = server

    def replace(self, server: RaftServer) -> RaftServer:
        """ Installs server in place of the existing one with the same id,
        keeping its position, and returns the old one. """
        old = self.servers[server.id]
        assert not old.is_running(), f"server {server.id} must be killed before it is replaced"
        self.servers[server.id] = server
        return old

    def get(self, server_id: str) -> RaftServer:
        return self.servers[server_id]

    def ids(self) -> List[str]:
        return list(self.servers.keys())

    def values(self) -> List[RaftServer]:
        return list(self.servers.values())

    def running(self) -> List[RaftServer]:
        return [server for server in self.servers.values() if server.is_running()]

    def __contains__(self, server_id):
        return server_id in self.servers

    def __len__(self):
        return len(self.servers)

    def __iter__(self) -> Iterator[RaftServer]:
        return iter(self.values())
