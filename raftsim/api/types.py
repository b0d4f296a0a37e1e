import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable


class RoleName(str, Enum):

    """ Follower role, as defined in raft protocol """
    follower = "FOLLOWER"

    """ Candidate role, as defined in raft protocol """
    candidate = "CANDIDATE"

    """ Leader role, as defined in raft protocol """
    leader = "LEADER"

    """ Started without a configuration, waiting for a leader to supply one """
    initializing = "INITIALIZING"

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class RaftPeer:
    id: str

    def __str__(self):
        return self.id


@dataclass(frozen=True)
class RaftConfiguration:
    """
    Ordered set of peers that make up the consensus group, plus a version
    number. Order is preserved exactly as supplied, duplicates are refused.
    """
    peers: tuple = field(default_factory=tuple)
    version: int = 0

    def __post_init__(self):
        peers = tuple(self.peers)
        ids = [p.id for p in peers]
        if len(ids) != len(set(ids)):
            raise ValueError(f"duplicate peer ids in configuration {ids}")
        object.__setattr__(self, 'peers', peers)

    @classmethod
    def from_ids(cls, ids: Iterable[str], version: int = 0):
        return cls(tuple(RaftPeer(pid) for pid in ids), version)

    def get_peer_ids(self) -> list[str]:
        return [p.id for p in self.peers]

    def contains(self, peer_id: str) -> bool:
        for peer in self.peers:
            if peer.id == peer_id:
                return True
        return False

    def size(self) -> int:
        return len(self.peers)

    def to_json(self) -> str:
        return json.dumps(dict(peers=self.get_peer_ids(), version=self.version))

    @classmethod
    def from_json(cls, data: str):
        jdict = json.loads(data)
        return cls.from_ids(jdict['peers'], jdict['version'])

    def __str__(self):
        return f"{self.get_peer_ids()}, version:{self.version}"


@dataclass
class ClusterSettings:
    """
    Timing and batching controls shared by every server in a cluster. All
    times are float seconds.

    Args:
        heartbeat_period:
            Leader sends append_entries to every follower this often
        election_timeout_min:
            Lower bound of the randomized wait for leader contact before
            a follower starts an election
        election_timeout_max:
            Upper bound of the same randomized wait
        max_entries_per_message:
            Maximum log records carried by a single append_entries message
        rpc_timeout:
            How long a client waits for a reply before trying another server
    """
    heartbeat_period: float = field(default=0.01)
    election_timeout_min: float = field(default=0.150)
    election_timeout_max: float = field(default=0.300)
    max_entries_per_message: int = field(default=20)
    rpc_timeout: float = field(default=0.3)

