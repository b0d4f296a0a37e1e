"""
Membership change computations used by the cluster harness. These are pure
functions over configurations, the harness applies the results.
"""
from dataclasses import dataclass, field
from typing import Iterable, Optional

from raftsim.api.types import RaftConfiguration, RaftPeer


@dataclass(frozen=True)
class PeerChanges:
    all_peers_in_new_conf: tuple = field(default_factory=tuple)
    new_peers: tuple = field(default_factory=tuple)
    removed_peers: tuple = field(default_factory=tuple)


def init_configuration(num: int) -> RaftConfiguration:
    return RaftConfiguration.from_ids([f"s{i}" for i in range(num)], 0)


def compute_addition(conf: RaftConfiguration, new_peers: Iterable[RaftPeer]):
    """
    The new peers go in front of the existing ones. The version is carried
    over unchanged from the old configuration.
    """
    new_peers = tuple(new_peers)
    all_peers = new_peers + tuple(conf.peers)
    new_conf = RaftConfiguration(all_peers, conf.version)
    return new_conf, PeerChanges(all_peers, new_peers, ())


def compute_removal(conf: RaftConfiguration, count: int, leader_id: Optional[str],
                    follower_ids: Iterable[str], excluded: Iterable = ()):
    """
    Picks the peers to remove: the leader first when leader_id is given,
    then followers in the order supplied, skipping excluded ones, until
    count peers have been picked. The new configuration keeps the order of
    the remaining peers and has version 0.
    """
    excluded_ids = set(getattr(peer, 'id', peer) for peer in excluded)
    removed = []
    if leader_id is not None:
        assert leader_id not in excluded_ids, f"leader {leader_id} cannot be both removed and excluded"
        removed.append(leader_id)
    for follower_id in follower_ids:
        if len(removed) >= count:
            break
        if follower_id in excluded_ids or follower_id in removed:
            continue
        removed.append(follower_id)
    remaining = tuple(peer for peer in conf.peers if peer.id not in removed)
    removed_peers = tuple(RaftPeer(peer_id) for peer_id in removed)
    new_conf = RaftConfiguration(remaining, 0)
    return new_conf, PeerChanges(remaining, (), removed_peers)
