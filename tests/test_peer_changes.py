#!/usr/bin/env python
import pytest

from raftsim.api.types import RaftConfiguration, RaftPeer
from dev_tools.peer_changes import compute_addition, compute_removal, init_configuration


def test_init_configuration():
    conf = init_configuration(4)
    assert conf.get_peer_ids() == ["s0", "s1", "s2", "s3"]
    assert conf.version == 0
    assert conf.size() == 4


def test_duplicate_ids_refused():
    with pytest.raises(ValueError):
        RaftConfiguration.from_ids(["s0", "s1", "s0"])


def test_configuration_json():
    conf = RaftConfiguration.from_ids(["s2", "s0"], 3)
    copy = RaftConfiguration.from_json(conf.to_json())
    # order matters
    assert copy == conf
    assert copy.get_peer_ids() == ["s2", "s0"]


def test_compute_addition():
    conf = RaftConfiguration.from_ids(["s0", "s1"], 2)
    new_conf, changes = compute_addition(conf, [RaftPeer("s2"), RaftPeer("s3")])
    # new peers first, then the old membership
    assert new_conf.get_peer_ids() == ["s2", "s3", "s0", "s1"]
    # version carried over, not incremented
    assert new_conf.version == 2
    assert [p.id for p in changes.all_peers_in_new_conf] == ["s2", "s3", "s0", "s1"]
    assert [p.id for p in changes.new_peers] == ["s2", "s3"]
    assert changes.removed_peers == ()


def test_compute_removal_with_leader():
    conf = init_configuration(5)
    new_conf, changes = compute_removal(conf, 3, "s2", ["s0", "s1", "s3", "s4"])
    assert [p.id for p in changes.removed_peers] == ["s2", "s0", "s1"]
    assert new_conf.get_peer_ids() == ["s3", "s4"]
    assert new_conf.version == 0
    assert changes.new_peers == ()
    assert changes.all_peers_in_new_conf == new_conf.peers


def test_compute_removal_skips_excluded():
    conf = RaftConfiguration.from_ids(["s0", "s1", "s2", "s3"], 7)
    new_conf, changes = compute_removal(conf, 2, None, ["s0", "s1", "s3"],
                                        excluded=[RaftPeer("s0"), "s3"])
    # only one follower left to pick after skipping the excluded ones
    assert [p.id for p in changes.removed_peers] == ["s1"]
    assert new_conf.get_peer_ids() == ["s0", "s2", "s3"]
    assert new_conf.version == 0


def test_compute_removal_excluded_leader():
    conf = init_configuration(3)
    with pytest.raises(AssertionError):
        compute_removal(conf, 1, "s0", ["s1", "s2"], excluded=[RaftPeer("s0")])
