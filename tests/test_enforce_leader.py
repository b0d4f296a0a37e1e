#!/usr/bin/env python
import asyncio
import logging
import pytest

from dev_tools.log_control import setup_logging
from dev_tools.mini_cluster import MiniRaftCluster, cluster_maker

log_control = setup_logging()
logger = logging.getLogger("test_code")


async def enforce_with_retries(cluster, target_id, attempts=5):
    """ Enforcement is best effort, tests retry it the way callers are expected to. """
    for attempt in range(attempts):
        if await cluster.try_enforce_leader(target_id):
            return True
        logger.info("enforce %s attempt %d failed\n%s", target_id, attempt, cluster.print_servers())
    return False


async def test_enforce_current_leader_is_immediate(cluster_maker):
    cluster = cluster_maker(3)
    await cluster.start()
    leader = await cluster.wait_for_leader()
    loop = asyncio.get_running_loop()
    start = loop.time()
    assert await cluster.try_enforce_leader(leader.id)
    assert loop.time() == start
    rpc = cluster.get_server_rpc()
    for server_id in cluster.get_configuration().get_peer_ids():
        assert rpc.is_open_for_message(server_id)
        assert rpc.get_take_request_delay(server_id) == 0


async def test_enforce_other_leader(cluster_maker):
    cluster = cluster_maker(3)
    settings = cluster.settings
    await cluster.start()
    old_leader = await cluster.wait_for_leader()
    old_term = await old_leader.get_log().get_term()
    target = [s for s in cluster.get_servers() if s is not old_leader][0]
    loop = asyncio.get_running_loop()
    start = loop.time()
    assert await enforce_with_retries(cluster, target.id)
    # each attempt takes two waits of the max election timeout plus margin
    assert loop.time() - start >= 2 * (settings.election_timeout_max + cluster.enforcer.margin) - 1e-6
    assert cluster.get_leader().id == target.id
    assert await target.get_log().get_term() > old_term
    assert not old_leader.is_leader()
    rpc = cluster.get_server_rpc()
    for server_id in cluster.get_configuration().get_peer_ids():
        assert rpc.is_open_for_message(server_id)
        assert rpc.get_take_request_delay(server_id) == 0


async def test_enforce_every_server(cluster_maker):
    cluster = cluster_maker(5, seed=11)
    await cluster.start()
    await cluster.wait_for_leader()
    for server_id in reversed(cluster.get_configuration().get_peer_ids()):
        assert await enforce_with_retries(cluster, server_id)
        assert cluster.get_leader().id == server_id


async def test_enforced_leader_serves_clients(cluster_maker):
    cluster = cluster_maker(3)
    await cluster.start()
    old_leader = await cluster.wait_for_leader()
    target_id = [s.id for s in cluster.get_servers() if s is not old_leader][-1]
    assert await enforce_with_retries(cluster, target_id)
    client = cluster.create_client("c0", leader_id=old_leader.id)
    reply = await client.send("after enforce")
    assert reply.success
    assert client.leader_id == target_id


async def test_enforce_unknown_server(cluster_maker):
    cluster = cluster_maker(3)
    await cluster.start()
    await cluster.wait_for_leader()
    with pytest.raises(KeyError):
        await cluster.try_enforce_leader("s99")
    rpc = cluster.get_server_rpc()
    for server_id in cluster.get_configuration().get_peer_ids():
        assert rpc.is_open_for_message(server_id)
        assert rpc.get_take_request_delay(server_id) == 0


@pytest.mark.parametrize("size", [3, 5])
@pytest.mark.parametrize("seed", range(15))
async def test_enforce_single_attempt(size, seed):
    """ One call ends within two waits of the max election timeout plus
    margin and leaves the target in charge, whatever the seed. """
    cluster = MiniRaftCluster(size, seed=seed)
    try:
        await cluster.start()
        leader = await cluster.wait_for_leader()
        await asyncio.sleep(0.2)
        target_id = [s.id for s in cluster.get_servers() if s is not leader][-1]
        limit = 2 * (cluster.settings.election_timeout_max + cluster.enforcer.margin)
        loop = asyncio.get_running_loop()
        start = loop.time()
        assert await cluster.try_enforce_leader(target_id)
        assert loop.time() - start <= limit + 1e-6
        assert cluster.get_leader().id == target_id
    finally:
        await cluster.shutdown()
