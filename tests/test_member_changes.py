#!/usr/bin/env python
import asyncio
import logging

from raftsim.api.log_api import RecordCode
from raftsim.api.types import RaftConfiguration, RoleName
from raftsim.messages.client_request import SetConfigurationMessage
from raftsim.messages.message_codec import MessageCodec
from dev_tools.log_control import setup_logging
from dev_tools.mini_cluster import cluster_maker

log_control = setup_logging()
logger = logging.getLogger("test_code")


async def test_add_peers(cluster_maker):
    cluster = cluster_maker(3)
    await cluster.start()
    leader = await cluster.wait_for_leader()
    client = cluster.create_client("c0", leader_id=leader.id)
    assert (await client.send("before")).success
    changes = await cluster.add_new_peers(2, True)
    new_servers = [cluster.get_raft_server(p.id) for p in changes.new_peers]
    for server in new_servers:
        assert server.get_role_name() == RoleName.initializing

    reply = await client.set_configuration(changes.all_peers_in_new_conf)
    assert reply.success
    await asyncio.sleep(0.3)
    assert cluster.get_leader() is leader
    assert leader.get_state().get_conf() == cluster.get_configuration()
    for server in new_servers:
        assert server.is_follower()
        assert server.get_state().get_conf() == cluster.get_configuration()
    leader_recs = await leader.get_log().read_all()
    for server in cluster.get_servers():
        assert await server.get_log().read_all() == leader_recs
    assert leader_recs[-1].code == RecordCode.cluster_config

    # the bigger cluster still works, and still works without two of its members
    assert (await client.send("after")).success
    await cluster.kill_server(cluster.get_followers()[0].id)
    await cluster.kill_server(cluster.get_followers()[0].id)
    assert (await client.send("after kills")).success


async def test_remove_followers(cluster_maker):
    cluster = cluster_maker(5)
    await cluster.start()
    leader = await cluster.wait_for_leader()
    await asyncio.sleep(0.1)
    changes = cluster.remove_peers(2, False)
    client = cluster.create_client("c0", leader_id=leader.id)
    reply = await client.set_configuration(changes.all_peers_in_new_conf)
    assert reply.success
    await asyncio.sleep(0.5)
    assert cluster.get_leader() is leader
    assert leader.get_state().get_conf().size() == 3
    for peer in changes.removed_peers:
        removed = cluster.get_raft_server(peer.id)
        # told about the change, so it will not campaign
        assert not removed.get_state().in_conf()
        assert not removed.is_leader()
        await cluster.kill_server(peer.id)
    assert (await client.send("smaller cluster")).success


async def test_remove_leader(cluster_maker):
    cluster = cluster_maker(3)
    await cluster.start()
    old_leader = await cluster.wait_for_leader()
    await asyncio.sleep(0.1)
    changes = cluster.remove_peers(1, True)
    assert [p.id for p in changes.removed_peers] == [old_leader.id]
    client = cluster.create_client("c0", leader_id=old_leader.id)
    reply = await client.set_configuration(changes.all_peers_in_new_conf)
    assert reply.success
    await asyncio.sleep(1.0)
    new_leader = cluster.get_leader()
    assert new_leader is not None
    assert new_leader is not old_leader
    assert new_leader.id in [p.id for p in changes.all_peers_in_new_conf]
    assert old_leader.is_follower()
    assert not old_leader.get_state().in_conf()
    await cluster.kill_server(old_leader.id)
    assert (await client.send("new leader")).success
    assert client.leader_id == new_leader.id


async def test_one_change_at_a_time(cluster_maker):
    cluster = cluster_maker(3)
    await cluster.start()
    leader = await cluster.wait_for_leader()
    await asyncio.sleep(0.1)
    rpc = cluster.get_server_rpc()
    client_rpc = cluster.get_client_rpc()
    # keep the first change from committing
    for follower in cluster.get_followers():
        rpc.set_open_for_message(follower.id, False)
    ids = cluster.get_configuration().get_peer_ids()
    first = SetConfigurationMessage(sender="c0", receiver=leader.id, peers=ids, version=1)
    first_task = asyncio.create_task(client_rpc.send_request(leader.id, MessageCodec.encode_message(first)))
    await asyncio.sleep(0.05)
    assert not first_task.done()
    second = SetConfigurationMessage(sender="c0", receiver=leader.id, peers=ids, version=2)
    data = await client_rpc.send_request(leader.id, MessageCodec.encode_message(second))
    reply = MessageCodec.decode_message(data)
    assert not reply.success
    assert reply.error == "CONF_CHANGE_IN_PROGRESS"

    for follower in cluster.get_followers():
        rpc.set_open_for_message(follower.id, True)
    reply = MessageCodec.decode_message(await first_task)
    assert reply.success
    assert leader.get_state().get_conf() == RaftConfiguration.from_ids(ids, 1)
