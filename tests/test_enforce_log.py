#!/usr/bin/env python
import asyncio
import logging

from raftsim.api.log_api import LogRec, RecordCode
from raftsim.api.types import RaftConfiguration, RoleName
from dev_tools.log_control import setup_logging
from dev_tools.mini_cluster import cluster_maker

log_control = setup_logging()
logger = logging.getLogger("test_code")


def junk_entries(count):
    # term 0 records conflict with anything a leader writes
    return [LogRec(term=0, command=f"junk {i}") for i in range(count)]


async def test_enforce_server_log(cluster_maker):
    cluster = cluster_maker(3)
    await cluster.start()
    leader = await cluster.wait_for_leader()
    old_server = [s for s in cluster.get_servers() if s is not leader][0]
    old_term = await old_server.get_log().get_term()
    entries = junk_entries(5)
    new_server = await cluster.enforce_server_log(old_server.id, entries, cluster.get_configuration())

    assert not old_server.is_running()
    assert new_server is not old_server
    assert new_server.is_running()
    assert new_server.id == old_server.id
    assert cluster.get_raft_server(old_server.id) is new_server
    # same position in the registry
    assert [s.id for s in cluster.get_servers()] == ["s0", "s1", "s2"]
    recs = await new_server.get_log().read_all()
    assert [r.command for r in recs] == [e.command for e in entries]
    assert [r.index for r in recs] == [1, 2, 3, 4, 5]
    assert await new_server.get_log().get_commit_index() == 0
    assert await new_server.get_log().get_term() == old_term
    assert new_server.get_role_name() == RoleName.follower


async def test_injected_log_is_repaired(cluster_maker):
    cluster = cluster_maker(3)
    await cluster.start()
    leader = await cluster.wait_for_leader()
    client = cluster.create_client("c0", leader_id=leader.id)
    for i in range(3):
        assert (await client.send(f"before {i}")).success
    target_id = [s.id for s in cluster.get_servers() if s is not leader][0]
    await cluster.enforce_server_log(target_id, junk_entries(8), cluster.get_configuration())
    assert (await client.send("after")).success
    await asyncio.sleep(0.5)

    assert cluster.get_leader() is leader
    leader_recs = await leader.get_log().read_all()
    for server in cluster.get_servers():
        recs = await server.get_log().read_all()
        assert [(r.term, r.command) for r in recs] == [(r.term, r.command) for r in leader_recs]
        assert await server.get_log().get_commit_index() == await leader.get_log().get_commit_index()
    assert "junk" not in cluster.print_all_logs()


async def test_injected_log_with_newer_term(cluster_maker):
    """
    A log whose records carry a newer term than the server has seen moves
    the server's term forward and clears its vote.
    """
    cluster = cluster_maker(3)
    await cluster.start()
    leader = await cluster.wait_for_leader()
    old_term = await leader.get_log().get_term()
    entries = [LogRec(term=old_term + 3, command="from the future"),
               LogRec(term=old_term + 1, code=RecordCode.term_start)]
    new_server = await cluster.enforce_server_log(leader.id, entries, cluster.get_configuration())
    assert not leader.is_running()
    assert await new_server.get_log().get_term() == old_term + 3
    assert await new_server.get_log().get_voted_for() is None
    recs = await new_server.get_log().read_all()
    assert [r.term for r in recs] == [old_term + 3, old_term + 1]
    assert recs[1].code == RecordCode.term_start


async def test_injected_configuration_record(cluster_maker):
    """ A configuration record in the injected log wins over the start configuration. """
    cluster = cluster_maker(3)
    target = cluster.get_raft_server("s2")
    conf_record = LogRec(term=0, command=cluster.get_configuration().to_json(),
                         code=RecordCode.cluster_config)
    smaller = RaftConfiguration.from_ids(["s0", "s1"])
    new_server = await cluster.enforce_server_log("s2", [conf_record], smaller)
    assert new_server is not target
    assert new_server.get_state().get_conf() == cluster.get_configuration()
    assert new_server.get_state().start_conf == smaller


async def test_queued_messages_go_to_new_instance(cluster_maker):
    """ Messages waiting for an id when its server is replaced are handled
    by the replacement, never by the killed instance. """
    cluster = cluster_maker(3)
    await cluster.start()
    leader = await cluster.wait_for_leader()
    await asyncio.sleep(0.1)
    old_server = [s for s in cluster.get_servers() if s is not leader][0]
    rpc = cluster.get_server_rpc()
    rpc.set_open_for_message(old_server.id, False)
    rpc.post(old_server.id, '{"code": "no_such_thing"}')
    entries = await old_server.get_log().read_all()
    new_server = await cluster.enforce_server_log(old_server.id, entries, cluster.get_configuration())
    rpc.set_open_for_message(old_server.id, True)
    await asyncio.sleep(0.05)

    problems = [p for p in new_server.get_message_problem_history() if "no_such_thing" in p['problem']]
    assert len(problems) == 1
    assert old_server.get_message_problem_history() == []
    assert not old_server.is_running()
