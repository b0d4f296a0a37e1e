import asyncio
import logging


class LeaderEnforcer:
    """
    Forces a chosen server to become leader using nothing but the server
    transport's delivery controls. It never touches votes or server state.

    Every other server has its message takes slowed to the minimum election
    timeout, so none of them can complete an election of its own. They still
    handle one queued heartbeat per delay, which is no longer than any
    election timeout, so followers keep their leader. The target's queue is
    closed so that it hears nothing from the current leader, times out and
    starts campaigning. Then the controls are cleared and the election is
    given time to finish.

    This is best effort. A False result means the target did not win within
    the allotted waits, and the caller decides whether to try again. If the task
    running try_enforce_leader is cancelled during one of the waits, the
    transport is left with the controls applied and cleaning up is the
    caller's job.
    """

    def __init__(self, cluster, margin=0.1):
        self.cluster = cluster
        self.margin = margin
        self.logger = logging.getLogger("LeaderEnforcer")

    async def try_enforce_leader(self, leader_id: str) -> bool:
        leader = self.cluster.get_leader()
        if leader is not None and leader.id == leader_id:
            return True
        # unknown ids raise KeyError before anything is touched
        self.cluster.get_raft_server(leader_id)
        settings = self.cluster.settings
        rpc = self.cluster.get_server_rpc()
        others = [server_id for server_id in self.cluster.registry.ids() if server_id != leader_id]
        self.logger.debug("begin blocking queues for target leader %s", leader_id)
        for server_id in others:
            rpc.set_take_request_delay(server_id, settings.election_timeout_min)
        rpc.set_open_for_message(leader_id, False)
        self.logger.debug("closed queue for target leader %s", leader_id)

        await asyncio.sleep(settings.election_timeout_max + self.margin)
        self.logger.debug("target leader %s should have become candidate, opening queue", leader_id)

        for server_id in others:
            rpc.set_take_request_delay(server_id, 0)
        rpc.set_open_for_message(leader_id, True)
        # wait for things to quiet down
        await asyncio.sleep(settings.election_timeout_max + self.margin)

        # the handle may have been replaced while we waited
        target = self.cluster.get_raft_server(leader_id)
        result = target.is_running() and target.is_leader()
        self.logger.info("enforce leader %s result %s", leader_id, result)
        return result
