import logging

from raftsim.api.log_api import LogRec, RecordCode
from raftsim.api.types import RaftConfiguration, RoleName
from raftsim.messages.append_entries import AppendEntriesMessage
from raftsim.messages.client_request import ClientReplyMessage, SetConfigurationMessage
from raftsim.roles.base_role import BaseRole


class Leader(BaseRole):
    """
    Replicates the log to every server in the configuration, plus the
    servers of the previous configuration while a change is not yet
    committed. Configuration changes are single step: the new configuration
    takes effect as soon as its record is appended, and the leader steps
    down after the commit if it is not a member of the new one.
    """

    def __init__(self, server, term):
        super().__init__(server, RoleName.leader)
        self.term = term
        self.logger = logging.getLogger("Leader")
        self.hb_logger = logging.getLogger("Heartbeats")
        self.next_index = {}
        self.match_index = {}
        # log index -> (envelope, request message), replied to on commit
        self.pending_requests = {}
        self.prior_conf = None
        self.conf_change_index = None

    async def start(self):
        await super().start()
        for peer_id in self.replication_targets():
            await self.ensure_tracker(peer_id)
        conf = self.server.state.get_conf()
        # finish any change that an earlier leader did not get committed
        for rec in reversed(await self.log.read_all()):
            if rec.code == RecordCode.cluster_config:
                if rec.index > await self.log.get_commit_index():
                    self.conf_change_index = rec.index
                break
        start_record = LogRec(code=RecordCode.term_start, term=self.term, command=conf.to_json())
        the_record = await self.log.append(start_record)
        self.elec_logger.info("New Leader %s sending term start record index %d", self.my_id(),
                              the_record.index)
        await self.send_all()
        await self.advance_commit_index()
        if not self.stopped:
            await self.run_after(self.server.get_heartbeat_period(), self.scheduled_send_heartbeats)

    async def stop(self):
        await super().stop()
        pending = self.pending_requests
        self.pending_requests = {}
        for index, (envelope, request) in pending.items():
            self.logger.info("%s no longer leader, failing client request at index %d", self.my_id(), index)
            reply = ClientReplyMessage(sender=self.my_id(), receiver=request.sender,
                                       success=False, error="NOT_LEADER")
            await self.server.send_client_reply(envelope, reply)

    def replication_targets(self):
        ids = self.server.state.get_conf().get_peer_ids()
        if self.prior_conf is not None:
            for peer_id in self.prior_conf.get_peer_ids():
                if peer_id not in ids:
                    ids.append(peer_id)
        return [peer_id for peer_id in ids if peer_id != self.my_id()]

    async def ensure_tracker(self, peer_id):
        if peer_id not in self.next_index:
            self.next_index[peer_id] = await self.log.get_last_index() + 1
            self.match_index[peer_id] = 0

    async def scheduled_send_heartbeats(self):
        self.hb_logger.debug("%s sending heartbeats", self.my_id())
        await self.send_all()
        await self.run_after(self.server.get_heartbeat_period(), self.scheduled_send_heartbeats)

    async def send_all(self):
        for peer_id in self.replication_targets():
            await self.send_append(peer_id)

    async def send_append(self, peer_id):
        await self.ensure_tracker(peer_id)
        next_index = self.next_index[peer_id]
        prev_index = next_index - 1
        prev_term = 0
        if prev_index > 0:
            prev_term = (await self.log.read(prev_index)).term
        last_index = await self.log.get_last_index()
        end_index = min(last_index, prev_index + self.server.get_max_entries_per_message())
        entries = []
        for index in range(next_index, end_index + 1):
            entries.append(await self.log.read(index))
        message = AppendEntriesMessage(sender=self.my_id(),
                                       receiver=peer_id,
                                       term=self.term,
                                       prevLogIndex=prev_index,
                                       prevLogTerm=prev_term,
                                       entries=entries,
                                       commitIndex=await self.log.get_commit_index())
        self.logger.debug("%s sending %s", self.my_id(), message)
        await self.server.send_message(message)

    async def on_append_entries_response(self, message):
        if message.term < self.term:
            self.logger.debug("%s ignoring stale append response %s", self.my_id(), message)
            return
        peer_id = message.sender
        await self.ensure_tracker(peer_id)
        if message.success:
            self.match_index[peer_id] = max(self.match_index[peer_id], message.maxIndex)
            self.next_index[peer_id] = self.match_index[peer_id] + 1
            await self.advance_commit_index()
            if self.stopped:
                return
            if (self.next_index[peer_id] <= await self.log.get_last_index()
                    and peer_id in self.replication_targets()):
                await self.send_append(peer_id)
            return
        # a rejection carries the follower's actual last index, which is
        # below what it matched before if its log was replaced
        self.match_index[peer_id] = min(self.match_index[peer_id], message.maxIndex)
        self.next_index[peer_id] = max(1, min(self.next_index[peer_id] - 1, message.maxIndex + 1))
        self.logger.info("%s follower %s rejected append, next index now %d", self.my_id(),
                         peer_id, self.next_index[peer_id])
        if peer_id in self.replication_targets():
            await self.send_append(peer_id)

    async def advance_commit_index(self):
        commit_index = await self.log.get_commit_index()
        last_index = await self.log.get_last_index()
        conf = self.server.state.get_conf()
        new_commit = commit_index
        for index in range(commit_index + 1, last_index + 1):
            rec = await self.log.read(index)
            # only records from our own term get committed by counting
            if rec.term != self.term:
                continue
            count = 0
            for peer_id in conf.get_peer_ids():
                if peer_id == self.my_id() or self.match_index.get(peer_id, 0) >= index:
                    count += 1
            if count > conf.size() / 2:
                new_commit = index
        if new_commit > commit_index:
            await self.log.mark_committed(new_commit)
            self.logger.debug("%s commit index now %d", self.my_id(), new_commit)
            await self.on_commit(commit_index, new_commit)

    async def on_commit(self, old_commit, new_commit):
        for index in range(old_commit + 1, new_commit + 1):
            pending = self.pending_requests.pop(index, None)
            if pending:
                envelope, request = pending
                reply = ClientReplyMessage(sender=self.my_id(), receiver=request.sender,
                                           success=True, leaderId=self.my_id(), index=index)
                await self.server.send_client_reply(envelope, reply)
        if self.conf_change_index is not None and self.conf_change_index <= new_commit:
            await self.finish_conf_change()

    async def finish_conf_change(self):
        self.logger.info("%s configuration change at %d committed, configuration is %s",
                         self.my_id(), self.conf_change_index, self.server.state.get_conf())
        self.conf_change_index = None
        self.prior_conf = None
        if not self.server.state.in_conf():
            # let the remaining members see the commit before we go
            await self.send_all()
            self.elec_logger.warning("%s not in new configuration, stepping down", self.my_id())
            await self.server.change_to_follower()

    async def on_client_request(self, envelope, message):
        if isinstance(message, SetConfigurationMessage):
            if self.conf_change_index is not None:
                self.logger.info("%s rejecting %s, change at %d not yet committed", self.my_id(),
                                 message, self.conf_change_index)
                reply = ClientReplyMessage(sender=self.my_id(), receiver=message.sender,
                                           success=False, leaderId=self.my_id(),
                                           error="CONF_CHANGE_IN_PROGRESS")
                await self.server.send_client_reply(envelope, reply)
                return
            new_conf = RaftConfiguration.from_ids(message.peers, message.version)
            self.prior_conf = self.server.state.get_conf()
            rec = await self.log.append(LogRec(term=self.term, command=new_conf.to_json(),
                                               code=RecordCode.cluster_config))
            await self.server.state.refresh_conf()
            self.conf_change_index = rec.index
            self.logger.info("%s changing configuration from %s to %s at index %d", self.my_id(),
                             self.prior_conf, new_conf, rec.index)
        else:
            rec = await self.log.append(LogRec(term=self.term, command=message.command))
            self.logger.debug("%s saved client command at index %d", self.my_id(), rec.index)
        self.pending_requests[rec.index] = (envelope, message)
        await self.send_all()
        await self.advance_commit_index()
