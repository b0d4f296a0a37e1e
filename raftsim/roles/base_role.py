import logging

from raftsim.api.log_api import RecordCode
from raftsim.messages.append_entries import AppendEntriesMessage, AppendResponseMessage
from raftsim.messages.request_vote import RequestVoteMessage, RequestVoteResponseMessage


class BaseRole:

    def __init__(self, server, role_name):
        self.server = server
        self.role_name = role_name
        self.logger = logging.getLogger("BaseRole")
        self.elec_logger = logging.getLogger("Elections")
        self.log = server.get_log()
        self.stopped = False
        self.routes = None
        self.build_routes()

    def build_routes(self):
        self.routes = dict()
        self.routes[AppendEntriesMessage.get_code()] = self.on_append_entries
        self.routes[AppendResponseMessage.get_code()] = self.on_append_entries_response
        self.routes[RequestVoteMessage.get_code()] = self.on_vote_request
        self.routes[RequestVoteResponseMessage.get_code()] = self.on_vote_response

    async def start(self):
        # child classes not required to have this method, but if they do,
        # they should call this one (i.e. super().start())
        self.stopped = False

    async def stop(self):
        # child classes not required to have this method, but if they do,
        # they should call this one (i.e. super().stop())
        self.stopped = True

    async def run_after(self, delay, target):
        await self.server.role_run_after(delay, target)

    async def cancel_run_after(self):
        await self.server.cancel_role_run_after()

    async def on_message(self, message):
        if self.stopped:
            return None
        if message.term > await self.log.get_term():
            self.logger.debug('%s received message from higher term, calling self.term_expired',
                              self.my_id())
            res = await self.term_expired(message)
            if not res:
                # no additional handling of message needed
                return None
        route = self.routes.get(message.get_code(), None)
        if route:
            return await route(message)
        return None

    async def term_expired(self, message):
        # Leaders and candidates give up on seeing a newer term, then
        # handle the message again as a follower
        await self.server.set_term(message.term)
        await self.log.set_voted_for(None)
        await self.server.change_to_follower(message)
        return None

    async def on_append_entries(self, message):
        problem = 'append_entries not implemented in the class '
        problem += f'"{self.__class__.__name__}" at {self.my_id()}, sending rejection'
        self.logger.warning(problem)
        await self.send_append_response(message, success=False)

    async def on_append_entries_response(self, message):
        self.logger.debug('%s as %s ignoring append response %s', self.my_id(), self.role_name, message)

    async def on_vote_request(self, message):
        self.elec_logger.info("%s as %s voting false on %s", self.my_id(), self.role_name, message.sender)
        await self.send_vote_response_message(message, vote_yes=False)

    async def on_vote_response(self, message):
        self.elec_logger.debug('%s as %s ignoring vote response %s', self.my_id(), self.role_name, message)

    async def accept_append_entries(self, message):
        """
        Log matching part of append_entries handling, shared by followers
        and by servers still waiting for a configuration. Returns True if
        the entries were accepted.
        """
        state = self.server.state
        if message.term < await self.log.get_term():
            self.logger.info("%s rejecting append_entries from %s at stale term %d",
                             self.my_id(), message.sender, message.term)
            await self.send_append_response(message, success=False)
            return False
        if state.leader_id != message.sender:
            await self.server.set_leader_id(message.sender)
            self.elec_logger.info("%s accepting new leader %s", self.my_id(), message.sender)
        last_index = await self.log.get_last_index()
        if message.prevLogIndex > last_index:
            self.logger.debug("%s missing records before %d, have %d", self.my_id(),
                              message.prevLogIndex, last_index)
            await self.send_append_response(message, success=False)
            return False
        if message.prevLogIndex > 0:
            prev_rec = await self.log.read(message.prevLogIndex)
            if prev_rec.term != message.prevLogTerm:
                self.logger.warning("%s Leader indicates invalid record at index %d, deleting",
                                    self.my_id(), message.prevLogIndex)
                await self.delete_log_from(message.prevLogIndex)
                await self.send_append_response(message, success=False)
                return False
        conf_changed = False
        for leader_rec in message.entries:
            our_rec = await self.log.read(leader_rec.index)
            if our_rec is not None:
                if our_rec.term == leader_rec.term:
                    continue
                self.logger.warning("%s Leader says rewrite at record %d", self.my_id(), leader_rec.index)
                await self.delete_log_from(leader_rec.index)
            await self.log.append(leader_rec)
            if leader_rec.code == RecordCode.cluster_config:
                conf_changed = True
        if conf_changed:
            conf = await state.refresh_conf()
            self.logger.info("%s configuration from leader now %s", self.my_id(), conf)
        match_index = message.prevLogIndex + len(message.entries)
        new_commit = min(message.commitIndex, match_index)
        if new_commit > await self.log.get_commit_index():
            await self.log.mark_committed(new_commit)
        await self.send_append_response(message, success=True, max_index=match_index)
        return True

    async def delete_log_from(self, index):
        await self.log.delete_all_from(index)
        # a removed record might have been a config change
        await self.server.state.refresh_conf()

    async def send_append_response(self, message, success, max_index=None):
        if max_index is None:
            max_index = await self.log.get_last_index()
        reply = AppendResponseMessage(sender=self.my_id(),
                                      receiver=message.sender,
                                      term=await self.log.get_term(),
                                      prevLogIndex=message.prevLogIndex,
                                      prevLogTerm=message.prevLogTerm,
                                      maxIndex=max_index,
                                      success=success,
                                      leaderId=self.server.state.leader_id)
        await self.server.send_message(reply)

    async def send_vote_response_message(self, message, vote_yes=True):
        vote_response = RequestVoteResponseMessage(sender=self.my_id(),
                                                   receiver=message.sender,
                                                   term=max(message.term, await self.log.get_term()),
                                                   prevLogIndex=await self.log.get_last_index(),
                                                   prevLogTerm=await self.log.get_last_term(),
                                                   vote=vote_yes)
        await self.server.send_message(vote_response)

    def my_id(self):
        return self.server.id

    def __repr__(self):
        return str(self.role_name)
