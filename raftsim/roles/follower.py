import logging

from raftsim.api.types import RoleName
from raftsim.roles.base_role import BaseRole

# timers can fire up to the clock resolution early, a leftover this small
# counts as expired
TIMER_SLACK = 1e-6


class Follower(BaseRole):

    def __init__(self, server):
        super().__init__(server, RoleName.follower)
        self.logger = logging.getLogger("Follower")
        # Each follower instance picks one timeout from the configured
        # range and keeps it until the role changes
        self.election_timeout = server.get_election_timeout()
        # Pretend we just got a call, that gives possible actual leader time to ping us
        self.last_leader_contact = server.now()

    async def start(self):
        await super().start()
        self.last_leader_contact = self.server.now()
        await self.run_after(self.election_timeout, self.contact_checker)

    async def on_append_entries(self, message):
        if message.term >= await self.log.get_term():
            self.last_leader_contact = self.server.now()
        self.logger.debug("%s append term=%d local_term=%d prev_index=%d local_index=%d, entry_count=%d",
                          self.my_id(), message.term, await self.log.get_term(),
                          message.prevLogIndex, await self.log.get_last_index(),
                          len(message.entries))
        await self.accept_append_entries(message)

    async def on_vote_request(self, message):
        if message.term < await self.log.get_term():
            self.elec_logger.info("%s voting false on %s, stale term %d", self.my_id(),
                                  message.sender, message.term)
            await self.send_vote_response_message(message, vote_yes=False)
            return
        conf = self.server.state.get_conf()
        if conf is not None and not conf.contains(message.sender):
            self.elec_logger.info("%s voting false on %s, not in configuration %s", self.my_id(),
                                  message.sender, conf)
            await self.send_vote_response_message(message, vote_yes=False)
            return
        last_vote = await self.log.get_voted_for()
        if last_vote is not None and last_vote != message.sender:
            # we only vote once per term, unlike some dead people I know
            self.elec_logger.info("%s voting false on %s, already voted for %s", self.my_id(),
                                  message.sender, last_vote)
            await self.send_vote_response_message(message, vote_yes=False)
            return
        # Leadership claims have to be for a log at least as up to date
        # as our local copy, last term first, then last index
        local_index = await self.log.get_last_index()
        local_term = await self.log.get_last_term()
        if (message.prevLogTerm < local_term
                or (message.prevLogTerm == local_term and message.prevLogIndex < local_index)):
            self.elec_logger.info("%s voting false on %s local index=%d, term=%d, msg index=%d, term=%d",
                                  self.my_id(), message.sender, local_index, local_term,
                                  message.prevLogIndex, message.prevLogTerm)
            await self.send_vote_response_message(message, vote_yes=False)
            return
        await self.log.set_voted_for(message.sender)
        # granting a vote counts as contact, give the candidate time to win
        self.last_leader_contact = self.server.now()
        self.elec_logger.info("%s voting true for candidate %s", self.my_id(), message.sender)
        await self.send_vote_response_message(message, vote_yes=True)

    async def term_expired(self, message):
        # Raft protocol says all participants should record the highest term
        # value that they receive in a message. Followers never decide that
        # a higher term is not valid
        await self.server.set_term(message.term)
        await self.log.set_voted_for(None)
        # Tell the base class method to route the message back to us as normal
        return message

    async def contact_checker(self):
        e_time = self.server.now() - self.last_leader_contact
        if e_time >= self.election_timeout - TIMER_SLACK:
            if not self.server.state.in_conf():
                self.elec_logger.info("%s lost leader but is not in configuration %s, not campaigning",
                                      self.my_id(), self.server.state.get_conf())
                self.last_leader_contact = self.server.now()
                await self.run_after(self.election_timeout, self.contact_checker)
                return
            self.elec_logger.info("%s lost leader after %f", self.my_id(), e_time)
            await self.leader_lost()
            return
        # reschedule for the rest of the timeout
        await self.run_after(self.election_timeout - e_time, self.contact_checker)

    async def leader_lost(self):
        self.elec_logger.info("%s Lost contact with leader, starting election", self.my_id())
        await self.server.start_campaign()
