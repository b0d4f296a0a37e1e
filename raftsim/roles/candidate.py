import logging

from raftsim.api.types import RoleName
from raftsim.messages.request_vote import RequestVoteMessage
from raftsim.roles.base_role import BaseRole


class Candidate(BaseRole):

    def __init__(self, server):
        super().__init__(server, RoleName.candidate)
        self.term = None
        self.votes = dict()
        self.logger = logging.getLogger("Candidate")

    async def start(self):
        await super().start()
        await self.start_campaign()

    async def start_campaign(self):
        self.term = await self.log.get_term() + 1
        await self.server.set_term(self.term)
        await self.log.set_voted_for(self.my_id())
        self.votes = dict()
        last_index = await self.log.get_last_index()
        last_term = await self.log.get_last_term()
        for node_id in self.server.state.get_conf().get_peer_ids():
            if node_id == self.my_id():
                self.votes[node_id] = True
                continue
            self.votes[node_id] = None
            message = RequestVoteMessage(sender=self.my_id(),
                                         receiver=node_id,
                                         term=self.term,
                                         prevLogIndex=last_index,
                                         prevLogTerm=last_term)
            await self.server.send_message(message)
        self.elec_logger.info("%s campaigning for term %d", self.my_id(), self.term)
        # a single node configuration wins without any replies
        if await self.check_tally():
            return
        timeout = self.server.get_election_timeout()
        self.logger.debug("%s setting election timeout to %f", self.my_id(), timeout)
        await self.run_after(timeout, self.election_timed_out)

    async def check_tally(self):
        tally = len([vote for vote in self.votes.values() if vote])
        self.logger.info("candidate %s voting results wins = %d of %d (includes self)",
                         self.my_id(), tally, len(self.votes))
        if tally > len(self.votes) / 2:
            await self.cancel_run_after()
            await self.server.win_vote(self.term)
            return True
        return False

    async def on_vote_response(self, message):
        if message.term != self.term or message.sender not in self.votes:
            self.logger.info("candidate %s ignoring out of date vote from %s", self.my_id(), message.sender)
            return
        self.votes[message.sender] = message.vote
        self.logger.info("candidate %s voting result %s from %s", self.my_id(),
                         message.vote, message.sender)
        await self.check_tally()

    async def on_append_entries(self, message):
        # never get here if term is higher, we get called self.term_expired first
        if message.term == await self.log.get_term():
            self.logger.info("candidate %s at term %d yielding to %s", self.my_id(),
                             message.term, message.sender)
            await self.server.change_to_follower(message)
            return
        self.logger.info("candidate %s rejecting append entries from %s at old term %d",
                         self.my_id(), message.sender, message.term)
        await self.send_append_response(message, success=False)

    async def election_timed_out(self):
        self.elec_logger.info("--!!!!!--candidate %s campaign timeout at term %d, trying again",
                              self.my_id(), self.term)
        await self.start_campaign()
