import logging

from raftsim.api.types import RoleName
from raftsim.roles.base_role import BaseRole


class Initializing(BaseRole):
    """
    Role of a server started without a configuration. It takes whatever the
    leader replicates, never votes and never campaigns, and becomes a
    Follower once a replicated configuration names it as a member.
    """

    def __init__(self, server):
        super().__init__(server, RoleName.initializing)
        self.logger = logging.getLogger("Initializing")

    async def term_expired(self, message):
        await self.server.set_term(message.term)
        await self.log.set_voted_for(None)
        return message

    async def on_append_entries(self, message):
        accepted = await self.accept_append_entries(message)
        if accepted and self.server.state.in_conf():
            self.logger.info("%s found self in configuration %s, becoming follower", self.my_id(),
                             self.server.state.get_conf())
            await self.server.change_to_follower()
