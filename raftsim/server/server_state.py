import logging
from typing import List, Optional

from raftsim.api.log_api import LogAPI, LogRec, RecordCode
from raftsim.api.types import RaftConfiguration
from raftsim.log.memory_log import MemoryLog

logger = logging.getLogger("ServerState")


class ServerState:
    """
    Everything a server would persist across a restart: its log (which also
    holds the current term and vote) and its configuration. The configuration
    in effect is the newest CLUSTER_CONFIG record in the log, or, if the log
    has none, the configuration the server was started with.
    """

    def __init__(self, server_id: str, log: Optional[LogAPI] = None,
                 conf: Optional[RaftConfiguration] = None):
        self.server_id = server_id
        self.log = log if log is not None else MemoryLog()
        self.start_conf = conf
        self.conf = conf
        self.leader_id = None

    @classmethod
    async def build_server_state(cls, old_state: "ServerState", entries: List[LogRec]) -> "ServerState":
        """
        New state for the same server with the log content replaced by
        `entries`, in the order given. The term never goes backwards, and the
        vote is kept only when the term is unchanged.
        """
        old_term = await old_state.log.get_term()
        term = old_term
        if entries:
            term = max(old_term, max(e.term for e in entries))
        voted_for = None
        if term == old_term:
            voted_for = await old_state.log.get_voted_for()
        log = MemoryLog.from_entries(entries, term=term, voted_for=voted_for)
        new_state = cls(old_state.server_id, log=log, conf=old_state.start_conf)
        await new_state.refresh_conf()
        logger.debug("%s rebuilt state with %d records, term %d", new_state.server_id,
                     len(entries), term)
        return new_state

    def get_log(self) -> LogAPI:
        return self.log

    def get_conf(self) -> Optional[RaftConfiguration]:
        return self.conf

    def set_start_conf(self, conf: RaftConfiguration):
        self.start_conf = conf
        self.conf = conf

    async def refresh_conf(self):
        """ Recomputes the configuration in effect after the log changes. """
        for rec in reversed(await self.log.read_all()):
            if rec.code == RecordCode.cluster_config:
                self.conf = RaftConfiguration.from_json(rec.command)
                return self.conf
        self.conf = self.start_conf
        return self.conf

    def in_conf(self) -> bool:
        return self.conf is not None and self.conf.contains(self.server_id)

    def __str__(self):
        return f"{self.server_id} conf={self.conf} leader={self.leader_id}"
