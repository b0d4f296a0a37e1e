"""
Definitions for the API of the operations log kept by each server.

"""
import abc
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union


class RecordCode(str, Enum):
    """ String enum representing purpose of record. """

    """ Record leader saves to start a term, effectively committing all
         previous records because of the usual commit logic """
    term_start = "TERM_START"

    """ Client command accepted by the leader """
    client_command = "CLIENT_COMMAND"

    """ Cluster configuration data, json encoded RaftConfiguration """
    cluster_config = "CLUSTER_CONFIG"

    def __str__(self):
        return self.value


@dataclass
class LogRec:
    index: int = field(default = 0)
    term: int = field(default = 0)
    command: str = field(default = None)
    code: RecordCode = field(default=RecordCode.client_command)

    @classmethod
    def from_dict(cls, data):
        copy_of = dict(data)
        if not isinstance(data['code'], RecordCode):
            copy_of['code'] = RecordCode(data['code'])
        rec = cls(**copy_of)
        return rec


class LogAPI(abc.ABC):
    """
    Abstract base class defining the storage used by a server for its log
    records and the persistent raft state (term and vote).

    Log indexes start at 1. An empty log reports 0 for last index and last
    term, and `read()` returns None. Records are copied on the way in and on
    the way out so that callers cannot modify stored records.
    """

    @abc.abstractmethod
    async def get_term(self) -> int:
        raise NotImplementedError

    @abc.abstractmethod
    async def set_term(self, value: int) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_voted_for(self) -> Optional[str]:
        raise NotImplementedError

    @abc.abstractmethod
    async def set_voted_for(self, value: Optional[str]) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def append(self, record: LogRec) -> LogRec:
        """ Stores the record at the next index and returns a copy
        with the index filled in """
        raise NotImplementedError

    @abc.abstractmethod
    async def read(self, index: Union[int, None] = None) -> Union[LogRec, None]:
        """ Returns a copy of the record at index, or the last record if
        index is None. Returns None for indexes past the end """
        raise NotImplementedError

    @abc.abstractmethod
    async def read_all(self) -> List[LogRec]:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_last_index(self) -> int:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_last_term(self) -> int:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_commit_index(self) -> int:
        raise NotImplementedError

    @abc.abstractmethod
    async def mark_committed(self, index: int) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def delete_all_from(self, index: int) -> None:
        """ Deletes the record at index and everything after it """
        raise NotImplementedError
