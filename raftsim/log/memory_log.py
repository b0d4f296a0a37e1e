import logging
from typing import List, Optional, Union

from raftsim.api.log_api import LogRec, LogAPI

logger = logging.getLogger("MemoryLog")


class Records:

    def __init__(self):
        # log record indexes start at 1
        self.entries = []
        self.commit_index = 0

    @property
    def index(self):
        return len(self.entries)

    def get_entry_at(self, index):
        if index < 1 or len(self.entries) == 0:
            return None
        return self.entries[index - 1]

    def get_last_entry(self):
        return self.get_entry_at(self.index)

    def insert_entry(self, rec: LogRec) -> LogRec:
        if rec.index > len(self.entries) + 1:
            raise Exception('cannont insert past last index')
        if rec.index == 0 or rec.index is None or rec.index == len(self.entries) + 1:
            self.entries.append(rec)
            rec.index = len(self.entries)
        else:
            self.entries[rec.index-1] = rec
        return rec

    def delete_all_from(self, index: int):
        if index <= 1:
            self.entries = []
        else:
            self.entries = self.entries[:index-1]
        self.commit_index = min(self.commit_index, len(self.entries))


class MemoryLog(LogAPI):

    def __init__(self):
        self.records = Records()
        self.term = 0
        self.voted_for = None

    @classmethod
    def from_entries(cls, entries: List[LogRec], term: int = 0, voted_for: Optional[str] = None):
        """ Builds a log holding copies of the supplied records, in order,
        with indexes reassigned starting at 1. """
        res = cls()
        res.term = term
        res.voted_for = voted_for
        for entry in entries:
            rec = LogRec.from_dict(entry.__dict__)
            rec.index = 0
            res.records.insert_entry(rec)
        return res

    async def get_term(self) -> int:
        return self.term

    async def set_term(self, value: int):
        self.term = value

    async def get_voted_for(self) -> Union[str, None]:
        return self.voted_for

    async def set_voted_for(self, value: Union[str, None]):
        self.voted_for = value

    async def append(self, record: LogRec) -> LogRec:
        save_rec = LogRec.from_dict(record.__dict__)
        self.records.insert_entry(save_rec)
        return_rec = LogRec.from_dict(save_rec.__dict__)
        logger.debug("new log record %s", return_rec.index)
        return return_rec

    async def read(self, index: Union[int, None] = None) -> Union[LogRec, None]:
        if index is None:
            rec = self.records.get_last_entry()
        else:
            if index < 1:
                raise Exception(f"cannot get index {index}, 1 is the first index")
            if index > self.records.index:
                return None
            rec = self.records.get_entry_at(index)
        if rec is None:
            return None
        return LogRec(**rec.__dict__)

    async def read_all(self) -> List[LogRec]:
        return [LogRec(**rec.__dict__) for rec in self.records.entries]

    async def get_last_index(self):
        return self.records.index

    async def get_last_term(self):
        if self.records.index == 0:
            return 0
        rec = self.records.get_last_entry()
        return rec.term

    async def get_commit_index(self):
        return self.records.commit_index

    async def mark_committed(self, index: int):
        if index > self.records.index:
            raise Exception(f"cannot commit index {index}, last index is {self.records.index}")
        if index > self.records.commit_index:
            self.records.commit_index = index

    async def delete_all_from(self, index: int):
        return self.records.delete_all_from(index)

    def get_entry_string(self):
        parts = [f"{rec.index}:{rec.term}:{rec.code}:{rec.command}" for rec in self.records.entries]
        return f"[{', '.join(parts)}] commit={self.records.commit_index}"
