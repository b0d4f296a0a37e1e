from typing import List, Optional

from raftsim.messages.base_message import BaseMessage


class ClientRequestMessage(BaseMessage):

    code = "client_request"

    def __init__(self, sender:str, receiver:str, command:str, serial_number:int=None):
        super().__init__(sender, receiver, serial_number=serial_number)
        self.command = command

    def __repr__(self):
        msg = super().__repr__()
        msg += f" c={self.command}"
        return msg


class SetConfigurationMessage(BaseMessage):

    code = "set_configuration"

    def __init__(self, sender:str, receiver:str, peers:List[str], version:int=0, serial_number:int=None):
        super().__init__(sender, receiver, serial_number=serial_number)
        self.peers = list(peers)
        self.version = version

    def __repr__(self):
        msg = super().__repr__()
        msg += f" p={self.peers} v={self.version}"
        return msg


class ClientReplyMessage(BaseMessage):

    code = "client_reply"

    def __init__(self, sender:str, receiver:str, success:bool, leaderId:Optional[str]=None,
                 index:Optional[int]=None, error:Optional[str]=None, serial_number:int=None):
        super().__init__(sender, receiver, serial_number=serial_number)
        self.success = success
        self.leaderId = leaderId
        self.index = index
        self.error = error

    @property
    def not_leader(self):
        return not self.success and self.error == "NOT_LEADER"

    def __repr__(self):
        msg = super().__repr__()
        msg += f" s={self.success} li={self.leaderId} i={self.index} e={self.error}"
        return msg
