from raftsim.messages.base_message import BaseMessage


class LogMessage(BaseMessage):

    code = "invalid"

    def __init__(self, sender:str, receiver:str, term:int, prevLogIndex:int, prevLogTerm:int,
                 serial_number:int=None):
        super().__init__(sender, receiver, serial_number)
        self.term = term
        self.prevLogIndex = prevLogIndex
        self.prevLogTerm = prevLogTerm

    def __repr__(self):
        msg = super().__repr__()
        msg += f"t={self.term},pI={self.prevLogIndex},pt={self.prevLogTerm}"
        return msg
