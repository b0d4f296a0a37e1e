"""
Message encoding/decoding for messages crossing the simulated transport.

Every message is turned into a json string when it is handed to the transport
and rebuilt when it is taken off, so servers never share message or log
record objects.
"""
import json

from raftsim.messages.append_entries import AppendEntriesMessage, AppendResponseMessage
from raftsim.messages.client_request import ClientRequestMessage, SetConfigurationMessage, ClientReplyMessage
from raftsim.messages.request_vote import RequestVoteMessage, RequestVoteResponseMessage


class MessageCodec:

    MESSAGE_TYPE_BY_CODE = {
        AppendEntriesMessage.get_code(): AppendEntriesMessage,
        AppendResponseMessage.get_code(): AppendResponseMessage,
        RequestVoteMessage.get_code(): RequestVoteMessage,
        RequestVoteResponseMessage.get_code(): RequestVoteResponseMessage,
        ClientRequestMessage.get_code(): ClientRequestMessage,
        SetConfigurationMessage.get_code(): SetConfigurationMessage,
        ClientReplyMessage.get_code(): ClientReplyMessage,
    }

    @classmethod
    def encode_message(cls, message) -> str:
        return json.dumps(message, default=lambda o: o.__dict__)

    @classmethod
    def decode_message(cls, data):
        # we let exceptions propogate, callers all have handlers
        if isinstance(data, bytes):
            data = data.decode('utf-8')
        message_dict = json.loads(data)
        message_type = cls.MESSAGE_TYPE_BY_CODE.get(message_dict.get('code'), None)
        if message_type is None:
            raise Exception(f"Message is not decodeable as a raft type, code = {message_dict.get('code')}")
        return message_type.from_dict(message_dict)
