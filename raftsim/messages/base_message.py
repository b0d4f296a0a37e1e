"""
How to add a new message type:

Extend the BaseMessage class, giving your new class a unique string value
for the class variable "code", then add it to the MessageCodec lookup table.

"""
import itertools


class SerialNumberGenerator:
    generator = None

    @classmethod
    def get_generator(cls):
        if cls.generator is None:
            cls.generator = cls()
        return cls.generator

    def __init__(self):
        self.counter = itertools.count(1)

    def generate(self):
        return next(self.counter)


class BaseMessage:

    code = "invalid"

    def __init__(self, sender:str, receiver:str, serial_number:int=None):
        self.sender = sender
        self.receiver = receiver
        self.code = self.__class__.code
        self.serial_number = serial_number
        if serial_number is None:
            self.serial_number = SerialNumberGenerator.get_generator().generate()

    @classmethod
    def from_dict(cls, data):
        copy_of = dict(data)
        del copy_of['code']
        msg = cls(**copy_of)
        return msg

    def __str__(self):
        return self.__repr__()

    def __repr__(self):
        msg = f"{self.code}:{self.sender}->{self.receiver}"
        if self.serial_number is not None:
            msg += f" sn={self.serial_number}"
        msg += ": "
        return msg

    @classmethod
    def get_code(cls):
        return cls.code
