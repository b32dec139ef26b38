"""
Relay errors - each carries the message reported to the affected client
"""


class RelayError(Exception):
    """Base class for errors reported to clients over the event channel"""

    message = "Relay error"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class RoomFullError(RelayError):
    message = "Room is full"


class FileNotFoundOnServer(RelayError):
    message = "File not found on server"


class TransferInProgressError(RelayError):
    message = "Transfer already in progress"


class ReceiverUnavailableError(RelayError):
    message = "Receiver not connected"


class InvalidEventError(RelayError):
    message = "Invalid event"
