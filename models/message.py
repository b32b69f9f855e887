"""Message model for payloads relayed by the hub."""

from dataclasses import dataclass
from typing import Optional, Union

from core.exceptions import InvalidMessage
from models.client import ClientID


@dataclass(frozen=True)
class Message:
    """An immutable text payload together with the client that sent it."""

    sender_id: ClientID
    payload: str

    @classmethod
    def parse(cls, sender_id: ClientID, raw: Union[str, bytes], max_size: Optional[int] = None) -> 'Message':
        """
        Validate a raw inbound payload and wrap it in a Message.

        Args:
            sender_id: Identifier of the sending client
            raw: Text frame, or binary frame holding UTF-8 text
            max_size: Upper bound on the UTF-8 encoded size, in bytes

        Raises:
            InvalidMessage: If the payload is not UTF-8 text or is too large
        """
        if isinstance(raw, (bytes, bytearray)):
            try:
                text = bytes(raw).decode("utf-8")
            except UnicodeDecodeError as e:
                raise InvalidMessage(f"Payload is not valid UTF-8: {str(e)}") from e
            size = len(raw)
        elif isinstance(raw, str):
            text = raw
            try:
                size = len(raw.encode("utf-8"))
            except UnicodeEncodeError as e:
                raise InvalidMessage(f"Payload is not valid UTF-8: {str(e)}") from e
        else:
            raise InvalidMessage(f"Unsupported payload type: {type(raw).__name__}")

        if max_size is not None and size > max_size:
            raise InvalidMessage(f"Payload of {size} bytes exceeds limit of {max_size}")
        return cls(sender_id=sender_id, payload=text)
