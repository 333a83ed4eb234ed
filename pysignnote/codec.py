# codec.py
import base64
import binascii
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple, Union

from .errors import InvalidEncoding

SEPARATOR = ":"

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class SignedMessage:
    payload: bytes
    signature: bytes

    def _split(self) -> Tuple[str, str]:
        stamp, _, text = self.payload.decode("utf-8", errors="replace").partition(" ")
        return stamp, text

    @property
    def timestamp(self) -> str:
        return self._split()[0]

    @property
    def text(self) -> str:
        return self._split()[1]


@dataclass(frozen=True)
class PublicKeyCandidate:
    key_bytes: bytes


ParsedInput = Union[SignedMessage, PublicKeyCandidate]


def format_timestamp(now: datetime) -> str:
    # ISO-8601 contains no spaces, so the first space in a payload always ends it
    if now.tzinfo is None:
        now = now.astimezone()
    return now.isoformat(timespec="seconds")


def build_payload(text: str, now: Optional[datetime] = None) -> bytes:
    """Return the exact bytes that get signed: ``"<timestamp> <text>"`` as UTF-8.

    The timestamp is captured here, at call time, unless one is passed in.
    """
    if now is None:
        now = datetime.now().astimezone()
    return f"{format_timestamp(now)} {text}".encode("utf-8")


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidEncoding(str(e)) from e


def serialize(payload: bytes, signature: bytes) -> str:
    return b64encode(payload) + SEPARATOR + b64encode(signature)


def clean(raw: str) -> str:
    """Strip every whitespace character, newlines included."""
    return _WHITESPACE.sub("", raw)


def parse(raw: str) -> ParsedInput:
    """Classify pasted input as a signed message or a bare public key.

    Exactly two non-empty colon-separated parts make a signed message;
    anything else is decoded whole as a public key. Base64 errors raise
    InvalidEncoding in both branches.
    """
    cleaned = clean(raw)
    parts = cleaned.split(SEPARATOR)
    if len(parts) == 2 and all(parts):
        return SignedMessage(payload=b64decode(parts[0]), signature=b64decode(parts[1]))
    return PublicKeyCandidate(key_bytes=b64decode(cleaned))
