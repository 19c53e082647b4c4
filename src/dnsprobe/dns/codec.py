"""
DNS wire-format codec.

Encodes single-question queries and decodes responses for the subset of
RFC 1035 used by the resolver transports. Decoding never raises on
malformed packets; it returns whatever could be read.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import logging
import random
import socket
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Union


logger = logging.getLogger(__name__)

HEADER_LENGTH = 12
FLAG_QR = 0x8000
FLAG_RD = 0x0100
CLASS_IN = 1

MAX_LABEL_LENGTH = 63
MAX_POINTER_JUMPS = 20
POINTER_MASK = 0xC0

_rng = random.SystemRandom()


class CodecError(ValueError):
    """A name or record type that cannot be encoded."""


class RecordType(IntEnum):
    """Record type codes understood by the resolver."""
    A = 1
    NS = 2
    CNAME = 5
    SOA = 6
    PTR = 12
    MX = 15
    TXT = 16
    AAAA = 28
    SRV = 33
    ANY = 255
    CAA = 257

    @classmethod
    def parse(cls, value: "str | int") -> "RecordType":
        """Convert a mnemonic ("mx") or numeric code (15, "15") to a RecordType."""
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise CodecError(f"Unsupported record type code: {value}") from None

        text = str(value).strip().upper()
        if text.isdigit():
            return cls.parse(int(text))
        try:
            return cls[text]
        except KeyError:
            raise CodecError(f"Unknown record type: {value}") from None


class Rcode(IntEnum):
    """Header response codes."""
    NOERROR = 0
    FORMERR = 1
    SERVFAIL = 2
    NXDOMAIN = 3
    NOTIMP = 4
    REFUSED = 5


# RDATA variants. Each exposes ``value``, the display string used in
# record lists and propagation comparisons.

@dataclass(frozen=True)
class AddressData:
    """A or AAAA address."""
    address: str

    @property
    def value(self) -> str:
        return self.address


@dataclass(frozen=True)
class NameData:
    """NS, CNAME, PTR target or SOA primary name server."""
    target: str

    @property
    def value(self) -> str:
        return self.target


@dataclass(frozen=True)
class MXData:
    """Mail exchanger with preference."""
    preference: int
    exchange: str

    @property
    def value(self) -> str:
        return f"{self.preference} {self.exchange}"


@dataclass(frozen=True)
class TXTData:
    """TXT character-strings, joined without separator."""
    strings: tuple[str, ...]

    @property
    def value(self) -> str:
        return "".join(self.strings)


@dataclass(frozen=True)
class SRVData:
    """Service location."""
    priority: int
    weight: int
    port: int
    target: str

    @property
    def value(self) -> str:
        return f"{self.priority} {self.weight} {self.port} {self.target}"


@dataclass(frozen=True)
class CAAData:
    """Certification authority authorization."""
    flags: int
    tag: str
    content: str

    @property
    def value(self) -> str:
        return f'{self.flags} {self.tag} "{self.content}"'


RData = Union[AddressData, NameData, MXData, TXTData, SRVData, CAAData]


@dataclass(frozen=True)
class ResourceRecord:
    """One answer entry."""
    name: str
    rtype: int
    ttl: int
    rdata: RData

    @property
    def value(self) -> str:
        return self.rdata.value

    @property
    def type_name(self) -> str:
        try:
            return RecordType(self.rtype).name
        except ValueError:
            return f"TYPE{self.rtype}"


@dataclass(frozen=True)
class DnsMessage:
    """A decoded wire-format message."""
    id: int = 0
    flags: int = 0
    rcode: int = 0
    qdcount: int = 0
    ancount: int = 0
    question_name: str = ""
    question_type: int = 0
    answers: tuple[ResourceRecord, ...] = field(default_factory=tuple)
    malformed: bool = False

    @property
    def is_response(self) -> bool:
        return bool(self.flags & FLAG_QR)

    @property
    def values(self) -> list[str]:
        return [record.value for record in self.answers]


def new_query_id() -> int:
    """Pick a random 16-bit transaction id."""
    return _rng.randint(0, 0xFFFF)


def encode_name(name: str) -> bytes:
    """Encode a dotted name as length-prefixed labels with a root terminator."""
    name = name.strip()
    if name.endswith("."):
        name = name[:-1]
    if not name:
        return b"\x00"

    encoded = bytearray()
    for label in name.split("."):
        try:
            raw = label.encode("ascii")
        except UnicodeEncodeError:
            try:
                raw = label.encode("idna")
            except UnicodeError as e:
                raise CodecError(f"Invalid label {label!r} in {name!r}: {e}") from None

        if not raw:
            raise CodecError(f"Empty label in {name!r}")
        if len(raw) > MAX_LABEL_LENGTH:
            raise CodecError(
                f"Label {label!r} is {len(raw)} bytes; the limit is {MAX_LABEL_LENGTH}"
            )
        encoded.append(len(raw))
        encoded += raw

    encoded.append(0)
    return bytes(encoded)


def encode_query(
    name: str,
    record_type: "RecordType | str | int",
    query_id: int | None = None,
) -> bytes:
    """
    Build a recursive single-question query.

    Args:
        name: Domain name to query
        record_type: Record type mnemonic or code
        query_id: Transaction id (random when omitted)

    Returns:
        Wire-format query bytes
    """
    qtype = RecordType.parse(record_type)
    if query_id is None:
        query_id = new_query_id()

    header = struct.pack(">HHHHHH", query_id & 0xFFFF, FLAG_RD, 1, 0, 0, 0)
    question = encode_name(name) + struct.pack(">HH", qtype, CLASS_IN)
    return header + question


def read_name(data: bytes, offset: int) -> tuple[str, int]:
    """
    Read a possibly compressed name.

    Pointers are followed iteratively, at most MAX_POINTER_JUMPS times.
    Running past the end of the packet, hitting a reserved label type or
    exceeding the jump limit ends the name with the labels read so far.

    Args:
        data: Whole message
        offset: Offset of the first length/pointer byte

    Returns:
        Tuple of (dotted name without trailing dot, offset just past the
        name as it appears at ``offset``)
    """
    labels: list[str] = []
    position = offset
    resume_at: int | None = None
    jumps = 0

    while position < len(data):
        length = data[position]

        if length & POINTER_MASK == POINTER_MASK:
            if position + 1 >= len(data):
                break
            if resume_at is None:
                resume_at = position + 2
            jumps += 1
            if jumps > MAX_POINTER_JUMPS:
                logger.debug("Name at offset %d exceeds %d pointer jumps", offset, MAX_POINTER_JUMPS)
                break
            position = ((length & 0x3F) << 8) | data[position + 1]
            continue

        if length & POINTER_MASK:
            # 0x40 and 0x80 label types are reserved
            break

        if length == 0:
            position += 1
            break

        end = position + 1 + length
        if end > len(data):
            break
        labels.append(data[position + 1:end].decode("ascii", errors="replace"))
        position = end

    if resume_at is None:
        resume_at = position
    return ".".join(labels), resume_at


class _BadRdata(ValueError):
    pass


def _parse_a(data: bytes, offset: int, length: int) -> RData:
    if length != 4:
        raise _BadRdata(f"A record with {length} bytes")
    return AddressData(socket.inet_ntop(socket.AF_INET, data[offset:offset + 4]))


def _parse_aaaa(data: bytes, offset: int, length: int) -> RData:
    if length != 16:
        raise _BadRdata(f"AAAA record with {length} bytes")
    return AddressData(socket.inet_ntop(socket.AF_INET6, data[offset:offset + 16]))


def _parse_name(data: bytes, offset: int, length: int) -> RData:
    return NameData(read_name(data, offset)[0])


def _parse_mx(data: bytes, offset: int, length: int) -> RData:
    if length < 3:
        raise _BadRdata(f"MX record with {length} bytes")
    (preference,) = struct.unpack_from(">H", data, offset)
    return MXData(preference, read_name(data, offset + 2)[0])


def _parse_txt(data: bytes, offset: int, length: int) -> RData:
    strings = []
    position = offset
    end = offset + length
    while position < end:
        size = data[position]
        chunk = data[position + 1:position + 1 + size]
        if position + 1 + size > end:
            raise _BadRdata("TXT string runs past RDATA")
        strings.append(chunk.decode("utf-8", errors="replace"))
        position += 1 + size
    return TXTData(tuple(strings))


def _parse_srv(data: bytes, offset: int, length: int) -> RData:
    if length < 7:
        raise _BadRdata(f"SRV record with {length} bytes")
    priority, weight, port = struct.unpack_from(">HHH", data, offset)
    return SRVData(priority, weight, port, read_name(data, offset + 6)[0])


def _parse_caa(data: bytes, offset: int, length: int) -> RData:
    if length < 2:
        raise _BadRdata(f"CAA record with {length} bytes")
    flags = data[offset]
    tag_length = data[offset + 1]
    if 2 + tag_length > length:
        raise _BadRdata("CAA tag runs past RDATA")
    tag = data[offset + 2:offset + 2 + tag_length].decode("ascii", errors="replace")
    content = data[offset + 2 + tag_length:offset + length].decode("utf-8", errors="replace")
    return CAAData(flags, tag, content)


_RDATA_PARSERS: dict[int, Callable[[bytes, int, int], RData]] = {
    RecordType.A: _parse_a,
    RecordType.AAAA: _parse_aaaa,
    RecordType.NS: _parse_name,
    RecordType.CNAME: _parse_name,
    RecordType.SOA: _parse_name,
    RecordType.PTR: _parse_name,
    RecordType.MX: _parse_mx,
    RecordType.TXT: _parse_txt,
    RecordType.SRV: _parse_srv,
    RecordType.CAA: _parse_caa,
}


def _decode_answers(data: bytes, offset: int, count: int) -> list[ResourceRecord]:
    records = []

    for index in range(count):
        name, offset = read_name(data, offset)
        if offset + 10 > len(data):
            logger.debug("Answer %d truncated in header, stopping", index)
            break

        rtype, _rclass, ttl, rdlength = struct.unpack_from(">HHIH", data, offset)
        offset += 10
        end = offset + rdlength
        if end > len(data):
            logger.debug("Answer %d RDATA runs past end of message, stopping", index)
            break

        parser = _RDATA_PARSERS.get(rtype)
        if parser is None:
            logger.debug("Skipping answer %d with unsupported type %d", index, rtype)
            offset = end
            continue

        try:
            rdata = parser(data, offset, rdlength)
        except _BadRdata as e:
            logger.debug("Skipping malformed answer %d: %s", index, e)
        else:
            records.append(ResourceRecord(name=name, rtype=rtype, ttl=ttl, rdata=rdata))
        offset = end

    return records


def decode_message(data: bytes) -> DnsMessage:
    """
    Decode a wire-format response.

    A message shorter than the header, a non-zero RCODE or an empty
    answer section all yield a message without answers.
    """
    if len(data) < HEADER_LENGTH:
        logger.debug("Message too short (%d bytes), treating as empty", len(data))
        return DnsMessage(malformed=True)

    msg_id, flags, qdcount, ancount, _nscount, _arcount = struct.unpack_from(">HHHHHH", data, 0)
    rcode = flags & 0x000F

    offset = HEADER_LENGTH
    question_name = ""
    question_type = 0
    for index in range(qdcount):
        qname, offset = read_name(data, offset)
        if index == 0:
            question_name = qname
            if offset + 2 <= len(data):
                (question_type,) = struct.unpack_from(">H", data, offset)
        offset += 4

    answers: list[ResourceRecord] = []
    if rcode != Rcode.NOERROR:
        logger.debug("RCODE %d for %r, ignoring %d answers", rcode, question_name, ancount)
    elif ancount:
        answers = _decode_answers(data, offset, ancount)

    return DnsMessage(
        id=msg_id,
        flags=flags,
        rcode=rcode,
        qdcount=qdcount,
        ancount=ancount,
        question_name=question_name,
        question_type=question_type,
        answers=tuple(answers),
    )
