"""
Interaction Log Data Models

Defines the records returned to callers after a poll has been decrypted.
"""

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterator, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..core.exceptions import DecryptionError


class Protocol(str, Enum):
    """Interaction protocols reported by the server."""

    DNS = "dns"
    HTTP = "http"
    SMTP = "smtp"
    FTP = "ftp"
    LDAP = "ldap"
    SMB = "smb"
    SMPP = "smpp"
    RESPONDER = "responder"


class DnsQType(str, Enum):
    """DNS query types the server records."""

    A = "A"
    NS = "NS"
    CNAME = "CNAME"
    SOA = "SOA"
    PTR = "PTR"
    MX = "MX"
    TXT = "TXT"
    AAAA = "AAAA"


_IDENTIFIED = frozenset({"unique_id", "full_id", "remote_address", "raw_request"})

# Fields that must be present for a log to count as a typed record
REQUIRED_FIELDS: Dict[Protocol, FrozenSet[str]] = {
    Protocol.DNS: _IDENTIFIED | {"raw_response"},
    Protocol.HTTP: _IDENTIFIED | {"raw_response"},
    Protocol.LDAP: _IDENTIFIED | {"raw_response"},
    Protocol.SMTP: _IDENTIFIED | {"smtp_from"},
    Protocol.SMPP: _IDENTIFIED,
    Protocol.FTP: frozenset({"remote_address", "raw_request"}),
    Protocol.SMB: frozenset({"raw_request"}),
    Protocol.RESPONDER: frozenset({"raw_request"}),
}

_TIMESTAMP_RE = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?"
    r"(?P<tz>Z|z|[+-]\d{2}:?\d{2})?$"
)


def parse_timestamp(value: str) -> datetime:
    """
    Parse an RFC 3339 timestamp as produced by the server.

    Fractions longer than microseconds are truncated and a missing offset is
    taken as UTC.

    Raises:
        ValueError: If the string is not an RFC 3339 timestamp
    """
    match = _TIMESTAMP_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid timestamp: {value!r}")

    frac = (match.group("frac") or "").ljust(6, "0")[:6]
    tz = match.group("tz") or "+00:00"
    if tz in ("Z", "z"):
        tz = "+00:00"
    elif ":" not in tz:
        tz = f"{tz[:3]}:{tz[3:]}"

    return datetime.fromisoformat(f"{match.group('base').replace(' ', 'T')}.{frac}{tz}")


class InteractionLog(BaseModel):
    """A fully parsed out-of-band interaction record."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    protocol: Protocol = Field(description="Interaction protocol")
    unique_id: Optional[str] = Field(default=None, alias="unique-id")
    full_id: Optional[str] = Field(default=None, alias="full-id")
    q_type: Optional[DnsQType] = Field(default=None, alias="q-type")
    raw_request: Optional[str] = Field(default=None, alias="raw-request")
    raw_response: Optional[str] = Field(default=None, alias="raw-response")
    smtp_from: Optional[str] = Field(default=None, alias="smtp-from")
    remote_address: Optional[str] = Field(default=None, alias="remote-address")
    timestamp: datetime = Field(description="Server-side capture time")

    @field_validator("protocol", mode="before")
    @classmethod
    def normalize_protocol(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v

    @field_validator("q_type", mode="before")
    @classmethod
    def normalize_q_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper() or None
        return v

    @field_validator("timestamp", mode="before")
    @classmethod
    def validate_timestamp(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_timestamp(v)
        return v

    @model_validator(mode="after")
    def check_required_fields(self) -> "InteractionLog":
        missing = sorted(
            name for name in REQUIRED_FIELDS[self.protocol] if getattr(self, name) is None
        )
        if missing:
            raise ValueError(
                f"{self.protocol.value} log is missing fields: {', '.join(missing)}"
            )
        return self

    @classmethod
    def try_parse(cls, document: str) -> Union["InteractionLog", "RawLog"]:
        """
        Parse ``document`` into a typed record, or keep it raw if it does not fit.

        Args:
            document: Decrypted JSON text of one interaction

        Returns:
            InteractionLog on success, otherwise RawLog carrying the parse error
        """
        try:
            return cls.model_validate_json(document)
        except ValidationError as e:
            return RawLog(log_entry=document, parse_error=str(e))


class RawLog(BaseModel):
    """Decrypted interaction text that was not (or could not be) parsed."""

    model_config = ConfigDict(frozen=True)

    log_entry: str = Field(description="Decrypted JSON text")
    parse_error: Optional[str] = Field(
        default=None, description="Why typed parsing was skipped, if it was attempted"
    )

    def as_dict(self) -> Dict[str, Any]:
        return json.loads(self.log_entry)


LogEntry = Union[InteractionLog, RawLog]


@dataclass
class PollResult:
    """
    Outcome of a single poll.

    ``logs`` holds every entry that decoded; ``errors`` holds one DecryptionError
    per entry that did not (or a single batch-level error if the AES key itself
    could not be recovered).
    """

    logs: List[LogEntry] = field(default_factory=list)
    errors: List[DecryptionError] = field(default_factory=list)
    received_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def is_empty(self) -> bool:
        return not self.logs and not self.errors

    @property
    def interactions(self) -> List[InteractionLog]:
        """Only the typed records."""
        return [log for log in self.logs if isinstance(log, InteractionLog)]

    @property
    def raw_logs(self) -> List[RawLog]:
        return [log for log in self.logs if isinstance(log, RawLog)]

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(self.logs)

    def __len__(self) -> int:
        return len(self.logs)
