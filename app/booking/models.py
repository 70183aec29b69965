"""
Data models for booking records.

Records are immutable: a refresh produces a new BookingRecord instead of
mutating the cached one. Wire dictionaries use the upstream's camelCase
field names; `expiryTime` is a decimal string of Unix seconds.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Tuple


def _parse_flag(value: Any, name: str) -> bool:
    """Wire boolean: a JSON bool, or the strings "true"/"false" in any case."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError(f"{name} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class Location:
    """A port or station."""
    code: str
    display_name: str
    url: str

    def __post_init__(self):
        if not self.code:
            raise ValueError("Location code must not be empty")

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "displayName": self.display_name, "url": self.url}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Location":
        return cls(
            code=data["code"],
            display_name=data.get("displayName", ""),
            url=data.get("url", ""),
        )


@dataclass(frozen=True)
class OriginAndDestinationPair:
    """Both ends of a segment."""
    origin: Location
    origin_city: str
    destination: Location
    destination_city: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "origin": self.origin.to_dict(),
            "originCity": self.origin_city,
            "destination": self.destination.to_dict(),
            "destinationCity": self.destination_city,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OriginAndDestinationPair":
        return cls(
            origin=Location.from_dict(data["origin"]),
            origin_city=data.get("originCity", ""),
            destination=Location.from_dict(data["destination"]),
            destination_city=data.get("destinationCity", ""),
        )


@dataclass(frozen=True)
class Segment:
    """One leg of a booking. `id` is the merge key."""
    id: int
    origin_and_destination_pair: OriginAndDestinationPair

    @property
    def route_display(self) -> str:
        """Format route as 'AAA → BBB'."""
        pair = self.origin_and_destination_pair
        return f"{pair.origin.code} → {pair.destination.code}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "originAndDestinationPair": self.origin_and_destination_pair.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Segment":
        return cls(
            id=int(data["id"]),
            origin_and_destination_pair=OriginAndDestinationPair.from_dict(
                data["originAndDestinationPair"]
            ),
        )


@dataclass(frozen=True)
class BookingRecord:
    """
    A booking document as served by the upstream.

    `expiry_time` is the server-declared domain expiry in Unix seconds,
    kept as the decimal string the wire format uses.
    """
    ship_reference: str
    ship_token: str
    can_issue_ticket_checking: bool
    expiry_time: str
    duration: int
    segments: Tuple[Segment, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not str(self.expiry_time).strip().isdigit():
            raise ValueError(f"expiryTime must be decimal Unix seconds, got {self.expiry_time!r}")
        ids = [segment.id for segment in self.segments]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate segment ids in booking {self.ship_reference}: {ids}")

    @property
    def expiry_time_ms(self) -> int:
        """Domain expiry in milliseconds since epoch."""
        return int(self.expiry_time) * 1000

    @property
    def segment_ids(self) -> List[int]:
        return [segment.id for segment in self.segments]

    def with_expiry(self, expiry_time: str) -> "BookingRecord":
        """Copy of this record stamped with another expiry."""
        return replace(self, expiry_time=str(expiry_time))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the upstream wire shape."""
        return {
            "shipReference": self.ship_reference,
            "shipToken": self.ship_token,
            "canIssueTicketChecking": self.can_issue_ticket_checking,
            "expiryTime": self.expiry_time,
            "duration": self.duration,
            "segments": [segment.to_dict() for segment in self.segments],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BookingRecord":
        """
        Create from the upstream wire shape.

        Raises:
            KeyError, TypeError, ValueError: if the payload is malformed
        """
        return cls(
            ship_reference=data["shipReference"],
            ship_token=data["shipToken"],
            can_issue_ticket_checking=_parse_flag(
                data.get("canIssueTicketChecking", False), "canIssueTicketChecking"
            ),
            expiry_time=str(data["expiryTime"]),
            duration=int(data.get("duration", 0)),
            segments=tuple(Segment.from_dict(s) for s in data.get("segments") or []),
        )
