from dataclasses import dataclass, field

from pydantic import Field

from .common import BasePydanticModel

NETWORK_PROTOCOL = "network"
NETWORK_PROTOCOL_LABEL = "Network Port"

# Older clients read the board id from this key instead of "board".
LEGACY_BOARD_KEY = "."


class Port(BasePydanticModel):
    address: str # IP address of the board, empty if none was advertised
    address_label: str = Field(..., alias="label", description="Human readable address, e.g. 'myboard at 192.168.1.5'.")
    protocol: str = NETWORK_PROTOCOL
    protocol_label: str = Field(default=NETWORK_PROTOCOL_LABEL, alias="protocolLabel")
    # Insertion order is kept: hostname, port, then TXT fields as advertised.
    properties: dict[str, str] = Field(default_factory=dict)

    def identity_key(self) -> str:
        """Key used to deduplicate sightings of the same board."""
        return f"{self.address}:{self.properties.get('port', '')} {self.properties.get('board', '')}"

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True)


@dataclass
class ServiceEntry:
    """A raw reply returned by an mDNS query, before translation."""

    name: str
    host: str = ""
    addr_v4: str | None = None
    addr_v6: str | None = None
    port: int = 0
    info_fields: list[str] = field(default_factory=list)
