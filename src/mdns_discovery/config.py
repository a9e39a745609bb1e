"""Configuration management for mdns-discovery."""

import json
from pathlib import Path
from typing import List

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DiscoveryConfig(BaseModel):
    """Configuration for the mDNS port discovery loop."""

    service_name: str = Field(default="_arduino._tcp", description="mDNS service type queried on every round.")
    domain: str = Field(default="local", description="mDNS domain the service lives in.")

    ports_ttl_seconds: float = Field(default=60.0, gt=0, le=3600, description="Discovered ports stay alive this long since their last sighting.")
    query_interval_seconds: float = Field(default=30.0, gt=0, le=3600, description="Interval between two query rounds.")
    discovery_timeout_seconds: float = Field(default=15.0, gt=0, le=300, description="A single per-interface query returns early or times out after this.")
    resolve_timeout_ms: int = Field(default=3000, ge=100, le=60000, description="Timeout for resolving a single browsed service instance.")

    ipv4_group: str = Field(default="224.0.0.251", description="IPv4 multicast group used to check connectivity.")
    ipv6_group: str = Field(default="ff02::fb", description="IPv6 multicast group used to check connectivity.")
    mdns_port: int = Field(default=5353, ge=1, le=65535, description="mDNS UDP port.")

    network_interfaces: List[str] = Field(default_factory=list, description="Restrict polling to these interfaces (e.g., ['eth0', 'wlan0']). If empty, all eligible interfaces are used.")

    @property
    def service_fqdn(self) -> str:
        """Fully qualified service type, e.g. ``_arduino._tcp.local.``."""
        return f"{self.service_name}.{self.domain}."


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format ('json' or 'console')")


class Config(BaseSettings):
    """Main configuration. Loads from environment variables prefixed with MDNS_DISCOVERY_."""

    model_config = SettingsConfigDict(
        env_prefix='MDNS_DISCOVERY_',
        env_nested_delimiter='__', # e.g., MDNS_DISCOVERY_DISCOVERY__PORTS_TTL_SECONDS
        extra='ignore',
        env_file='.env',
        env_file_encoding='utf-8'
    )

    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, file_path: Path) -> "Config":
        """Create configuration strictly from a JSON file.
        Environment variables are not layered on top of the file contents.
        """
        with open(file_path) as f:
            config_data = json.load(f)
        return cls.model_validate(config_data)
