"""
Data models for Cloud SQL instances, ACL entries and operations.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from errors import NoPublicIPError

ACL_ENTRY_KIND = "sql#aclEntry"
PRIMARY_IP_TYPE = "PRIMARY"
DONE_STATUS = "DONE"


@dataclass
class AuthorizedNetwork:
    """One authorized-network (ACL) entry."""

    value: str  # CIDR or single IP
    name: str = ""
    kind: str = ACL_ENTRY_KIND

    @classmethod
    def from_dict(cls, data: Dict) -> "AuthorizedNetwork":
        return cls(
            value=data["value"],
            name=data.get("name", ""),
            kind=data.get("kind", ACL_ENTRY_KIND),
        )

    def to_dict(self) -> Dict:
        return {"value": self.value, "name": self.name, "kind": self.kind}


@dataclass
class IpMapping:
    """An address assigned to the instance."""

    type: str  # "PRIMARY", "OUTGOING", "PRIVATE"
    ip_address: str

    @classmethod
    def from_dict(cls, data: Dict) -> "IpMapping":
        return cls(type=data.get("type", ""), ip_address=data["ipAddress"])


@dataclass
class IpConfiguration:
    """The ipConfiguration block of instance settings."""

    authorized_networks: List[AuthorizedNetwork] = field(default_factory=list)
    require_ssl: bool = False
    ipv4_enabled: bool = False

    @classmethod
    def from_dict(cls, data: Dict) -> "IpConfiguration":
        return cls(
            authorized_networks=[
                AuthorizedNetwork.from_dict(n)
                for n in data.get("authorizedNetworks", [])
            ],
            require_ssl=_as_bool(data.get("requireSsl", False)),
            ipv4_enabled=_as_bool(data.get("ipv4Enabled", False)),
        )

    def to_dict(self) -> Dict:
        return {
            "authorizedNetworks": [n.to_dict() for n in self.authorized_networks],
            "requireSsl": self.require_ssl,
            "ipv4Enabled": self.ipv4_enabled,
        }


@dataclass
class Settings:
    """Instance settings; only the parts this tool manages are modelled."""

    tier: str = ""
    ip_configuration: IpConfiguration = field(default_factory=IpConfiguration)

    @classmethod
    def from_dict(cls, data: Dict) -> "Settings":
        return cls(
            tier=data.get("tier", ""),
            ip_configuration=IpConfiguration.from_dict(
                data.get("ipConfiguration", {})
            ),
        )

    def to_dict(self) -> Dict:
        return {"tier": self.tier, "ipConfiguration": self.ip_configuration.to_dict()}


@dataclass
class Instance:
    """Snapshot of a Cloud SQL instance's configuration."""

    project: str
    name: str
    region: str = ""
    kind: str = ""
    state: str = ""
    database_version: str = ""
    gce_zone: str = ""
    connection_name: str = ""
    self_link: str = ""
    ip_addresses: List[IpMapping] = field(default_factory=list)
    settings: Settings = field(default_factory=Settings)

    @classmethod
    def from_dict(cls, data: Dict) -> "Instance":
        return cls(
            project=data["project"],
            name=data["name"],
            region=data.get("region", ""),
            kind=data.get("kind", ""),
            state=data.get("state", ""),
            database_version=data.get("databaseVersion", ""),
            gce_zone=data.get("gceZone", ""),
            connection_name=data.get("connectionName", ""),
            self_link=data.get("selfLink", ""),
            ip_addresses=[IpMapping.from_dict(a) for a in data.get("ipAddresses", [])],
            settings=Settings.from_dict(data.get("settings", {})),
        )

    def to_dict(self) -> Dict:
        return {
            "kind": self.kind,
            "project": self.project,
            "name": self.name,
            "region": self.region,
            "gceZone": self.gce_zone,
            "state": self.state,
            "databaseVersion": self.database_version,
            "connectionName": self.connection_name,
            "selfLink": self.self_link,
            "ipAddresses": [
                {"type": a.type, "ipAddress": a.ip_address} for a in self.ip_addresses
            ],
            "settings": self.settings.to_dict(),
        }

    @property
    def authorized_networks(self) -> List[AuthorizedNetwork]:
        return self.settings.ip_configuration.authorized_networks

    def get_public_ip(self) -> str:
        """
        Return the instance's PRIMARY address.

        Raises:
            NoPublicIPError: If no address is tagged PRIMARY
        """
        for address in self.ip_addresses:
            if address.type == PRIMARY_IP_TYPE:
                return address.ip_address
        raise NoPublicIPError(f"Instance {self.name} has no {PRIMARY_IP_TYPE} address")


@dataclass
class Operation:
    """A Cloud SQL long-running operation resource."""

    status: str
    self_link: str = ""
    kind: str = ""
    name: str = ""
    operation_type: str = ""
    target_id: str = ""
    target_link: str = ""
    target_project: str = ""
    user: str = ""
    insert_time: str = ""
    start_time: str = ""
    end_time: str = ""
    error: Optional[Dict] = None

    @classmethod
    def from_dict(cls, data: Dict) -> "Operation":
        status = data.get("status", "")
        if not isinstance(status, str):
            raise TypeError(f"operation status must be a string, got {status!r}")
        return cls(
            status=status,
            self_link=data.get("selfLink", ""),
            kind=data.get("kind", ""),
            name=data.get("name", ""),
            operation_type=data.get("operationType", ""),
            target_id=data.get("targetId", ""),
            target_link=data.get("targetLink", ""),
            target_project=data.get("targetProject", ""),
            user=data.get("user", ""),
            insert_time=data.get("insertTime", ""),
            start_time=data.get("startTime", ""),
            end_time=data.get("endTime", ""),
            error=data.get("error"),
        )

    def to_dict(self) -> Dict:
        data = {
            "kind": self.kind,
            "name": self.name,
            "status": self.status,
            "operationType": self.operation_type,
            "selfLink": self.self_link,
            "targetId": self.target_id,
            "targetLink": self.target_link,
            "targetProject": self.target_project,
            "user": self.user,
            "insertTime": self.insert_time,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }
        if self.error:
            data["error"] = self.error
        return data

    @property
    def is_done(self) -> bool:
        return self.status == DONE_STATUS


def _as_bool(value) -> bool:
    # requireSsl is sometimes echoed back as a string
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)
