"""Integration flow (design-time artifact) as returned by the service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

ACTIVE_VERSION = "active"


@dataclass(frozen=True)
class IntegrationFlow:
    """Identity and descriptive fields of one integration flow.

    Only ``id``, ``version``, ``package_id`` and ``name`` matter to the
    transport; the rest is carried for display.
    """

    id: str = ""
    version: str = ""
    package_id: str = ""
    name: str = ""
    description: str = ""
    sender: str = ""
    receiver: str = ""
    created_by: str = ""
    created_at: str = ""
    modified_by: str = ""
    modified_at: str = ""
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_odata(cls, entity: dict[str, Any]) -> IntegrationFlow:
        return cls(
            id=entity.get("Id") or "",
            version=entity.get("Version") or "",
            package_id=entity.get("PackageId") or "",
            name=entity.get("Name") or "",
            description=entity.get("Description") or "",
            sender=entity.get("Sender") or "",
            receiver=entity.get("Receiver") or "",
            created_by=entity.get("CreatedBy") or "",
            created_at=entity.get("CreatedAt") or "",
            modified_by=entity.get("ModifiedBy") or "",
            modified_at=entity.get("ModifiedAt") or "",
            metadata=dict(entity.get("__metadata") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the service's field names."""
        return {
            "Id": self.id,
            "Version": self.version,
            "PackageId": self.package_id,
            "Name": self.name,
            "Description": self.description,
            "Sender": self.sender,
            "Receiver": self.receiver,
            "CreatedBy": self.created_by,
            "CreatedAt": self.created_at,
            "ModifiedBy": self.modified_by,
            "ModifiedAt": self.modified_at,
        }
