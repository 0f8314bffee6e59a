"""Integration package, the container that owns integration flows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class IntegrationPackage:
    id: str = ""
    name: str = ""
    description: str = ""
    short_text: str = ""
    version: str = ""
    vendor: str = ""
    mode: str = ""
    created_by: str = ""
    creation_date: str = ""
    modified_by: str = ""
    modified_date: str = ""

    @classmethod
    def from_odata(cls, entity: dict[str, Any]) -> IntegrationPackage:
        return cls(
            id=entity.get("Id") or "",
            name=entity.get("Name") or "",
            description=entity.get("Description") or "",
            short_text=entity.get("ShortText") or "",
            version=entity.get("Version") or "",
            vendor=entity.get("Vendor") or "",
            mode=entity.get("Mode") or "",
            created_by=entity.get("CreatedBy") or "",
            creation_date=entity.get("CreationDate") or "",
            modified_by=entity.get("ModifiedBy") or "",
            modified_date=entity.get("ModifiedDate") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "Id": self.id,
            "Name": self.name,
            "Description": self.description,
            "ShortText": self.short_text,
            "Version": self.version,
            "Vendor": self.vendor,
            "Mode": self.mode,
            "CreatedBy": self.created_by,
            "CreationDate": self.creation_date,
            "ModifiedBy": self.modified_by,
            "ModifiedDate": self.modified_date,
        }
