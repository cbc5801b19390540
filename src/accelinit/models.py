# Copyright 2025 Multikernel Technologies, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Data models for KubeVirt host devices and cloud-init data sources.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from enum import Enum


# Resource name -> requested device count, in document order
ResourceDeclaration = Dict[str, int]


class ObjectKind(Enum):
    """KubeVirt object kinds accelinit knows how to default."""
    VIRTUAL_MACHINE = "VirtualMachine"
    VIRTUAL_MACHINE_INSTANCE = "VirtualMachineInstance"


class CloudInitSource(Enum):
    """
    Cloud-init volume flavours.

    - NO_CLOUD: cloudInitNoCloud volume
    - CONFIG_DRIVE: cloudInitConfigDrive volume
    """
    NO_CLOUD = "cloudInitNoCloud"
    CONFIG_DRIVE = "cloudInitConfigDrive"


@dataclass
class HostDevice:
    """A host device entry of a VMI domain spec."""
    name: str
    device_name: str
    extra: Dict[str, Any] = field(default_factory=dict)  # tag, claimName, ...

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HostDevice":
        extra = {k: v for k, v in data.items() if k not in ("name", "deviceName")}
        return cls(
            name=data.get("name", ""),
            device_name=data.get("deviceName", ""),
            extra=extra,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {"name": self.name, "deviceName": self.device_name}
        data.update(self.extra)
        return data


@dataclass
class CloudInitData:
    """User and network data read from a cloud-init volume."""
    volume_name: str
    source: CloudInitSource
    user_data: str = ""
    network_data: str = ""

    @property
    def has_user_data(self) -> bool:
        return bool(self.user_data.strip())


@dataclass
class ReconcileSummary:
    """Outcome of one controller pass over all virtual machines."""
    seen: int = 0
    updated: int = 0
    failed: int = 0
    errors: Dict[str, str] = field(default_factory=dict)  # "ns/name" -> message

    def record_failure(self, key: str, error: Exception) -> None:
        self.failed += 1
        self.errors[key] = str(error)


def object_key(obj: Dict[str, Any]) -> str:
    """Return the "namespace/name" key of a manifest."""
    metadata = obj.get("metadata") or {}
    namespace: Optional[str] = metadata.get("namespace")
    name = metadata.get("name", "")
    return f"{namespace}/{name}" if namespace else name
