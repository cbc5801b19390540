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
Defaulters for KubeVirt objects.

A defaulter resolves the object's cloud-init user data, parses the accelerator
declaration and rewrites the host device list in place. Every step that can
fail runs before the object is touched, so a failed call leaves the object
exactly as it was.
"""

import logging
from typing import Any, Dict, List

from .cloudconfig import parse_cloud_config
from .cloudinit import CloudInitResolver
from .devices import reconcile_host_devices
from .exceptions import InvalidObjectError, UnsupportedObjectError
from .models import HostDevice, ObjectKind, object_key

logger = logging.getLogger(__name__)


def _mapping(value: Any, where: str) -> Dict[str, Any]:
    """Return a manifest field that must be a mapping; null reads as empty."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidObjectError(f"'{where}' must be a mapping, got {type(value).__name__}")
    return value


def _host_devices(value: Any) -> List[Dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(d, dict) for d in value):
        raise InvalidObjectError("'domain.devices.hostDevices' must be a list of mappings")
    return value


class Defaulter:
    """Base defaulter; subclasses say where the VMI spec lives."""

    kind: ObjectKind

    def __init__(self, resolver: CloudInitResolver):
        self.resolver = resolver

    def vmi_spec(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def host_devices_path(self) -> List[str]:
        """Path of the hostDevices list from the object root."""
        raise NotImplementedError

    def check_kind(self, obj: Dict[str, Any]) -> None:
        kind = obj.get("kind")
        if kind is not None and kind != self.kind.value:
            raise UnsupportedObjectError(
                f"{self.kind.value} defaulter did not understand object: {kind}"
            )

    def default(self, obj: Dict[str, Any]) -> bool:
        """
        Apply the accelerator declaration to an object.

        Args:
            obj: Object manifest, mutated in place on success

        Returns:
            True if the host device list was changed

        Raises:
            UnsupportedObjectError: If the object kind does not match
            ResolutionError: If the cloud-init volume cannot be resolved
            ConfigParseError: If the user data is malformed
            InvalidObjectError: If the spec or its host device list is malformed
        """
        self.check_kind(obj)

        spec = self.vmi_spec(obj)
        namespace = _mapping(obj.get("metadata"), "metadata").get("namespace", "")

        cloud_init = self.resolver.resolve(namespace, spec)
        if cloud_init is None or not cloud_init.has_user_data:
            logger.debug("%s %s has no cloud-init user data", self.kind.value, object_key(obj))
            return False

        declaration = parse_cloud_config(cloud_init.user_data)

        domain = _mapping(spec.get("domain"), "domain")
        devices_spec = _mapping(domain.get("devices"), "domain.devices")
        current = [HostDevice.from_dict(d) for d in _host_devices(devices_spec.get("hostDevices"))]
        desired = reconcile_host_devices(current, declaration)

        if desired == current:
            return False

        if spec.get("domain") is None:
            spec["domain"] = domain
        if domain.get("devices") is None:
            domain["devices"] = devices_spec
        if desired:
            devices_spec["hostDevices"] = [device.to_dict() for device in desired]
        else:
            devices_spec.pop("hostDevices", None)

        logger.info(
            "Defaulted %s %s host devices: %s",
            self.kind.value,
            object_key(obj),
            ", ".join(f"{d.name}={d.device_name}" for d in desired) or "none",
        )
        return True


class VirtualMachineDefaulter(Defaulter):
    """Defaults the VMI template of a VirtualMachine."""

    kind = ObjectKind.VIRTUAL_MACHINE

    def vmi_spec(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        template = _mapping(_mapping(obj.get("spec"), "spec").get("template"), "spec.template")
        return _mapping(template.get("spec"), "spec.template.spec")

    def host_devices_path(self) -> List[str]:
        return ["spec", "template", "spec", "domain", "devices", "hostDevices"]


class VirtualMachineInstanceDefaulter(Defaulter):
    """Defaults a VirtualMachineInstance."""

    kind = ObjectKind.VIRTUAL_MACHINE_INSTANCE

    def vmi_spec(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        return _mapping(obj.get("spec"), "spec")

    def host_devices_path(self) -> List[str]:
        return ["spec", "domain", "devices", "hostDevices"]


DEFAULTERS = {
    ObjectKind.VIRTUAL_MACHINE: VirtualMachineDefaulter,
    ObjectKind.VIRTUAL_MACHINE_INSTANCE: VirtualMachineInstanceDefaulter,
}


def defaulter_for(kind: ObjectKind, resolver: CloudInitResolver) -> Defaulter:
    """Return the defaulter for an object kind."""
    return DEFAULTERS[kind](resolver)
