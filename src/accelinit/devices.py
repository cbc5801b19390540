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
Host device list reconciliation.

accelinit owns every host device named `inaccel<N>`; all other host devices
belong to someone else and are never touched. On each call the owned devices
are dropped and rebuilt from the declaration:

    devices:     [gpu0, inaccel0 -> a, nic, inaccel1 -> a]
    declaration: {"a": 1, "b": 2}
    result:      [gpu0, nic, inaccel0 -> a, inaccel1 -> b, inaccel2 -> b]

Indices are global across the declaration, not per resource, and follow the
declaration's iteration order. Shrinking a quantity drops the surplus entries.
"""

import re
from typing import List, Optional, Tuple

from .config import HOST_DEVICE_PREFIX
from .models import HostDevice, ResourceDeclaration


_OWNED_NAME_RE = re.compile(rf"^{HOST_DEVICE_PREFIX}([0-9]+)$")


def canonical_name(resource_name: str, index: int) -> str:
    """
    Return the owned host device name for an index.

    The name depends on the index alone; resource_name is accepted so callers
    can pass the pair they are building.
    """
    return f"{HOST_DEVICE_PREFIX}{index}"


def owned_index(device: HostDevice) -> Optional[int]:
    """Return the index encoded in an owned device name, or None."""
    match = _OWNED_NAME_RE.match(device.name)
    if not match:
        return None
    return int(match.group(1))


def is_owned_device(device: HostDevice, index: Optional[int] = None) -> bool:
    """
    Check whether a host device is owned by accelinit.

    Args:
        device: Host device to test
        index: If given, only the device named for this index matches

    Returns:
        True if the device carries an owned name
    """
    if index is not None:
        return device.name == canonical_name("", index)
    return owned_index(device) is not None


def expand_declaration(declaration: ResourceDeclaration) -> List[Tuple[str, int]]:
    """Flatten a declaration into (resource_name, index) pairs."""
    targets = []
    index = 0
    for resource_name, quantity in declaration.items():
        for _ in range(quantity):
            targets.append((resource_name, index))
            index += 1
    return targets


def host_device(resource_name: str, index: int) -> HostDevice:
    return HostDevice(name=canonical_name(resource_name, index), device_name=resource_name)


def reconcile_host_devices(devices: List[HostDevice],
                           declaration: ResourceDeclaration) -> List[HostDevice]:
    """
    Rebuild the owned part of a host device list from a declaration.

    Args:
        devices: Current host devices (not modified)
        declaration: Resource name -> device count

    Returns:
        New list: foreign devices in their original order, followed by one
        owned device per declared unit
    """
    result = [device for device in devices if not is_owned_device(device)]

    for resource_name, index in expand_declaration(declaration):
        result.append(host_device(resource_name, index))

    return result
