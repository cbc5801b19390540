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
accelinit: accelerator host devices for KubeVirt

Reserves hardware-accelerator host devices on KubeVirt virtual machines from
an `inaccel` block in the guest's cloud-init user data.
"""

__version__ = "0.1.0"

# Export main components for easy access
from .devices import (
    canonical_name,
    is_owned_device,
    expand_declaration,
    reconcile_host_devices,
)
from .cloudconfig import parse_cloud_config
from .cloudinit import CloudInitResolver, LocalSecretStore
from .defaulter import (
    VirtualMachineDefaulter,
    VirtualMachineInstanceDefaulter,
    defaulter_for,
)
from .models import HostDevice, CloudInitData, ObjectKind
from .exceptions import (
    AccelInitError,
    ConfigParseError,
    ResolutionError,
    UnsupportedObjectError,
    ConfigurationError,
    KubeAPIError,
    NotFoundError,
    ConflictError,
    WebhookError,
)

__all__ = [
    # Core functions
    'canonical_name',
    'is_owned_device',
    'expand_declaration',
    'reconcile_host_devices',
    'parse_cloud_config',
    # Collaborators
    'CloudInitResolver',
    'LocalSecretStore',
    'VirtualMachineDefaulter',
    'VirtualMachineInstanceDefaulter',
    'defaulter_for',
    # Models
    'HostDevice',
    'CloudInitData',
    'ObjectKind',
    # Exceptions
    'AccelInitError',
    'ConfigParseError',
    'ResolutionError',
    'UnsupportedObjectError',
    'ConfigurationError',
    'KubeAPIError',
    'NotFoundError',
    'ConflictError',
    'WebhookError',
]
