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
Pytest configuration and fixtures for accelinit tests.
"""

import base64
import pytest
import sys
from pathlib import Path

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from accelinit.cloudinit import CloudInitResolver, LocalSecretStore


USER_DATA = """#cloud-config
inaccel:
  gpuA: 3
  gpuB: "2"
packages:
  - htop
"""


def b64(text):
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


@pytest.fixture
def user_data():
    return USER_DATA


@pytest.fixture
def userdata_secret():
    """Secret holding the cloud-config, as served by the API server."""
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": "vm-userdata", "namespace": "accel"},
        "data": {"userdata": b64(USER_DATA)},
    }


@pytest.fixture
def secret_store(userdata_secret):
    return LocalSecretStore([userdata_secret])


@pytest.fixture
def resolver(secret_store):
    return CloudInitResolver(secret_store)


@pytest.fixture
def vmi_spec():
    """VMI spec with a foreign GPU, a stale owned device and a NIC."""
    return {
        "domain": {
            "devices": {
                "hostDevices": [
                    {"name": "gpu0", "deviceName": "nvidia.com/GA102"},
                    {"name": "inaccel0", "deviceName": "gpuOld"},
                    {"name": "nic", "deviceName": "intel.com/e810", "tag": "net"},
                ],
            },
        },
        "volumes": [
            {"name": "rootdisk", "containerDisk": {"image": "quay.io/containerdisks/fedora"}},
            {"name": "cloudinitdisk", "cloudInitNoCloud": {"userDataSecretRef": {"name": "vm-userdata"}}},
        ],
    }


@pytest.fixture
def sample_vmi(vmi_spec):
    return {
        "apiVersion": "kubevirt.io/v1",
        "kind": "VirtualMachineInstance",
        "metadata": {"name": "fpga-vmi", "namespace": "accel"},
        "spec": vmi_spec,
    }


@pytest.fixture
def sample_vm(vmi_spec):
    return {
        "apiVersion": "kubevirt.io/v1",
        "kind": "VirtualMachine",
        "metadata": {"name": "fpga-vm", "namespace": "accel", "resourceVersion": "42"},
        "spec": {
            "running": True,
            "template": {
                "metadata": {"labels": {"app": "fpga"}},
                "spec": vmi_spec,
            },
        },
    }
