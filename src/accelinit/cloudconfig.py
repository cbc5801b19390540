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
Cloud-config parser for accelerator declarations.

The guest's user data is a YAML cloud-config document. Only the `inaccel`
key is consumed; everything else belongs to cloud-init and is ignored:

    #cloud-config
    inaccel:
      xilinx.com/fpga-xilinx_u280_xdma_201920_3: 2
    packages:
      - htop
"""

import logging
from typing import Optional

import yaml

from .config import CLOUD_CONFIG_KEY, MAX_DEVICES_PER_OBJECT
from .exceptions import ConfigParseError
from .models import ResourceDeclaration
from .quantity import quantity_count

logger = logging.getLogger(__name__)


def parse_cloud_config(user_data: Optional[str]) -> ResourceDeclaration:
    """
    Extract the accelerator declaration from cloud-init user data.

    Args:
        user_data: Raw user data, or None when no cloud-init data exists

    Returns:
        Mapping of resource name to device count, in document order.
        Empty when there is no user data or no `inaccel` key.

    Raises:
        ConfigParseError: If the user data is not a YAML mapping, or the
            declaration is not a mapping of valid device counts, or asks for
            more than MAX_DEVICES_PER_OBJECT devices in total
    """
    if user_data is None or not user_data.strip():
        return {}

    try:
        document = yaml.safe_load(user_data)
    except yaml.YAMLError as e:
        raise ConfigParseError(f"Failed to parse cloud-init user data: {e}")

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigParseError(
            f"Cloud-init user data must be a mapping, got {type(document).__name__}"
        )

    block = document.get(CLOUD_CONFIG_KEY)
    if block is None:
        return {}
    if not isinstance(block, dict):
        raise ConfigParseError(
            f"'{CLOUD_CONFIG_KEY}' must be a mapping of resource name to quantity, "
            f"got {type(block).__name__}"
        )

    declaration: ResourceDeclaration = {}
    remaining = MAX_DEVICES_PER_OBJECT
    for resource_name, quantity in block.items():
        try:
            count = quantity_count(quantity, maximum=remaining)
        except ConfigParseError as e:
            raise ConfigParseError(f"'{CLOUD_CONFIG_KEY}.{resource_name}': {e}")
        declaration[str(resource_name)] = count
        remaining -= count

    logger.debug("Parsed accelerator declaration: %s", declaration)
    return declaration
