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
Cloud-init data source resolution.

A VMI spec carries its cloud-init payload in a `cloudInitNoCloud` or
`cloudInitConfigDrive` volume. The payload may be inline, base64 encoded, or
stored in a Secret referenced by name:

    volumes:
    - name: cloudinitdisk
      cloudInitNoCloud:
        userDataSecretRef:
          name: my-vm-userdata

Only the first cloud-init volume of the spec is considered, matching how
KubeVirt builds the guest's data source.
"""

import base64
import binascii
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .config import USER_DATA_SECRET_KEYS, NETWORK_DATA_SECRET_KEYS
from .exceptions import AccelInitError, InvalidObjectError, NotFoundError, ResolutionError
from .models import CloudInitData, CloudInitSource

logger = logging.getLogger(__name__)


def find_cloud_init_volume(spec: Dict[str, Any]) -> Optional[Tuple[Dict[str, Any], CloudInitSource]]:
    """
    Find the first cloud-init volume of a VMI spec.

    Returns:
        (volume, source) tuple, or None if the spec has no cloud-init volume

    Raises:
        InvalidObjectError: If the volume list is not a list of mappings
    """
    volumes = spec.get("volumes") or []
    if not isinstance(volumes, list):
        raise InvalidObjectError("'volumes' must be a list")

    for volume in volumes:
        if not isinstance(volume, dict):
            raise InvalidObjectError("'volumes' entries must be mappings")
        for source in (CloudInitSource.NO_CLOUD, CloudInitSource.CONFIG_DRIVE):
            if volume.get(source.value) is not None:
                if not isinstance(volume[source.value], dict):
                    raise InvalidObjectError(
                        f"'{source.value}' of volume '{volume.get('name', '')}' must be a mapping"
                    )
                return volume, source
    return None


def decode_base64(value: str, what: str) -> str:
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise ResolutionError(f"Failed to decode {what}: {e}")


def read_secret_key(secret: Dict[str, Any], keys: Iterable[str]) -> Optional[str]:
    """
    Read the first present key of a Secret manifest.

    `data` values are base64 encoded as served by the API server;
    `stringData` (only seen in local manifests) is used verbatim.
    """
    data = secret.get("data") or {}
    string_data = secret.get("stringData") or {}
    name = (secret.get("metadata") or {}).get("name", "")

    for key in keys:
        if key in string_data:
            return string_data[key]
        if key in data:
            return decode_base64(data[key] or "", f"key '{key}' of secret '{name}'")
    return None


class LocalSecretStore:
    """Secret reader backed by in-memory Secret manifests."""

    def __init__(self, secrets: Optional[List[Dict[str, Any]]] = None,
                 default_namespace: str = "default"):
        self.default_namespace = default_namespace
        self.secrets: Dict[Tuple[str, str], Dict[str, Any]] = {}
        for secret in secrets or []:
            self.add(secret)

    def add(self, secret: Dict[str, Any]) -> None:
        metadata = secret.get("metadata") or {}
        namespace = metadata.get("namespace") or self.default_namespace
        self.secrets[(namespace, metadata.get("name", ""))] = secret

    def get_secret(self, namespace: str, name: str) -> Dict[str, Any]:
        secret = self.secrets.get((namespace or self.default_namespace, name))
        if secret is None:
            raise NotFoundError(f'secrets "{name}" not found', status_code=404)
        return secret


class CloudInitResolver:
    """
    Resolves the cloud-init payload of a VMI spec.

    The secret reader is any object with a
    `get_secret(namespace, name) -> dict` method, typically a KubeClient.
    """

    def __init__(self, secrets):
        self.secrets = secrets

    def resolve(self, namespace: str, spec: Dict[str, Any]) -> Optional[CloudInitData]:
        """
        Resolve user and network data of the spec's cloud-init volume.

        Args:
            namespace: Namespace used for Secret lookups
            spec: VMI-shaped spec (with `volumes` and `domain`)

        Returns:
            CloudInitData, or None if the spec has no cloud-init volume

        Raises:
            ResolutionError: If the volume references a missing Secret, holds
                invalid base64, or carries no data at all
        """
        found = find_cloud_init_volume(spec)
        if found is None:
            return None

        volume, source = found
        volume_name = volume.get("name", "")
        cloud_init = volume[source.value] or {}

        user_data = self._read(namespace, volume_name, cloud_init, "userData",
                               USER_DATA_SECRET_KEYS)
        network_data = self._read(namespace, volume_name, cloud_init, "networkData",
                                  NETWORK_DATA_SECRET_KEYS)

        if not user_data and not network_data:
            raise ResolutionError(
                f"userDataBase64, userData, networkDataBase64 or networkData is "
                f"required for cloud-init volume '{volume_name}'"
            )

        logger.debug("Resolved cloud-init volume '%s' (%s)", volume_name, source.value)
        return CloudInitData(
            volume_name=volume_name,
            source=source,
            user_data=user_data or "",
            network_data=network_data or "",
        )

    def _read(self, namespace: str, volume_name: str, cloud_init: Dict[str, Any],
              field: str, secret_keys: Tuple[str, ...]) -> Optional[str]:
        """Read one payload with secret ref > base64 > inline precedence."""
        secret_ref = cloud_init.get(f"{field}SecretRef")
        if secret_ref is not None:
            if not isinstance(secret_ref, dict):
                raise InvalidObjectError(
                    f"'{field}SecretRef' of volume '{volume_name}' must be a mapping"
                )
            secret_name = secret_ref.get("name", "")
            try:
                secret = self.secrets.get_secret(namespace, secret_name)
            except AccelInitError as e:
                raise ResolutionError(
                    f"Failed to fetch secret '{secret_name}' for cloud-init "
                    f"volume '{volume_name}': {e}"
                )
            value = read_secret_key(secret, secret_keys)
            if value is None:
                other_keys = (NETWORK_DATA_SECRET_KEYS if secret_keys == USER_DATA_SECRET_KEYS
                              else USER_DATA_SECRET_KEYS)
                if read_secret_key(secret, other_keys) is None:
                    raise ResolutionError(
                        f"No cloud-init data-source found in secret '{secret_name}' "
                        f"for volume '{volume_name}'"
                    )
            return value

        encoded = cloud_init.get(f"{field}Base64")
        if encoded:
            return decode_base64(encoded, f"{field}Base64 of volume '{volume_name}'")

        return cloud_init.get(field)
