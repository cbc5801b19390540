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
Minimal Kubernetes API client.

Only the handful of calls accelinit needs: reading Secrets and reading,
listing and updating KubeVirt VirtualMachines.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from .config import (
    DEFAULT_API_TIMEOUT, KUBEVIRT_API_GROUP, KUBEVIRT_API_VERSION,
    SERVICE_ACCOUNT_DIR, SERVICE_HOST_ENV, SERVICE_PORT_ENV,
)
from .exceptions import ConfigurationError, ConflictError, KubeAPIError, NotFoundError

logger = logging.getLogger(__name__)


class KubeClient:
    """Kubernetes REST client over a requests session."""

    def __init__(self, server: str, token: Optional[str] = None,
                 ca_cert: Optional[str] = None, timeout: float = DEFAULT_API_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.server = server.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        if ca_cert:
            self.session.verify = ca_cert

    @classmethod
    def in_cluster(cls, service_account_dir: str = SERVICE_ACCOUNT_DIR) -> "KubeClient":
        """
        Build a client from the pod's service account.

        Raises:
            ConfigurationError: If not running inside a cluster
        """
        host = os.environ.get(SERVICE_HOST_ENV)
        port = os.environ.get(SERVICE_PORT_ENV)
        if not host or not port:
            raise ConfigurationError(
                f"Unable to load in-cluster configuration: {SERVICE_HOST_ENV} "
                f"and {SERVICE_PORT_ENV} must be defined"
            )

        token_path = Path(service_account_dir) / "token"
        ca_path = Path(service_account_dir) / "ca.crt"
        try:
            token = token_path.read_text(encoding="utf-8").strip()
        except OSError as e:
            raise ConfigurationError(f"Failed to read service account token: {e}")

        if ":" in host:
            host = f"[{host}]"
        return cls(
            server=f"https://{host}:{port}",
            token=token,
            ca_cert=str(ca_path) if ca_path.exists() else None,
        )

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.server}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise KubeAPIError(f"{method} {path} failed: {e}")

        if response.status_code == 404:
            raise NotFoundError(f"{method} {path}: not found", status_code=404)
        if response.status_code == 409:
            raise ConflictError(f"{method} {path}: conflict: {_message(response)}",
                                status_code=409)
        try:
            response.raise_for_status()
        except requests.HTTPError:
            raise KubeAPIError(
                f"{method} {path} failed with status {response.status_code}: {_message(response)}",
                status_code=response.status_code,
            )

        logger.debug("%s %s -> %d", method, path, response.status_code)
        return response.json()

    @staticmethod
    def _virtual_machines_path(namespace: Optional[str] = None) -> str:
        base = f"/apis/{KUBEVIRT_API_GROUP}/{KUBEVIRT_API_VERSION}"
        if namespace:
            return f"{base}/namespaces/{namespace}/virtualmachines"
        return f"{base}/virtualmachines"

    def get_secret(self, namespace: str, name: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/v1/namespaces/{namespace}/secrets/{name}")

    def get_virtual_machine(self, namespace: str, name: str) -> Dict[str, Any]:
        return self._request("GET", f"{self._virtual_machines_path(namespace)}/{name}")

    def list_virtual_machines(self, namespace: Optional[str] = None) -> List[Dict[str, Any]]:
        """List VirtualMachines in one namespace, or in all namespaces."""
        items = []
        params: Dict[str, Any] = {}
        while True:
            body = self._request("GET", self._virtual_machines_path(namespace), params=params)
            items.extend(body.get("items") or [])
            token = (body.get("metadata") or {}).get("continue")
            if not token:
                return items
            params = {"continue": token}

    def update_virtual_machine(self, vm: Dict[str, Any]) -> Dict[str, Any]:
        metadata = vm.get("metadata") or {}
        path = f"{self._virtual_machines_path(metadata.get('namespace'))}/{metadata.get('name')}"
        return self._request("PUT", path, json=vm)


def _message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason
    if isinstance(body, dict) and body.get("message"):
        return body["message"]
    return response.reason
