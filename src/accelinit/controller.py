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
VirtualMachine controller.

The admission webhook only sees objects when they are created or updated.
The controller closes the gap for VirtualMachines already stored in the
cluster: it periodically re-reads every VM, runs the defaulter and writes
back the ones whose host devices changed.
"""

import logging
import threading
from typing import Optional

from .config import DEFAULT_RESYNC_INTERVAL
from .defaulter import VirtualMachineDefaulter
from .exceptions import AccelInitError, NotFoundError
from .models import ReconcileSummary, object_key

logger = logging.getLogger(__name__)


class VirtualMachineReconciler:
    """Reconciles stored VirtualMachines against their cloud-init declaration."""

    def __init__(self, client, defaulter: VirtualMachineDefaulter):
        self.client = client
        self.defaulter = defaulter

    def reconcile(self, namespace: str, name: str) -> bool:
        """
        Reconcile one VirtualMachine.

        Returns:
            True if the VirtualMachine was updated. A VirtualMachine that no
            longer exists is skipped.
        """
        try:
            vm = self.client.get_virtual_machine(namespace, name)
        except NotFoundError:
            logger.debug("VirtualMachine %s/%s is gone, skipping", namespace, name)
            return False

        if not self.defaulter.default(vm):
            return False

        try:
            self.client.update_virtual_machine(vm)
        except NotFoundError:
            logger.debug("VirtualMachine %s/%s was deleted before update", namespace, name)
            return False

        logger.info("Updated VirtualMachine %s/%s", namespace, name)
        return True

    def reconcile_all(self) -> ReconcileSummary:
        """Reconcile every VirtualMachine in the cluster."""
        summary = ReconcileSummary()

        for vm in self.client.list_virtual_machines():
            metadata = vm.get("metadata") or {}
            key = object_key(vm)
            summary.seen += 1
            try:
                if self.reconcile(metadata.get("namespace", ""), metadata.get("name", "")):
                    summary.updated += 1
            except AccelInitError as e:
                logger.error("Failed to reconcile VirtualMachine %s: %s", key, e)
                summary.record_failure(key, e)

        logger.debug("Reconciled %d VirtualMachines (%d updated, %d failed)",
                     summary.seen, summary.updated, summary.failed)
        return summary

    def run(self, interval: float = DEFAULT_RESYNC_INTERVAL,
            stop_event: Optional[threading.Event] = None) -> None:
        """Reconcile all VirtualMachines every `interval` seconds until stopped."""
        stop_event = stop_event or threading.Event()
        logger.info("Starting VirtualMachine controller (resync every %.0fs)", interval)

        while not stop_event.is_set():
            try:
                self.reconcile_all()
            except AccelInitError as e:
                logger.error("Failed to list VirtualMachines: %s", e)
            stop_event.wait(interval)

        logger.info("VirtualMachine controller stopped")
