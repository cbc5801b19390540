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
Run the admission webhook and, optionally, the VirtualMachine controller.

The webhook defaults VirtualMachineInstances (and VirtualMachines, if the
webhook configuration sends them) as they are admitted. With
--enable-virtualmachine-controller, stored VirtualMachines are also
reconciled periodically.
"""

import sys
import threading
import click

from ..cloudinit import CloudInitResolver
from ..config import (
    DEFAULT_CERT_FILE, DEFAULT_KEY_FILE, DEFAULT_HOST, DEFAULT_PORT,
    DEFAULT_RESYNC_INTERVAL,
)
from ..controller import VirtualMachineReconciler
from ..defaulter import VirtualMachineDefaulter, VirtualMachineInstanceDefaulter
from ..exceptions import AccelInitError, ConfigurationError
from ..kube import KubeClient
from ..models import ObjectKind
from ..webhook import AdmissionHandler, WebhookServer


def build_admission_handler(resolver: CloudInitResolver) -> AdmissionHandler:
    return AdmissionHandler({
        ObjectKind.VIRTUAL_MACHINE_INSTANCE: VirtualMachineInstanceDefaulter(resolver),
        ObjectKind.VIRTUAL_MACHINE: VirtualMachineDefaulter(resolver),
    })


@click.command()
@click.pass_context
@click.option('--cert', default=DEFAULT_CERT_FILE, show_default=True,
              envvar='ACCELINIT_CERT', help='SSL certification file')
@click.option('--key', default=DEFAULT_KEY_FILE, show_default=True,
              envvar='ACCELINIT_KEY', help='SSL key file')
@click.option('--host', default=DEFAULT_HOST, show_default=True,
              envvar='ACCELINIT_HOST', help='Address to listen on')
@click.option('--port', type=int, default=DEFAULT_PORT, show_default=True,
              envvar='ACCELINIT_PORT', help='Port to listen on')
@click.option('--enable-virtualmachine-controller', is_flag=True,
              envvar='ACCELINIT_ENABLE_VIRTUALMACHINE_CONTROLLER',
              help='Enables the Virtual Machine controller')
@click.option('--resync-interval', type=float, default=DEFAULT_RESYNC_INTERVAL,
              show_default=True, envvar='ACCELINIT_RESYNC_INTERVAL',
              help='Seconds between Virtual Machine controller passes')
def serve(ctx, cert, key, host, port, enable_virtualmachine_controller, resync_interval):
    """Serve the mutating admission webhook."""
    debug = ctx.obj.get('debug', False) if ctx.obj else False

    try:
        client = KubeClient.in_cluster()
        resolver = CloudInitResolver(client)
        server = WebhookServer(build_admission_handler(resolver), host=host, port=port,
                               cert_file=cert, key_file=key)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not enable_virtualmachine_controller:
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            click.echo("\nShutting down", err=True)
        return

    reconciler = VirtualMachineReconciler(client, VirtualMachineDefaulter(resolver))
    stop_event = threading.Event()
    webhook_thread = threading.Thread(target=server.serve_forever, name='webhook', daemon=True)
    webhook_thread.start()

    try:
        reconciler.run(interval=resync_interval, stop_event=stop_event)
    except KeyboardInterrupt:
        click.echo("\nShutting down", err=True)
    except AccelInitError as e:
        click.echo(f"Error: {e}", err=True)
        if debug:
            import traceback
            traceback.print_exc()
        sys.exit(1)
    finally:
        stop_event.set()
        server.shutdown()


if __name__ == '__main__':
    serve()
