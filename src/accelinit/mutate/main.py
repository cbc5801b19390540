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
Apply the accelerator declaration to a local manifest.

Reads a VirtualMachine or VirtualMachineInstance manifest, resolves its
cloud-init user data against Secrets given with --secret, and prints the
defaulted manifest. Nothing is sent to a cluster.
"""

import sys
from typing import Tuple
import click
import yaml

from ..cloudinit import CloudInitResolver, LocalSecretStore
from ..defaulter import defaulter_for
from ..exceptions import AccelInitError
from ..models import HostDevice, ObjectKind
from ..devices import is_owned_device
from ..utils import load_manifests


@click.command()
@click.pass_context
@click.argument('manifest', type=click.Path(exists=True, dir_okay=False))
@click.option('--secret', '-s', 'secret_files', multiple=True,
              type=click.Path(exists=True, dir_okay=False),
              help='Secret manifest used to resolve userDataSecretRef (repeatable)')
@click.option('--namespace', '-n', default='default', show_default=True,
              help='Namespace assumed for manifests without one')
@click.option('--summary', is_flag=True, help='Print owned host devices instead of the manifest')
def mutate(ctx, manifest: str, secret_files: Tuple[str, ...], namespace: str, summary: bool):
    """Print MANIFEST with accelerator host devices applied."""
    try:
        secrets = LocalSecretStore(default_namespace=namespace)
        for path in secret_files:
            for secret in load_manifests(path):
                secrets.add(secret)

        resolver = CloudInitResolver(secrets)
        objects = load_manifests(manifest)
        if not objects:
            click.echo(f"Error: {manifest} contains no objects", err=True)
            sys.exit(1)

        for obj in objects:
            try:
                kind = ObjectKind(obj.get('kind'))
            except ValueError:
                click.echo(f"Error: unsupported object kind: {obj.get('kind')}", err=True)
                sys.exit(1)

            obj.setdefault('metadata', {}).setdefault('namespace', namespace)
            defaulter = defaulter_for(kind, resolver)
            changed = defaulter.default(obj)

            if summary:
                name = obj['metadata'].get('name', '')
                devices = _host_devices(obj, defaulter.host_devices_path())
                owned = [d for d in devices if is_owned_device(d)]
                status = 'changed' if changed else 'unchanged'
                click.echo(f"{kind.value}/{name}: {len(owned)} accelerator(s), {status}")
                for device in owned:
                    click.echo(f"  {device.name}: {device.device_name}")

        if not summary:
            click.echo(yaml.safe_dump_all(objects, sort_keys=False), nl=False)

    except AccelInitError as e:
        click.echo(f"Error: {e}", err=True)
        if ctx.obj and ctx.obj.get('debug'):
            import traceback
            traceback.print_exc()
        sys.exit(1)


def _host_devices(obj, path):
    node = obj
    for segment in path:
        node = node.get(segment) if isinstance(node, dict) else None
        if node is None:
            return []
    return [HostDevice.from_dict(d) for d in node]


if __name__ == '__main__':
    mutate()
