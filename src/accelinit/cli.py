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
Command-line interface for accelinit.
"""

import click
from . import __version__
from .mutate.main import mutate
from .serve.main import serve
from .utils import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="accelinit")
@click.option("--debug", "-d", is_flag=True, envvar="ACCELINIT_DEBUG", help="Enable debug output")
@click.pass_context
def main(ctx, debug):
    """accelinit: accelerator host devices for KubeVirt from cloud-init."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    setup_logging(debug)


# Add subcommands
main.add_command(serve)
main.add_command(mutate)


if __name__ == "__main__":
    main()
