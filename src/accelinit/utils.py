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
Shared helpers for the accelinit commands.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .config import LOG_FORMAT, LOG_DATE_FORMAT
from .exceptions import ConfigParseError


def setup_logging(debug: bool = False) -> None:
    """Configure logging with appropriate level and format."""
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT
    )
    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def load_manifests(path: str) -> List[Dict[str, Any]]:
    """
    Load all YAML documents of a manifest file.

    Args:
        path: Path to a YAML file, possibly holding several documents

    Returns:
        List of manifest dictionaries (empty documents are skipped)

    Raises:
        ConfigParseError: If the file is not valid YAML or holds a non-mapping
    """
    try:
        with open(Path(path), "r", encoding="utf-8") as f:
            documents = list(yaml.safe_load_all(f))
    except yaml.YAMLError as e:
        raise ConfigParseError(f"Failed to parse {path}: {e}")

    manifests = []
    for document in documents:
        if document is None:
            continue
        if not isinstance(document, dict):
            raise ConfigParseError(f"{path}: expected a mapping, got {type(document).__name__}")
        manifests.append(document)
    return manifests
