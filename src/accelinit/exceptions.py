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
Exception classes for accelinit configuration, resolution and API errors.
"""


class AccelInitError(Exception):
    """Base exception for all accelinit errors."""


class ConfigParseError(AccelInitError):
    """Raised when cloud-init user data cannot be parsed."""


class ResolutionError(AccelInitError):
    """Raised when a cloud-init volume cannot be resolved to user data."""


class UnsupportedObjectError(AccelInitError):
    """Raised when a defaulter receives an object of the wrong kind."""


class InvalidObjectError(AccelInitError):
    """Raised when an object manifest does not have the expected shape."""


class ConfigurationError(AccelInitError):
    """Raised when process configuration is missing or invalid."""


class KubeAPIError(AccelInitError):
    """Raised when a Kubernetes API request fails."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(KubeAPIError):
    """Raised when the requested object does not exist."""


class ConflictError(KubeAPIError):
    """Raised when an update loses an optimistic concurrency race."""


class WebhookError(AccelInitError):
    """Raised when an admission review is malformed."""
