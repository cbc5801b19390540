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

"""Configuration settings for accelinit."""

# Cloud-config key holding the accelerator declaration
CLOUD_CONFIG_KEY = "inaccel"

# Prefix of host devices owned by accelinit (inaccel0, inaccel1, ...)
HOST_DEVICE_PREFIX = "inaccel"

# Upper bound on accelerator devices declared by one object, across resources
MAX_DEVICES_PER_OBJECT = 256

# Secret keys probed for cloud-init payloads, in lookup order
USER_DATA_SECRET_KEYS = ("userdata", "userData")
NETWORK_DATA_SECRET_KEYS = ("networkdata", "networkData")

# Webhook server
DEFAULT_CERT_FILE = "/etc/inaccel/certs/ssl.pem"
DEFAULT_KEY_FILE = "/etc/inaccel/private/ssl.key"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 443

# Controller
DEFAULT_RESYNC_INTERVAL = 300.0  # seconds between full VirtualMachine passes

# Kubernetes API
KUBEVIRT_API_GROUP = "kubevirt.io"
KUBEVIRT_API_VERSION = "v1"
DEFAULT_API_TIMEOUT = 10.0  # seconds
SERVICE_ACCOUNT_DIR = "/var/run/secrets/kubernetes.io/serviceaccount"
SERVICE_HOST_ENV = "KUBERNETES_SERVICE_HOST"
SERVICE_PORT_ENV = "KUBERNETES_SERVICE_PORT"

# Logging format
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
