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
Mutating admission webhook.

The API server POSTs an `admission.k8s.io/v1` AdmissionReview for every
VirtualMachineInstance (and optionally VirtualMachine) being admitted. The
handler runs the matching defaulter on a copy of the object and answers with
a JSONPatch that replaces the host device list.
"""

import base64
import copy
import json
import logging
import ssl
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, List, Optional

from .config import DEFAULT_HOST, DEFAULT_PORT
from .defaulter import Defaulter
from .exceptions import (
    AccelInitError, ConfigParseError, ConfigurationError, InvalidObjectError,
    UnsupportedObjectError, WebhookError,
)
from .models import ObjectKind

logger = logging.getLogger(__name__)

ADMISSION_API_VERSION = "admission.k8s.io/v1"


def _get_path(obj: Dict[str, Any], path: List[str]) -> Any:
    node: Any = obj
    for segment in path:
        if not isinstance(node, dict) or segment not in node:
            return None
        node = node[segment]
    return node


def make_json_patch(before: Dict[str, Any], path: List[str],
                    value: Optional[Any]) -> List[Dict[str, Any]]:
    """
    Build a JSONPatch that sets (or removes, when value is None) one path.

    Missing parent objects are created by adding the nested structure at the
    first missing level.
    """
    if value is None:
        if _get_path(before, path) is None:
            return []
        return [{"op": "remove", "path": "/" + "/".join(path)}]

    node: Any = before
    for depth, segment in enumerate(path[:-1]):
        child = node.get(segment) if isinstance(node, dict) else None
        if not isinstance(child, dict):
            nested: Any = value
            for inner in reversed(path[depth + 1:]):
                nested = {inner: nested}
            return [{"op": "add", "path": "/" + "/".join(path[:depth + 1]), "value": nested}]
        node = child

    return [{"op": "add", "path": "/" + "/".join(path), "value": value}]


class AdmissionHandler:
    """Turns AdmissionReview requests into defaulting patches."""

    def __init__(self, defaulters: Dict[ObjectKind, Defaulter]):
        self.defaulters = defaulters

    def review(self, admission_review: Dict[str, Any]) -> Dict[str, Any]:
        """
        Answer an AdmissionReview.

        Raises:
            WebhookError: If the review carries no request
        """
        request = admission_review.get("request") if isinstance(admission_review, dict) else None
        if not isinstance(request, dict):
            raise WebhookError("AdmissionReview has no request")

        uid = request.get("uid", "")
        response: Dict[str, Any] = {"uid": uid, "allowed": True}

        try:
            patch = self.mutate(request)
        except AccelInitError as e:
            code = 500
            if isinstance(e, (ConfigParseError, InvalidObjectError, WebhookError)):
                code = 400
            elif isinstance(e, UnsupportedObjectError):
                code = 403
            logger.warning("Denied admission %s: %s", uid, e)
            response["allowed"] = False
            response["status"] = {"code": code, "message": str(e)}
        else:
            if patch:
                response["patchType"] = "JSONPatch"
                response["patch"] = base64.b64encode(json.dumps(patch).encode("utf-8")).decode("ascii")

        return {
            "apiVersion": admission_review.get("apiVersion", ADMISSION_API_VERSION),
            "kind": "AdmissionReview",
            "response": response,
        }

    def mutate(self, request: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Run the defaulter for the request and return the JSONPatch."""
        group_version_kind = request.get("kind")
        if not isinstance(group_version_kind, dict):
            raise WebhookError("AdmissionReview request kind must be a mapping")

        kind_name = group_version_kind.get("kind")
        try:
            kind = ObjectKind(kind_name)
        except ValueError:
            raise UnsupportedObjectError(f"Unsupported object kind: {kind_name}")

        defaulter = self.defaulters.get(kind)
        if defaulter is None:
            raise UnsupportedObjectError(f"No defaulter registered for {kind_name}")

        original = request.get("object")
        if not isinstance(original, dict):
            raise WebhookError("AdmissionReview request has no object")

        obj = copy.deepcopy(original)
        if obj.get("metadata") is None:
            obj["metadata"] = {}
        metadata = obj["metadata"]
        if not isinstance(metadata, dict):
            raise WebhookError("AdmissionReview request object metadata must be a mapping")
        if not metadata.get("namespace") and request.get("namespace"):
            metadata["namespace"] = request["namespace"]

        if not defaulter.default(obj):
            return []

        path = defaulter.host_devices_path()
        return make_json_patch(original, path, _get_path(obj, path))


class WebhookServer:
    """HTTPS server answering AdmissionReview POSTs on any path."""

    def __init__(self, handler: AdmissionHandler, host: str = DEFAULT_HOST,
                 port: int = DEFAULT_PORT, cert_file: Optional[str] = None,
                 key_file: Optional[str] = None):
        self.handler = handler
        self.httpd = ThreadingHTTPServer((host, port), _request_handler(handler))
        self.httpd.daemon_threads = True

        if cert_file:
            context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
            try:
                context.load_cert_chain(cert_file, key_file)
            except (OSError, ssl.SSLError) as e:
                self.httpd.server_close()
                raise ConfigurationError(f"Failed to load TLS certificate {cert_file}: {e}")
            self.httpd.socket = context.wrap_socket(self.httpd.socket, server_side=True)

    @property
    def port(self) -> int:
        return self.httpd.server_address[1]

    def serve_forever(self) -> None:
        logger.info("Serving admission webhook on port %d", self.port)
        try:
            self.httpd.serve_forever()
        finally:
            self.httpd.server_close()

    def shutdown(self) -> None:
        self.httpd.shutdown()


def _request_handler(admission: AdmissionHandler):
    class AdmissionRequestHandler(BaseHTTPRequestHandler):
        def do_POST(self):
            length = int(self.headers.get("Content-Length") or 0)
            try:
                review = json.loads(self.rfile.read(length) or b"null")
                body = admission.review(review)
            except (ValueError, WebhookError) as e:
                logger.warning("Rejected malformed admission request: %s", e)
                self._send(HTTPStatus.BAD_REQUEST, {"message": str(e)})
                return
            self._send(HTTPStatus.OK, body)

        def _send(self, status: HTTPStatus, body: Dict[str, Any]) -> None:
            payload = json.dumps(body).encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)

        def log_message(self, format, *args):
            logger.debug("%s - %s", self.address_string(), format % args)

    return AdmissionRequestHandler
