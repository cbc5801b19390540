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
Tests for the mutating admission webhook.
"""

import base64
import copy
import json
import threading

import pytest
import requests
from accelinit.cloudinit import CloudInitResolver, LocalSecretStore
from accelinit.defaulter import VirtualMachineDefaulter, VirtualMachineInstanceDefaulter
from accelinit.exceptions import ConfigurationError, WebhookError
from accelinit.models import ObjectKind
from accelinit.webhook import AdmissionHandler, WebhookServer, make_json_patch


def admission_review(obj, kind="VirtualMachineInstance", namespace="accel"):
    return {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "request": {
            "uid": "705ab4f5-6393-11e8-b7cc-42010a800002",
            "kind": {"group": "kubevirt.io", "version": "v1", "kind": kind},
            "operation": "CREATE",
            "namespace": namespace,
            "object": obj,
        },
    }


def decode_patch(response):
    return json.loads(base64.b64decode(response["response"]["patch"]))


@pytest.fixture
def handler(resolver):
    return AdmissionHandler({
        ObjectKind.VIRTUAL_MACHINE_INSTANCE: VirtualMachineInstanceDefaulter(resolver),
        ObjectKind.VIRTUAL_MACHINE: VirtualMachineDefaulter(resolver),
    })


class TestMakeJsonPatch:
    """Test JSONPatch construction."""

    def test_add_existing_parent(self):
        before = {"spec": {"domain": {"devices": {}}}}
        patch = make_json_patch(before, ["spec", "domain", "devices", "hostDevices"], [{"name": "inaccel0"}])

        assert patch == [{
            "op": "add",
            "path": "/spec/domain/devices/hostDevices",
            "value": [{"name": "inaccel0"}],
        }]

    def test_add_missing_parents(self):
        before = {"spec": {"domain": {}}}
        patch = make_json_patch(before, ["spec", "domain", "devices", "hostDevices"], [])

        assert patch == [{"op": "add", "path": "/spec/domain/devices", "value": {"hostDevices": []}}]

    def test_remove(self):
        before = {"spec": {"domain": {"devices": {"hostDevices": [{"name": "inaccel0"}]}}}}
        patch = make_json_patch(before, ["spec", "domain", "devices", "hostDevices"], None)

        assert patch == [{"op": "remove", "path": "/spec/domain/devices/hostDevices"}]

    def test_remove_missing(self):
        assert make_json_patch({"spec": {}}, ["spec", "domain"], None) == []


class TestAdmissionHandler:
    """Test AdmissionReview handling."""

    def test_patch_for_vmi(self, handler, sample_vmi):
        original = copy.deepcopy(sample_vmi)

        review = handler.review(admission_review(sample_vmi))

        response = review["response"]
        assert review["kind"] == "AdmissionReview"
        assert response["uid"] == "705ab4f5-6393-11e8-b7cc-42010a800002"
        assert response["allowed"] is True
        assert response["patchType"] == "JSONPatch"
        patch = decode_patch(review)
        assert len(patch) == 1
        assert patch[0]["path"] == "/spec/domain/devices/hostDevices"
        assert [d["name"] for d in patch[0]["value"]] == [
            "gpu0", "nic", "inaccel0", "inaccel1", "inaccel2", "inaccel3", "inaccel4",
        ]
        # The admitted object itself is never modified
        assert sample_vmi == original

    def test_patch_for_vm(self, handler, sample_vm):
        review = handler.review(admission_review(sample_vm, kind="VirtualMachine"))

        patch = decode_patch(review)
        assert patch[0]["path"] == "/spec/template/spec/domain/devices/hostDevices"

    def test_namespace_from_request(self, handler, sample_vmi):
        del sample_vmi["metadata"]["namespace"]

        review = handler.review(admission_review(sample_vmi, namespace="accel"))

        assert review["response"]["allowed"] is True
        assert "patch" in review["response"]

    def test_no_patch_without_cloud_init(self, handler, sample_vmi):
        sample_vmi["spec"]["volumes"] = sample_vmi["spec"]["volumes"][:1]

        response = handler.review(admission_review(sample_vmi))["response"]

        assert response["allowed"] is True
        assert "patch" not in response
        assert "patchType" not in response

    def test_parse_error_denied(self, handler, sample_vmi):
        sample_vmi["spec"]["volumes"][1] = {
            "name": "cloudinitdisk",
            "cloudInitNoCloud": {"userData": 'inaccel: "not-a-mapping"\n'},
        }

        response = handler.review(admission_review(sample_vmi))["response"]

        assert response["allowed"] is False
        assert response["status"]["code"] == 400
        assert "must be a mapping" in response["status"]["message"]
        assert "patch" not in response

    def test_resolution_error_denied(self, sample_vmi):
        handler = AdmissionHandler({
            ObjectKind.VIRTUAL_MACHINE_INSTANCE: VirtualMachineInstanceDefaulter(
                CloudInitResolver(LocalSecretStore())
            ),
        })

        response = handler.review(admission_review(sample_vmi))["response"]

        assert response["allowed"] is False
        assert response["status"]["code"] == 500

    def test_unsupported_kind_denied(self, handler, sample_vmi):
        response = handler.review(admission_review(sample_vmi, kind="Pod"))["response"]

        assert response["allowed"] is False
        assert response["status"]["code"] == 403

    def test_unregistered_kind_denied(self, resolver, sample_vm):
        handler = AdmissionHandler({
            ObjectKind.VIRTUAL_MACHINE_INSTANCE: VirtualMachineInstanceDefaulter(resolver),
        })

        response = handler.review(admission_review(sample_vm, kind="VirtualMachine"))["response"]

        assert response["allowed"] is False
        assert response["status"]["code"] == 403

    def test_out_of_range_quantity_denied(self, handler, sample_vmi):
        sample_vmi["spec"]["volumes"][1] = {
            "name": "cloudinitdisk",
            "cloudInitNoCloud": {"userData": 'inaccel:\n  gpuA: "1e999999"\n'},
        }

        response = handler.review(admission_review(sample_vmi))["response"]

        assert response["allowed"] is False
        assert response["status"]["code"] == 400
        assert "inaccel.gpuA" in response["status"]["message"]

    def test_malformed_object_denied(self, handler, sample_vmi):
        sample_vmi["spec"]["domain"]["devices"]["hostDevices"] = [None]

        response = handler.review(admission_review(sample_vmi))["response"]

        assert response["allowed"] is False
        assert response["status"]["code"] == 400
        assert "hostDevices" in response["status"]["message"]

    def test_malformed_kind_denied(self, handler, sample_vmi):
        review = admission_review(sample_vmi)
        review["request"]["kind"] = "VirtualMachineInstance"

        response = handler.review(review)["response"]

        assert response["allowed"] is False
        assert response["status"]["code"] == 400

    def test_null_metadata(self, handler, sample_vmi):
        sample_vmi["metadata"] = None

        response = handler.review(admission_review(sample_vmi))["response"]

        assert response["allowed"] is True
        assert response["patchType"] == "JSONPatch"

    def test_missing_request(self, handler):
        with pytest.raises(WebhookError):
            handler.review({"apiVersion": "admission.k8s.io/v1", "kind": "AdmissionReview"})


class TestWebhookServer:
    """Test the HTTP transport."""

    @pytest.fixture
    def server(self, handler):
        server = WebhookServer(handler, host="127.0.0.1", port=0)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        yield server
        server.shutdown()
        thread.join(timeout=5)

    def test_post_review(self, server, sample_vmi):
        response = requests.post(
            f"http://127.0.0.1:{server.port}/mutate",
            json=admission_review(sample_vmi),
            timeout=5,
        )

        assert response.status_code == 200
        assert response.json()["response"]["allowed"] is True

    def test_malformed_body(self, server):
        response = requests.post(
            f"http://127.0.0.1:{server.port}/", data=b"{not json", timeout=5,
        )

        assert response.status_code == 400

    def test_bad_certificate(self, handler, tmp_path):
        cert = tmp_path / "ssl.pem"
        cert.write_text("not a certificate")

        with pytest.raises(ConfigurationError, match="TLS certificate"):
            WebhookServer(handler, host="127.0.0.1", port=0,
                          cert_file=str(cert), key_file=str(cert))
