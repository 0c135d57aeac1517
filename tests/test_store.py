"""
Unit tests for the kubernetes-backed repositories, against mocked API objects.
"""

from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException
from urllib3.exceptions import MaxRetryError

from fakes import new_machine, new_node
from machinehealth.clients.store import (
    KubernetesMachineHealthCheckRepository,
    KubernetesMachineRepository,
    KubernetesMachineSetRepository,
    KubernetesNodeRepository,
)
from machinehealth.errors import ConflictError, NotFoundError, StoreError
from machinehealth.models import LabelSelector, NamespacedName
from machinehealth.models.annotations import MACHINE_REBOOT_ANNOTATION_KEY, with_reboot_annotation

MACHINE = {
    "apiVersion": "machine.openshift.io/v1beta1",
    "kind": "Machine",
    "metadata": {
        "name": "m1",
        "namespace": "openshift-machine-api",
        "uid": "uid-m1",
        "labels": {"foo": "bar"},
        "ownerReferences": [{"kind": "MachineSet", "name": "ms", "controller": True}],
        "creationTimestamp": "2024-05-01T10:00:00Z",
    },
    "spec": {"providerID": "aws:///us-east-1a/i-123"},
    "status": {"nodeRef": {"name": "n1"}, "phase": "Running", "lastUpdated": "2024-05-01T11:00:00Z"},
}

MHC = {
    "metadata": {"name": "mhc", "namespace": "openshift-machine-api"},
    "spec": {
        "selector": {"matchLabels": {"foo": "bar"}},
        "unhealthyConditions": [{"type": "Ready", "status": "False", "timeout": "300s"}],
        "remediationStrategy": "reboot",
    },
}


def api_error(status):
    return ApiException(status=status, reason="test")


class TestMachineRepository:
    """Test cases for KubernetesMachineRepository."""

    def test_get_parses_machine(self):
        api = MagicMock()
        api.get_namespaced_custom_object.return_value = MACHINE

        machine = KubernetesMachineRepository(api).get(NamespacedName("openshift-machine-api", "m1"))

        assert machine.name == "m1"
        assert machine.node_ref == "n1"
        assert machine.phase == "Running"
        assert machine.provider_id == "aws:///us-east-1a/i-123"
        assert machine.has_owner("MachineSet")
        assert machine.last_updated.hour == 11
        kwargs = api.get_namespaced_custom_object.call_args.kwargs
        assert kwargs["group"] == "machine.openshift.io"
        assert kwargs["plural"] == "machines"

    def test_get_not_found(self):
        api = MagicMock()
        api.get_namespaced_custom_object.side_effect = api_error(404)
        with pytest.raises(NotFoundError):
            KubernetesMachineRepository(api).get(NamespacedName("ns", "m1"))

    def test_list_passes_selector(self):
        api = MagicMock()
        api.list_namespaced_custom_object.return_value = {"items": [MACHINE]}

        machines = KubernetesMachineRepository(api).list(
            "openshift-machine-api", LabelSelector(match_labels={"foo": "bar"}))

        assert [m.name for m in machines] == ["m1"]
        assert api.list_namespaced_custom_object.call_args.kwargs["label_selector"] == "foo=bar"

    def test_list_without_selector(self):
        api = MagicMock()
        api.list_namespaced_custom_object.return_value = {"items": []}
        KubernetesMachineRepository(api).list("ns")
        assert "label_selector" not in api.list_namespaced_custom_object.call_args.kwargs

    def test_list_connection_failure(self):
        api = MagicMock()
        api.list_namespaced_custom_object.side_effect = MaxRetryError(None, "/apis/machine.openshift.io")
        with pytest.raises(StoreError) as exc_info:
            KubernetesMachineRepository(api).list("openshift-machine-api")
        assert not isinstance(exc_info.value, NotFoundError)
        assert exc_info.value.context["operation"] == "list"

    def test_delete_uses_uid_precondition(self):
        api = MagicMock()
        KubernetesMachineRepository(api).delete(new_machine("m1"))
        body = api.delete_namespaced_custom_object.call_args.kwargs["body"]
        assert body.preconditions.uid == "uid-m1"

    @pytest.mark.parametrize("status, error", [(404, NotFoundError), (409, ConflictError), (500, StoreError)])
    def test_delete_errors(self, status, error):
        api = MagicMock()
        api.delete_namespaced_custom_object.side_effect = api_error(status)
        with pytest.raises(error) as exc_info:
            KubernetesMachineRepository(api).delete(new_machine("m1"))
        assert exc_info.value.context["status"] == status


class TestNodeRepository:
    """Test cases for KubernetesNodeRepository."""

    def node_repository(self, returned=None):
        core_api = MagicMock()
        api_client = MagicMock()
        api_client.sanitize_for_serialization.return_value = returned or {
            "metadata": {"name": "n1", "uid": "uid-n1", "resourceVersion": "2"},
            "status": {"conditions": [
                {"type": "Ready", "status": "False", "lastTransitionTime": "2024-05-01T11:55:00Z"}]},
        }
        return core_api, KubernetesNodeRepository(core_api, api_client)

    def test_get(self):
        core_api, repository = self.node_repository()
        node = repository.get("n1")
        assert node.get_condition("Ready").status == "False"
        assert not node.is_placeholder
        core_api.read_node.assert_called_once_with(name="n1")

    def test_get_not_found(self):
        core_api, repository = self.node_repository()
        core_api.read_node.side_effect = api_error(404)
        with pytest.raises(NotFoundError):
            repository.get("n1")

    def test_get_connection_reset(self):
        core_api, repository = self.node_repository()
        core_api.read_node.side_effect = ConnectionResetError("connection reset by peer")
        with pytest.raises(StoreError):
            repository.get("n1")

    def test_update_patches_annotations_with_resource_version(self):
        core_api, repository = self.node_repository()
        repository.update(with_reboot_annotation(new_node("n1")))

        body = core_api.patch_node.call_args.kwargs["body"]
        assert body["metadata"]["annotations"][MACHINE_REBOOT_ANNOTATION_KEY] == ""
        assert body["metadata"]["resourceVersion"] == "1"

    def test_update_conflict(self):
        core_api, repository = self.node_repository()
        core_api.patch_node.side_effect = api_error(409)
        with pytest.raises(ConflictError):
            repository.update(new_node("n1"))


class TestHealthCheckRepository:

    def test_list_parses_policies(self):
        api = MagicMock()
        api.list_namespaced_custom_object.return_value = {"items": [MHC]}

        policies = KubernetesMachineHealthCheckRepository(api).list("openshift-machine-api")

        assert policies[0].selector.match_labels == {"foo": "bar"}
        assert policies[0].unhealthy_conditions[0].timeout == "300s"
        assert policies[0].remediation_strategy == "reboot"
        assert api.list_namespaced_custom_object.call_args.kwargs["group"] == "healthchecking.openshift.io"


class TestMachineSetRepository:

    def test_list(self):
        api = MagicMock()
        api.list_namespaced_custom_object.return_value = {"items": [{
            "metadata": {"name": "ms", "namespace": "ns"},
            "status": {"replicas": 3, "readyReplicas": 2, "availableReplicas": 1},
        }]}

        machine_sets = KubernetesMachineSetRepository(api).list("ns")

        assert (machine_sets[0].replicas, machine_sets[0].ready_replicas, machine_sets[0].available_replicas) == (3, 2, 1)
