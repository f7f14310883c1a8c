"""Tests for the teardown controller."""

import pytest

from aksboot.any.exceptions import AKSBootProviderError
from aksboot.provision.reconciler import ResourceReconciler
from aksboot.provision.teardown import TeardownController, is_confirmed
from aksboot.types import ResourceKind


@pytest.fixture
def controller(config, fake_provider, fake_kube, fake_charts):
    reconciler = ResourceReconciler(config, fake_provider, fake_kube, fake_charts)
    return TeardownController(config, reconciler, fake_provider, fake_kube)


@pytest.fixture
def installed(fake_provider, fake_kube):
    """A cluster with the objects an install leaves behind."""
    fake_provider.seed(ResourceKind.RESOURCE_GROUP, "gitpod-rg")
    fake_provider.seed(ResourceKind.CLUSTER, "gitpod")
    fake_kube.seed("secret", "gitpod-image-pull-secret")
    fake_kube.seed("secret", "image-builder-registry-secret")
    fake_kube.seed("service", "proxy")


class TestConfirmation:
    """Only a single y/Y is consent."""

    @pytest.mark.parametrize("answer", ["y", "Y"])
    def test_confirmed(self, answer):
        assert is_confirmed(answer)

    @pytest.mark.parametrize("answer", ["n", "N", "", "yes", "yy", " y", None])
    def test_not_confirmed(self, answer):
        assert not is_confirmed(answer)


class TestTeardown:
    """Tests for TeardownController.teardown."""

    def test_declined_touches_nothing(self, controller, installed, trace):
        """Test declining makes no external call at all."""
        assert controller.teardown("n") is False
        assert trace == []

    def test_each_deletion_once(self, controller, installed, trace):
        """Test each documented deletion happens exactly once, cluster last."""
        assert controller.teardown("y") is True

        deletes = [c for c in trace if c[1] in ("delete", "delete_by_label")]
        assert deletes == [
            ("kubectl", "delete_by_label", "app=gitpod"),
            ("kubectl", "delete", "secret", "gitpod-image-pull-secret"),
            ("kubectl", "delete", "secret", "image-builder-registry-secret"),
            ("kubectl", "delete", "service", "proxy"),
            ("az", "delete", ResourceKind.CLUSTER, "gitpod"),
        ]

    def test_data_resources_kept(self, controller, installed, fake_provider):
        """Test the resource group survives teardown."""
        controller.teardown("Y")

        assert (ResourceKind.RESOURCE_GROUP, "gitpod-rg") in fake_provider.resources
        assert (ResourceKind.CLUSTER, "gitpod") not in fake_provider.resources

    def test_absent_secrets(self, controller, fake_provider, trace):
        """Test absent secrets are skipped and the cluster deletion is still attempted."""
        fake_provider.seed(ResourceKind.CLUSTER, "gitpod")

        controller.teardown("y")

        assert trace.calls("kubectl", "delete") == []
        assert trace.calls("az", "delete") == [("az", "delete", ResourceKind.CLUSTER, "gitpod")]

    def test_cluster_object_failures_are_skipped(self, controller, installed, fake_kube, trace):
        """Test kubectl failures do not prevent the cluster deletion."""
        fake_kube.fail_on.update({"delete_by_label", "delete"})

        controller.teardown("y")

        assert trace.calls("az", "delete") == [("az", "delete", ResourceKind.CLUSTER, "gitpod")]

    def test_missing_cluster(self, controller, trace):
        """Test teardown of an absent cluster deletes nothing."""
        assert controller.teardown("y") is True

        assert trace.calls("az", "delete") == []
        assert trace.calls("kubectl") == []

    def test_cluster_deletion_failure_propagates(self, controller, installed, fake_provider):
        """Test a failed cluster deletion is reported."""
        fake_provider.fail_on.add(("delete", ResourceKind.CLUSTER))

        with pytest.raises(AKSBootProviderError):
            controller.teardown("y")
