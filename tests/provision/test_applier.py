"""Tests for the cluster applier."""

import pytest
import yaml

from aksboot.any.exceptions import AKSBootClusterError
from aksboot.provision.applier import ClusterApplier
from aksboot.provision.objects import ClusterObjectSet, secret_object

MANIFEST = yaml.safe_dump(
    {"apiVersion": "apps/v1", "kind": "Deployment", "metadata": {"name": "server", "namespace": "default"}}
)


class TestClusterApplier:
    """Tests for ClusterApplier."""

    def test_apply_order(self, config, fake_kube, trace):
        """Test secrets, manifest, certificate, then the server restart."""
        objects = ClusterObjectSet([secret_object("database", {"host": "db"})])

        ClusterApplier(config, fake_kube).apply(MANIFEST, objects)

        assert trace == [
            ("kubectl", "apply", ("database",)),
            ("kubectl", "apply", ("server",)),
            ("kubectl", "apply_file", ("gitpod-certificate",)),
            ("kubectl", "rollout_restart", "server"),
        ]

    def test_certificate_request(self, config, fake_kube):
        """Test the certificate covers the domain, wildcard and workspace wildcard."""
        ClusterApplier(config, fake_kube).apply(MANIFEST, ClusterObjectSet())

        certificate = fake_kube.objects[("certificate", "gitpod-certificate", "default")]
        assert certificate["spec"]["dnsNames"] == [
            "gitpod.example.com",
            "*.gitpod.example.com",
            "*.ws.gitpod.example.com",
        ]
        assert certificate["spec"]["secretName"] == "proxy-config-certificates"
        assert certificate["spec"]["issuerRef"] == {"name": "azure-issuer", "kind": "ClusterIssuer"}

    def test_certificate_file_removed(self, config, fake_kube):
        """Test the transient certificate file does not outlive the apply."""
        ClusterApplier(config, fake_kube).request_certificate()

        assert not (config.work_dir / "gitpod-certificate.yaml").exists()

    def test_certificate_file_removed_on_failure(self, config, fake_kube):
        """Test the transient file is removed even when the apply fails."""
        fake_kube.fail_on.add("apply_file")

        with pytest.raises(AKSBootClusterError):
            ClusterApplier(config, fake_kube).request_certificate()

        assert not (config.work_dir / "gitpod-certificate.yaml").exists()

    def test_manifest_failure_stops_before_certificate(self, config, fake_kube, trace):
        """Test a failed apply aborts the rest."""
        fake_kube.fail_on.add("apply")

        with pytest.raises(AKSBootClusterError):
            ClusterApplier(config, fake_kube).apply(MANIFEST, ClusterObjectSet())

        assert trace == []
