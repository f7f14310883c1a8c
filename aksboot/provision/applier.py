"""Submits the object set, the rendered manifest and the certificate request."""

from typing import Any

import yaml

from aksboot.any.log import get_logger
from aksboot.cluster.protocols import KubernetesClient
from aksboot.config.schemas import EnvironmentConfig
from aksboot.provision.composer import CERTIFICATE_SECRET
from aksboot.provision.credentials import CLUSTER_ISSUER
from aksboot.provision.objects import ClusterObjectSet

LOGGER = get_logger("aksboot.provision.applier")

CERTIFICATE_NAME = "gitpod-certificate"
SERVER_DEPLOYMENT = "server"


class ClusterApplier:
    """
    Applies everything an install produces, in order.

    Example:
    -------
        ```python
        applier = ClusterApplier(config, kubernetes)
        applier.apply(manifest, objects)
        ```

    """

    def __init__(self, config: EnvironmentConfig, kubernetes: KubernetesClient):
        self._config = config
        self._kubernetes = kubernetes

    def apply(self, manifest: str, objects: ClusterObjectSet) -> None:
        """
        Apply secrets, then the manifest, then the certificate; restart the server.

        Raises
        ------
            AKSBootClusterError: If any kubectl call fails

        """
        if len(objects):
            LOGGER.info(f"Applying cluster objects: {', '.join(objects.names())}")
            self._kubernetes.apply(objects.to_yaml())

        LOGGER.info("Installing Gitpod...")
        self._kubernetes.apply(manifest)

        self.request_certificate()

        self._kubernetes.rollout_restart(SERVER_DEPLOYMENT)
        LOGGER.info(f"Gitpod successfully installed to {self._config.domain}...")

    def certificate_request(self) -> dict[str, Any]:
        domain = self._config.domain
        return {
            "apiVersion": "cert-manager.io/v1",
            "kind": "Certificate",
            "metadata": {"name": CERTIFICATE_NAME, "namespace": "default"},
            "spec": {
                "secretName": CERTIFICATE_SECRET,
                "issuerRef": {"name": CLUSTER_ISSUER, "kind": "ClusterIssuer"},
                "dnsNames": [domain, f"*.{domain}", f"*.ws.{domain}"],
            },
        }

    def request_certificate(self) -> None:
        """Write the certificate request to WORK_DIR, apply it and remove the file."""
        LOGGER.info("Create certificate...")
        path = self._config.work_dir / f"{CERTIFICATE_NAME}.yaml"
        path.write_text(yaml.safe_dump(self.certificate_request(), sort_keys=False))
        try:
            self._kubernetes.apply_file(path)
        finally:
            path.unlink(missing_ok=True)
