"""
Teardown.

Removes the platform and the cluster after explicit confirmation. Resources that
hold data (resource group, database, storage account, DNS zone) are left in place
and only reported.
"""

import re

from aksboot.any.exceptions import AKSBootClusterError
from aksboot.any.log import get_logger
from aksboot.cal.protocols import CloudProviderProtocol
from aksboot.cluster.protocols import KubernetesClient
from aksboot.config.schemas import EnvironmentConfig
from aksboot.provision.credentials import IMAGE_PULL_SECRET, REGISTRY_SECRET
from aksboot.provision.reconciler import ResourceReconciler

LOGGER = get_logger("aksboot.provision.teardown")

CONFIRMATION = re.compile(r"^[Yy]$")

PLATFORM_LABEL = "app=gitpod"
PLATFORM_KINDS = (
    "certificate",
    "clusterrole",
    "clusterrolebinding",
    "configmap",
    "cronjob",
    "daemonset",
    "deployment",
    "job",
    "networkpolicy",
    "persistentvolumeclaim",
    "pod",
    "role",
    "rolebinding",
    "secret",
    "service",
    "serviceaccount",
    "statefulset",
)

# (kind, name) deleted one by one after the labelled objects
NAMED_OBJECTS = (
    ("secret", IMAGE_PULL_SECRET),
    ("secret", REGISTRY_SECRET),
    ("service", "proxy"),
)


def is_confirmed(confirmation: str | None) -> bool:
    """Only a single 'y' or 'Y' counts as consent."""
    return bool(confirmation) and CONFIRMATION.match(confirmation) is not None


class TeardownController:
    """
    Deletes Gitpod objects and the Kubernetes cluster.

    Example:
    -------
        ```python
        controller = TeardownController(config, reconciler, provider, kubernetes)
        if not controller.teardown(input("Are you sure? ")):
            print("Nothing deleted")
        ```

    """

    def __init__(
        self,
        config: EnvironmentConfig,
        reconciler: ResourceReconciler,
        provider: CloudProviderProtocol,
        kubernetes: KubernetesClient,
    ):
        self._config = config
        self._reconciler = reconciler
        self._provider = provider
        self._kubernetes = kubernetes

    def teardown(self, confirmation: str | None) -> bool:
        """
        Delete everything an install put into the cluster, then the cluster.

        Args:
        ----
            confirmation: The operator's answer to the confirmation prompt

        Returns:
        -------
            False when declined (nothing touched), True once teardown has run

        Raises:
        ------
            AKSBootProviderError: If login or the cluster deletion fails

        """
        if not is_confirmed(confirmation):
            LOGGER.info("Teardown declined, nothing deleted")
            return False

        discovered = self._reconciler.connect()
        if discovered.cluster_connected:
            self.delete_platform_objects()
            self.delete_cluster()
        else:
            LOGGER.info("No cluster to delete")

        LOGGER.warning(
            f"The resource group {self._config.resource_group} and its MySQL database, storage account "
            f"and DNS zone were not deleted. Remove them in the Azure portal: {self._config.portal_url}"
        )
        return True

    def delete_platform_objects(self) -> None:
        """
        Best-effort removal of labelled and named objects.

        A failure here is logged and skipped so the cluster deletion still runs.
        """
        LOGGER.info("Deleting Gitpod...")
        try:
            self._kubernetes.delete_by_label(list(PLATFORM_KINDS), PLATFORM_LABEL)
        except AKSBootClusterError as e:
            LOGGER.warning(f"Could not delete objects labelled {PLATFORM_LABEL}: {e}")

        for kind, name in NAMED_OBJECTS:
            try:
                if not self._kubernetes.exists(kind, name):
                    LOGGER.debug(f"{kind}/{name} not found, skipping")
                    continue
                self._kubernetes.delete(kind, name)
            except AKSBootClusterError as e:
                LOGGER.warning(f"Could not delete {kind}/{name}: {e}")

    def delete_cluster(self) -> None:
        descriptor = self._reconciler.cluster_descriptor()
        LOGGER.info(f"Deleting Kubernetes cluster {descriptor.name}...")
        self._provider.delete(descriptor)
