"""The three operator verbs, composed from the provisioning components."""

from pathlib import Path

from aksboot.any.exceptions import AKSBootClusterError, AKSBootConfigurationError
from aksboot.any.log import bind_context, get_logger
from aksboot.cluster.protocols import KubernetesClient
from aksboot.config.schemas import EnvironmentConfig
from aksboot.provision.applier import SERVER_DEPLOYMENT, ClusterApplier
from aksboot.provision.composer import ManifestComposer
from aksboot.provision.credentials import CredentialPropagator
from aksboot.provision.discovered import DiscoveredValues
from aksboot.provision.reconciler import ResourceReconciler
from aksboot.provision.teardown import TeardownController

LOGGER = get_logger("aksboot.provision.orchestrator")

AUTH_PROVIDERS_CONFIGMAP = "auth-providers-config"


class Orchestrator:
    """
    Runs install, uninstall and the auth provider update.

    Example:
    -------
        ```python
        container = create_container(load_environment_config(Path(".env")))
        orchestrator = container.orchestrator()
        discovered = orchestrator.install()
        ```

    """

    def __init__(
        self,
        config: EnvironmentConfig,
        reconciler: ResourceReconciler,
        propagator: CredentialPropagator,
        composer: ManifestComposer,
        applier: ClusterApplier,
        teardown: TeardownController,
        kubernetes: KubernetesClient,
    ):
        self._config = config
        self._reconciler = reconciler
        self._propagator = propagator
        self._composer = composer
        self._applier = applier
        self._teardown = teardown
        self._kubernetes = kubernetes

    def install(self) -> DiscoveredValues:
        """
        Reconcile cloud resources and deploy the platform.

        Returns
        -------
            The values discovered during reconciliation, including the created/updated report

        """
        bind_context(resource_group=self._config.resource_group, cluster=self._config.cluster_name)

        discovered = self._reconciler.reconcile_all()
        objects = self._propagator.materialize(discovered)

        document = self._composer.compose(self._composer.load_template(), discovered)
        manifest = self._composer.render(document)

        self._applier.apply(manifest, objects)
        return discovered

    def uninstall(self, confirmation: str | None) -> bool:
        bind_context(resource_group=self._config.resource_group, cluster=self._config.cluster_name)
        return self._teardown.teardown(confirmation)

    def update_auth(self, patch_file: Path) -> None:
        """
        Merge-patch the auth providers ConfigMap and restart the server.

        Raises
        ------
            AKSBootConfigurationError: If the patch file does not exist
            AKSBootClusterError: If the cluster does not exist or kubectl fails

        """
        if not patch_file.is_file():
            raise AKSBootConfigurationError(f"The auth provider configuration file {patch_file} does not exist.")

        bind_context(resource_group=self._config.resource_group, cluster=self._config.cluster_name)
        discovered = self._reconciler.connect()
        if not discovered.cluster_connected:
            raise AKSBootClusterError(f"Kubernetes cluster {self._config.cluster_name} does not exist.")

        LOGGER.info("Updating auth providers...")
        self._kubernetes.patch_configmap(AUTH_PROVIDERS_CONFIGMAP, patch_file)
        self._kubernetes.rollout_restart(SERVER_DEPLOYMENT)
