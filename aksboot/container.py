"""
Dependency injection container for aksboot.

Wires the configuration, the external-tool adapters (az, kubectl, helm, the Gitpod
installer) and the provisioning components. Uses dependency-injector with singletons
for the adapters and factories for the components.
"""

from dependency_injector import containers, providers

from aksboot.cal.adapters.azure_cli import AzureCLIProvider
from aksboot.cluster.helm import HelmClient
from aksboot.cluster.installer import GitpodInstallerRenderer
from aksboot.cluster.kubectl import KubectlClient
from aksboot.config.schemas import EnvironmentConfig
from aksboot.provision.applier import ClusterApplier
from aksboot.provision.composer import ManifestComposer
from aksboot.provision.credentials import CredentialPropagator
from aksboot.provision.orchestrator import Orchestrator
from aksboot.provision.reconciler import ResourceReconciler
from aksboot.provision.teardown import TeardownController


class AKSBootIoCContainer(containers.DeclarativeContainer):
    """
    Inversion of Control (IoC) container for aksboot.

    Example:
    -------
        ```python
        container = AKSBootIoCContainer(config=load_environment_config(Path(".env")))
        container.orchestrator().install()

        # Tests swap the external clients for fakes
        container.cloud_provider.override(providers.Object(FakeProvider()))
        ```

    """

    # Loaded once by the CLI and never mutated
    config = providers.Dependency(instance_of=EnvironmentConfig)

    # Singletons: one client per external tool
    cloud_provider = providers.Singleton(AzureCLIProvider, config=config)
    kubernetes = providers.Singleton(KubectlClient)
    charts = providers.Singleton(HelmClient)
    renderer = providers.Singleton(GitpodInstallerRenderer, binary=config.provided.installer_binary)

    reconciler = providers.Factory(
        ResourceReconciler,
        config=config,
        provider=cloud_provider,
        kubernetes=kubernetes,
        charts=charts,
    )
    propagator = providers.Factory(CredentialPropagator, config=config, kubernetes=kubernetes)
    composer = providers.Factory(ManifestComposer, config=config, renderer=renderer)
    applier = providers.Factory(ClusterApplier, config=config, kubernetes=kubernetes)
    teardown = providers.Factory(
        TeardownController,
        config=config,
        reconciler=reconciler,
        provider=cloud_provider,
        kubernetes=kubernetes,
    )

    orchestrator = providers.Factory(
        Orchestrator,
        config=config,
        reconciler=reconciler,
        propagator=propagator,
        composer=composer,
        applier=applier,
        teardown=teardown,
        kubernetes=kubernetes,
    )


def create_container(config: EnvironmentConfig) -> AKSBootIoCContainer:
    """Container bound to a loaded configuration."""
    return AKSBootIoCContainer(config=config)
