"""Provisioning components: reconcile, propagate, compose, apply, tear down."""

from aksboot.provision.applier import ClusterApplier
from aksboot.provision.composer import ManifestComposer
from aksboot.provision.credentials import CredentialPropagator
from aksboot.provision.discovered import DiscoveredValues
from aksboot.provision.objects import ClusterObjectSet
from aksboot.provision.orchestrator import Orchestrator
from aksboot.provision.reconciler import ResourceReconciler
from aksboot.provision.teardown import TeardownController

__all__ = [
    "DiscoveredValues",
    "ClusterObjectSet",
    "ResourceReconciler",
    "CredentialPropagator",
    "ManifestComposer",
    "ClusterApplier",
    "TeardownController",
    "Orchestrator",
]
