"""Reconciler for AKS node pools attached to a managed Kubernetes cluster."""

__version__ = "0.1.0"
