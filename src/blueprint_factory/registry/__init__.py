"""Registry — content-addressed blueprint store and YAML manifests."""

from blueprint_factory.registry.manifests import BlueprintManifest, load_manifests, parse_manifest
from blueprint_factory.registry.registry import BlueprintRegistry

__all__ = ["BlueprintManifest", "BlueprintRegistry", "load_manifests", "parse_manifest"]
