"""Factory — deterministic deployment factory and stack builder."""

from blueprint_factory.factory.builder import BuiltSystem, FactoryBuilder
from blueprint_factory.factory.factory import MAX_CODE_SIZE, DeploymentFactory

__all__ = ["BuiltSystem", "DeploymentFactory", "FactoryBuilder", "MAX_CODE_SIZE"]
