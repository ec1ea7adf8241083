# Re-export submodules/classes
from . import algorithms as algorithms
from . import providers as providers
from .algorithms import AlgorithmRegistry
from .providers import ProviderRegistry

__all__ = ["algorithms", "providers", "AlgorithmRegistry", "ProviderRegistry"]
