"""
Core domain models and configuration schemas for the ContextKit project.
This package contains Pydantic definitions used throughout the system.
"""

from .config import BridgeConfig
from .manifest import ContextDescriptor, ParsedElement

__all__ = ["BridgeConfig", "ContextDescriptor", "ParsedElement"]
