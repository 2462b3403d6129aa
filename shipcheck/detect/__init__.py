"""
Command Detection Module

Finds the lint, typecheck, test and build commands a project declares.
"""

from .detector import CommandDetector, DetectedCommand

__all__ = [
    "CommandDetector",
    "DetectedCommand",
]
