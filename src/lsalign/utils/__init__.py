"""
Module containing shared utilities for the alignment engines.
"""
from .resources import RESOURCES, Resources, jit

__all__ = ['RESOURCES', 'Resources', 'jit']
