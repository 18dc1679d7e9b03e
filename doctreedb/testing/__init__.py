"""Testing utilities for DocTreeDB consumers."""

from .fixtures import StoreTestHelper

__all__ = ['StoreTestHelper']
