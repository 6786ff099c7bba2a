"""
Resource and optional dependency management shared by the alignment engines.
"""
from functools import cached_property, lru_cache
from importlib import import_module
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, TypeVar
from numpy.random import default_rng
import atexit
import os

T = TypeVar('T')
R = TypeVar('R')


# Classes --------------------------------------------------------------------------------------------------------------
class Resources:
    """
    Manages process-wide resources: the worker pool used for per-pass parallelism,
    the default random number generator and optional dependency checks.

    Nothing here carries alignment state; engines only borrow the pool and always
    collect results in submission order.

    Attributes:
        package (str): The package name.
    """
    def __init__(self) -> None:
        self.package = __name__.split('.')[0]
        # Register cleanup to run automatically when the program exits
        atexit.register(self._cleanup)

    @cached_property
    def rng(self):
        """Returns a default numpy random number generator."""
        return default_rng()

    @cached_property
    def available_cpus(self) -> int:
        """Returns the number of available CPUs."""
        try: return os.process_cpu_count()
        except AttributeError: return os.cpu_count()

    @cached_property
    def pool(self) -> ThreadPoolExecutor:
        """Returns the shared ThreadPoolExecutor (created on first use)."""
        return ThreadPoolExecutor(min(32, (self.available_cpus or 1) + 4), thread_name_prefix=self.package)

    def map_ordered(self, func: Callable[[T], R], items: Iterable[T], parallel: bool = False) -> list[R]:
        """
        Applies ``func`` to every item and returns the results in input order.

        With ``parallel=True`` the work is spread over the shared pool. Results are still
        gathered by position, never by completion order.
        """
        items = list(items)
        if not parallel or len(items) < 2: return [func(i) for i in items]
        return list(self.pool.map(func, items))

    def _cleanup(self):
        """Shuts down the thread pool."""
        # Check if 'pool' is in __dict__ (meaning it was initialized)
        if 'pool' in self.__dict__: self.pool.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    @lru_cache(maxsize=None)
    def has_module(module_name: str) -> bool:
        """Checks if a python package is installed."""
        try:
            import_module(module_name)
            return True
        except ImportError: return False

    # __enter__ and __exit__ are still useful for scoped usage (e.g. testing)
    def __enter__(self): return self
    def __exit__(self, exc_type, exc_val, exc_tb): self._cleanup()


# Decorators -----------------------------------------------------------------------------------------------------------
def jit(signature_or_function=None, **options) -> Callable:
    """
    Conditional Numba JIT decorator.

    If 'numba' is installed (checked via RESOURCES), this applies `numba.jit`
    with the provided arguments. Otherwise, it returns the original function unmodified,
    ignoring any compilation options.

    Examples:
        >>> @jit  # Bare usage
        ... def func(): ...

        >>> @jit(nopython=True, cache=True, nogil=True)  # Configured usage
        ... def func(): ...
    """
    # 1. Fallback: Numba not installed
    if not RESOURCES.has_module('numba'):
        if callable(signature_or_function): return signature_or_function  # Handle bare @jit
        def passthrough(func: Callable) -> Callable: return func  # Handle @jit(...)
        return passthrough
    # 2. Apply Numba
    from numba import jit as real_jit
    if callable(signature_or_function): return real_jit(signature_or_function)  # Handle bare @jit
    return real_jit(signature_or_function, **options)  # Handle @jit(...)


# Constants ------------------------------------------------------------------------------------------------------------
RESOURCES = Resources()
