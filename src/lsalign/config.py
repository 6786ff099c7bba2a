"""
Run configuration for the linear-space aligner.

The configuration is an immutable value passed explicitly to every run; there is no
process-wide default that callers can mutate.
"""
from dataclasses import dataclass, replace, fields


# Classes --------------------------------------------------------------------------------------------------------------
@dataclass(frozen=True)
class AlignerConfig:
    """
    Settings for ``RecursiveRefiner``.

    Out-of-range values are clamped rather than rejected: ``cuts_per_section``,
    ``leaf_threshold`` and ``max_passes`` all have a floor of 1.

    Attributes:
        cuts_per_section: Anchors requested per oversized rectangle per pass.
        leaf_threshold: Largest rectangle area (cells) solved directly with quadratic DP.
        max_passes: Pass ceiling; rectangles still oversized after it fall back to quadratic DP.
        parallel: Spread the rectangles of each pass over the shared thread pool.

    Examples:
        >>> AlignerConfig(cuts_per_section=0).cuts_per_section
        1
    """
    cuts_per_section: int = 10
    leaf_threshold: int = 4096
    max_passes: int = 64
    parallel: bool = False

    def __post_init__(self):
        for name in ('cuts_per_section', 'leaf_threshold', 'max_passes'):
            object.__setattr__(self, name, max(1, int(getattr(self, name))))
        object.__setattr__(self, 'parallel', bool(self.parallel))

    def replace(self, **changes) -> 'AlignerConfig':
        """Returns a copy with the given fields changed (unknown fields raise ``TypeError``)."""
        if unknown := set(changes) - {f.name for f in fields(self)}:
            raise TypeError(f'Unknown configuration option(s): {", ".join(sorted(unknown))}')
        return replace(self, **changes)


DEFAULT_CONFIG = AlignerConfig()
