"""Models parts package.

One dataclass per module; import from ``doubao_gateway.base.models`` for the
stable surface.
"""
