"""Web boundary layer for route resolution.

Everything exposed here is read-only or prepares data for client-side
signing: routes are quoted and simulated, never executed.
"""

__all__ = [
    "contracts",
    "services",
    "controllers",
]
