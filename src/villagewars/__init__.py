"""Village Wars: a village-building strategy game server.

The rules live in :mod:`villagewars.domain`, persistence in
:mod:`villagewars.repository` and the HTTP surface in :mod:`villagewars.api`.
"""

__version__ = "0.1.0"
