"""Bindings to the database engine and the host operating system.

Protocols:
    - EngineAdmin: administrative surface of the database engine
    - VolumeQuery: free space lookup for a directory's volume

Implementations:
    - SqlServerEngine: EngineAdmin over a pymssql connection
    - EngineShellVolumeQuery: free space via xp_cmdshell + PowerShell
    - LocalVolumeQuery: free space via the local filesystem
"""

from .protocols import EngineAdmin, EngineError, VolumeQuery
from .server import SqlServerEngine
from .volumes import EngineShellVolumeQuery, LocalVolumeQuery, bytes_to_mb

__all__ = [
    "EngineAdmin",
    "EngineError",
    "EngineShellVolumeQuery",
    "LocalVolumeQuery",
    "SqlServerEngine",
    "VolumeQuery",
    "bytes_to_mb",
]
