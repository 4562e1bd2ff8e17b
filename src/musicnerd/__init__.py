"""
MusicNerd catalog client

Provides:
- MusicNerdClient: artist search, biographies and fun facts over HTTP,
  doubling as the orchestrator's EntityResolver and ContentFetcher
"""

from .client import MusicNerdClient, MusicNerdArtist

__all__ = ['MusicNerdClient', 'MusicNerdArtist']
