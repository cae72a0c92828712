"""Drive media cache: listing, transcoding, reconciliation and delivery"""

from mediacache.media.errors import MediaError, RemoteError
from mediacache.media.listing import ListingFetcher
from mediacache.media.models import CacheEntry, MediaKind, RemoteEntry
from mediacache.media.pipeline import TranscodePipeline
from mediacache.media.providers.base import BaseRemoteProvider
from mediacache.media.reconciler import Reconciler
from mediacache.media.server import ArtifactServer
from mediacache.media.store import CacheStore
from mediacache.media.transcode import Transcoder

__all__ = [
    "ArtifactServer",
    "BaseRemoteProvider",
    "CacheEntry",
    "CacheStore",
    "ListingFetcher",
    "MediaError",
    "MediaKind",
    "Reconciler",
    "RemoteEntry",
    "RemoteError",
    "TranscodePipeline",
    "Transcoder",
]
