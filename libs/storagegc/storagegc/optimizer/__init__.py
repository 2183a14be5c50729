"""Image re-encoding pipeline."""

from storagegc.optimizer.codec import WEBP_CONTENT_TYPE, detect_format, encode_webp
from storagegc.optimizer.optimizer import ImageOptimizer

__all__ = ["ImageOptimizer", "WEBP_CONTENT_TYPE", "detect_format", "encode_webp"]
