"""
Image ratio detection.
"""

from .buckets import bucket_for_dimensions, bucket_for_ratio
from .inferrer import RatioInferrer, read_dimensions
from .loader import HttpImageLoader, ImageLoader

__all__ = [
    "HttpImageLoader",
    "ImageLoader",
    "RatioInferrer",
    "bucket_for_dimensions",
    "bucket_for_ratio",
    "read_dimensions",
]
