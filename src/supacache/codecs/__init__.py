"""Codecs applied to cached response bodies.

Write path: JSON value -> JsonCompressor.compress -> AesGcmCipher.encrypt
Read path:  envelope   -> AesGcmCipher.decrypt   -> JsonCompressor.decompress
"""

from .compression import JsonCompressor
from .encryption import AesGcmCipher

__all__ = ["AesGcmCipher", "JsonCompressor"]
