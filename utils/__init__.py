"""Shared utilities for the exercise coaching system."""

from .config_loader import load_config, get_nested_config
from .video_io import MediaSource, OpenCVMediaSource, ProbeFailure, ExtractionFailure

__all__ = [
    'load_config',
    'get_nested_config',
    'MediaSource',
    'OpenCVMediaSource',
    'ProbeFailure',
    'ExtractionFailure',
]
