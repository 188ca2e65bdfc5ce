"""
clipshrink: drives a media file through a self-extending sequence of FFmpeg
post-processing passes until it fits under a maximum size.

Subpackages:
    config: static settings and the optional user YAML configuration.
    domain: artifacts, probe results, pass identities and pipeline state.
    services: probing, bitrate arithmetic, two-pass encoding and the passes.
    pipeline: the orchestrator and the parallel batch runner.
    utils: subprocess, executable lookup and formatting helpers.
"""

__version__ = "0.1.0"
