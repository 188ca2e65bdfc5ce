"""
Configuration settings related to video re-encoding.

This module defines the media kinds the shrinking pass accepts, the codecs and
preset handed to FFmpeg, and the constants of the size convergence schedule.
"""

# --- Accepted Media Kinds ---
# File kinds (extensions without the dot, lowercase) that can be re-encoded.
REENCODABLE_KINDS = ("mp4", "mkv", "webm", "avi", "mov", "gif")

# --- Encoder Settings ---
VIDEO_ENCODER = "libx264"
AUDIO_ENCODER = "aac"
ENCODE_PRESET = "veryfast"
OUTPUT_CONTAINER_SUFFIX = ".mp4"

# --- Bitrate Settings ---
# Measured audio bitrates are clamped to this value (bps).
AUDIO_BITRATE_CAP = 128_000
# Derived video bitrates below this (bps) are treated as a failed computation.
MIN_VIDEO_BITRATE = 1_000

# --- Shrink Schedule ---
# Attempt N aims at max_size * TARGET_SIZE_RATIO * (1 - RETRY_SHRINK_STEP * N).
TARGET_SIZE_RATIO = 0.9
RETRY_SHRINK_STEP = 0.1
