"""
Services Package for clipshrink.

This package contains the "service layer" of the application. A service is a
class or set of functions that performs one specific task and is coordinated by
the pipeline orchestrator.

- **Probe Service (`MediaProbe`):**
  Measures an artifact with ffprobe and validates the result.

- **Bitrate Service:**
  Pure arithmetic deriving the byte budget of each attempt and the bitrates
  that should meet it.

- **Encoder Service (`TwoPassEncoder`):**
  Runs the two FFmpeg invocations that produce a smaller artifact.

- **Passes (`PostProcessPass`, `ShrinkPass`):**
  Wrap probing, bitrate derivation and encoding into a single named,
  retry-aware transformation the orchestrator can dispatch.

- **Logging Service (`RunLog`, `ErrorLog`):**
  Writes YAML records of finished runs and plain-text records of failed
  commands, separate from the real-time console logging.
"""
