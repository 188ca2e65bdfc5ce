"""
This package contains the pipeline layer of clipshrink.

The orchestrator drives a single artifact through its queue of passes. The
batch runner starts one such pipeline per input file and runs them in parallel,
collecting an outcome for each.
"""
