"""
This package contains the core domain models of clipshrink.

The domain layer represents the fundamental concepts of the post-processing
pipeline: the artifact being transformed, the measurements taken from it, the
identities of the passes and the state a pipeline run carries between them. It
is independent of the subprocess and filesystem details handled in the
services and utils packages.

Modules:
    exceptions.py: Defines the error kinds a pipeline run can end with.
    media.py: Contains `Artifact`, the handle to a media file, and `ProbeResult`,
              the validated view of ffprobe's output.
    pass_models.py: Defines `PassKind`, `PipelineState`, `PassResult` and
                    `EncodeTarget`, the data exchanged between the orchestrator
                    and the passes.
"""
