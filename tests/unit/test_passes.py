"""Tests for the pass contract and ShrinkPass."""

import time

import pytest

from clipshrink.domain.exceptions import (
    BitrateComputationError,
    PipelineCancelled,
    ProbeError,
    RetryBudgetExhausted,
)
from clipshrink.domain.media import ProbeResult, StreamInfo
from clipshrink.domain.pass_models import EncodeTarget, PassKind, PipelineState
from clipshrink.services.passes import ShrinkPass
from tests.conftest import FakeEncoder, FakeProbe

MAX_SIZE = 9_500_000


@pytest.fixture
def encoder_dir(tmp_path):
    directory = tmp_path / "encoded"
    directory.mkdir()
    return directory


class TestShrinkPassApplies:
    """Tests for ShrinkPass.applies."""

    def test_large_video_applies(self, make_artifact):
        shrink = ShrinkPass(MAX_SIZE, probe=FakeProbe())
        assert shrink.applies(PipelineState(make_artifact("clip.webm", 20_000_000)))

    @pytest.mark.parametrize("size", [MAX_SIZE, MAX_SIZE - 1, 0])
    def test_small_enough_does_not_apply(self, make_artifact, size):
        shrink = ShrinkPass(MAX_SIZE, probe=FakeProbe())
        assert not shrink.applies(PipelineState(make_artifact("clip.mp4", size)))

    @pytest.mark.parametrize("name", ["photo.png", "notes.txt", "archive.zip", "noext"])
    def test_non_media_does_not_apply(self, make_artifact, name):
        shrink = ShrinkPass(MAX_SIZE, probe=FakeProbe())
        assert not shrink.applies(PipelineState(make_artifact(name, 20_000_000)))

    @pytest.mark.parametrize("name", ["a.mp4", "a.MKV", "a.webm", "a.avi", "a.mov", "a.gif"])
    def test_every_reencodable_kind_applies(self, make_artifact, name):
        shrink = ShrinkPass(MAX_SIZE, probe=FakeProbe())
        assert shrink.applies(PipelineState(make_artifact(name, 20_000_000)))

    def test_applies_does_not_probe(self, make_artifact):
        probe = FakeProbe()
        ShrinkPass(MAX_SIZE, probe=probe).applies(PipelineState(make_artifact(size=1)))
        assert probe.calls == []

    def test_rejects_non_positive_max_size(self):
        with pytest.raises(ValueError):
            ShrinkPass(0)


class TestShrinkPassExecute:
    """Tests for ShrinkPass.execute."""

    def test_reference_scenario_converges_in_one_pass(self, make_artifact, encoder_dir, sixty_second_probe):
        """20 MB input, 60 s, 160 kbit/s audio, encoded to 9 MB: done, nothing re-queued."""
        encoder = FakeEncoder(encoder_dir, [9_000_000])
        shrink = ShrinkPass(MAX_SIZE, probe=FakeProbe(sixty_second_probe), encoder=encoder)

        result = shrink.execute(PipelineState(make_artifact(size=20_000_000)))

        assert encoder.calls[0][1:] == (1_012_000, 128_000)
        assert result.artifact.size == 9_000_000
        assert result.additional_passes == []

    def test_plan_derives_bitrates_from_fresh_measurements(self, make_artifact, sixty_second_probe):
        probe = FakeProbe(sixty_second_probe)
        state = PipelineState(make_artifact())
        target = ShrinkPass(MAX_SIZE, probe=probe).plan(state, 0)
        assert target == EncodeTarget(1_012_000, 128_000)
        assert target != EncodeTarget(1_012_000, 160_000)
        assert probe.calls == [state.artifact]

    def test_oversized_result_requeues_itself(self, make_artifact, encoder_dir, sixty_second_probe):
        encoder = FakeEncoder(encoder_dir, [9_800_000])
        shrink = ShrinkPass(MAX_SIZE, probe=FakeProbe(sixty_second_probe), encoder=encoder)

        result = shrink.execute(PipelineState(make_artifact()))

        assert result.additional_passes == [PassKind.SHRINK]

    def test_retry_shrinks_target(self, make_artifact, encoder_dir, sixty_second_probe):
        """The second attempt aims at 0.9 * 0.9 of the maximum size."""
        encoder = FakeEncoder(encoder_dir, [9_000_000])
        shrink = ShrinkPass(MAX_SIZE, probe=FakeProbe(sixty_second_probe), encoder=encoder)
        state = PipelineState(make_artifact(), history=[PassKind.SHRINK])

        shrink.execute(state)

        target_size = int(MAX_SIZE * 0.9 * (1 - 0.1 * 1))
        assert encoder.calls[0][1] == (target_size * 8) // 60 - 128_000

    def test_budget_exhausted_after_three_runs(self, make_artifact, encoder_dir, sixty_second_probe):
        probe = FakeProbe(sixty_second_probe)
        encoder = FakeEncoder(encoder_dir, [9_000_000])
        shrink = ShrinkPass(MAX_SIZE, probe=probe, encoder=encoder)
        state = PipelineState(make_artifact(), history=[PassKind.SHRINK] * 3)

        with pytest.raises(RetryBudgetExhausted) as excinfo:
            shrink.execute(state)

        assert excinfo.value.identity is PassKind.SHRINK
        assert excinfo.value.attempts == 3
        assert probe.calls == []
        assert encoder.calls == []

    def test_budget_exhausted_regardless_of_content(self, make_artifact):
        """The cap is checked before anything looks at the media."""
        shrink = ShrinkPass(MAX_SIZE, probe=FakeProbe(error=ProbeError("unreadable")))
        state = PipelineState(make_artifact("tiny.txt", 1), history=[PassKind.SHRINK] * 3)
        with pytest.raises(RetryBudgetExhausted):
            shrink.execute(state)

    def test_third_run_is_still_allowed(self, make_artifact, encoder_dir, sixty_second_probe):
        encoder = FakeEncoder(encoder_dir, [9_000_000])
        shrink = ShrinkPass(MAX_SIZE, probe=FakeProbe(sixty_second_probe), encoder=encoder)
        shrink.execute(PipelineState(make_artifact(), history=[PassKind.SHRINK] * 2))
        assert len(encoder.calls) == 1

    def test_probe_error_propagates_without_encoding(self, make_artifact, encoder_dir):
        encoder = FakeEncoder(encoder_dir, [9_000_000])
        shrink = ShrinkPass(MAX_SIZE, probe=FakeProbe(error=ProbeError("no streams")), encoder=encoder)
        with pytest.raises(ProbeError):
            shrink.execute(PipelineState(make_artifact()))
        assert encoder.calls == []

    def test_video_only_source_encodes_without_audio(self, make_artifact, encoder_dir):
        probe = FakeProbe(ProbeResult(60, [StreamInfo("video", 3_000_000)]))
        encoder = FakeEncoder(encoder_dir, [9_000_000])
        ShrinkPass(MAX_SIZE, probe=probe, encoder=encoder).execute(PipelineState(make_artifact()))
        assert encoder.calls[0][1:] == (1_140_000, 0)

    def test_audio_without_bitrate_assumes_cap(self, make_artifact, encoder_dir):
        probe = FakeProbe(ProbeResult(60, [StreamInfo("video"), StreamInfo("audio")]))
        encoder = FakeEncoder(encoder_dir, [9_000_000])
        ShrinkPass(MAX_SIZE, probe=probe, encoder=encoder).execute(PipelineState(make_artifact()))
        assert encoder.calls[0][2] == 128_000

    def test_zero_duration_is_bitrate_error(self, make_artifact, encoder_dir):
        probe = FakeProbe(ProbeResult(0, [StreamInfo("video"), StreamInfo("audio", 96_000)]))
        encoder = FakeEncoder(encoder_dir, [9_000_000])
        with pytest.raises(BitrateComputationError):
            ShrinkPass(MAX_SIZE, probe=probe, encoder=encoder).execute(PipelineState(make_artifact()))
        assert encoder.calls == []

    def test_expired_deadline_cancels_before_probing(self, make_artifact, sixty_second_probe):
        probe = FakeProbe(sixty_second_probe)
        state = PipelineState(make_artifact(), deadline=time.monotonic() - 1)
        with pytest.raises(PipelineCancelled):
            ShrinkPass(MAX_SIZE, probe=probe).execute(state)
        assert probe.calls == []

    def test_input_artifact_is_not_modified(self, make_artifact, encoder_dir, sixty_second_probe):
        source = make_artifact(size=20_000_000)
        encoder = FakeEncoder(encoder_dir, [9_000_000])
        result = ShrinkPass(MAX_SIZE, probe=FakeProbe(sixty_second_probe), encoder=encoder).execute(
            PipelineState(source)
        )
        assert result.artifact.path != source.path
        assert source.path.stat().st_size == 20_000_000
