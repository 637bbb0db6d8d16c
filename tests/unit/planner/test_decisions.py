"""Unit tests for the encoding decision engine."""

import pytest

from ffsmart.hardware.models import Accelerator, Codec
from ffsmart.introspector.models import StreamProfile
from ffsmart.planner.decisions import (
    compute_gop,
    compute_video_bitrate,
    decide,
    select_audio_bitrate,
    select_channel_layout,
)
from ffsmart.planner.exceptions import (
    EncoderUnavailableError,
    UnknownAcceleratorError,
    UnknownCodecError,
)
from ffsmart.planner.models import (
    EncodeOverrides,
    HdrMetadata,
    Passthrough,
    PassthroughReason,
    Transcode,
)


def _profile(**kwargs) -> StreamProfile:
    values = {
        "video_codec": "h264",
        "width": 1920,
        "height": 1080,
        "pixel_format": "yuv420p",
        "color_transfer": "bt709",
        "frame_rate": "30/1",
        "audio_codec": "aac",
        "audio_bitrate": 128_000,
        "audio_channels": 2,
    }
    values.update(kwargs)
    return StreamProfile(**values)


HDR10 = {
    "video_codec": "hevc",
    "pixel_format": "yuv420p10le",
    "color_transfer": "smpte2084",
}


# =============================================================================
# Parameter derivation
# =============================================================================


class TestComputeVideoBitrate:
    """Tests for compute_video_bitrate."""

    @pytest.mark.parametrize(
        ("width", "height", "expected"),
        [
            (1920, 1080, 8_000_000),
            (1280, 720, 3_555_555),
            (320, 240, 2_000_000),
            (0, 0, 2_000_000),
            (2560, 1440, 14_222_222),
        ],
    )
    def test_scaling(self, width, height, expected):
        """Bitrate scales with pixel count, truncated, floored at 2 Mbps."""
        assert compute_video_bitrate(width, height) == expected


class TestComputeGop:
    """Tests for compute_gop."""

    def test_ntsc_rate(self):
        """30000/1001 rounds down to 30 and keeps the source rate."""
        settings = compute_gop("30000/1001")

        assert settings.gop == 30
        assert settings.frame_rate == "30000/1001"
        assert settings.fallback_reason is None

    @pytest.mark.parametrize(
        ("rate", "gop"),
        [("25/1", 25), ("60000/1001", 60), ("50/1", 50), ("1/2", 1), ("24000/1001", 24)],
    )
    def test_rounding(self, rate, gop):
        """The GOP is the frame rate rounded half up."""
        assert compute_gop(rate).gop == gop

    @pytest.mark.parametrize(
        "rate", ["invalid", None, "", "30/x", "30/0", "0/1", "50", "24", "+30/1"]
    )
    def test_fallback(self, rate):
        """Unusable rates fall back to 50 frames at 25/1 with a reason."""
        settings = compute_gop(rate)

        assert settings.gop == 50
        assert settings.frame_rate == "25/1"
        assert settings.fallback_reason

    def test_zero_denominator_reason(self):
        """A zero denominator is reported as such."""
        assert "denominator" in compute_gop("30/0").fallback_reason


class TestAudioSelection:
    """Tests for audio bitrate and layout selection."""

    @pytest.mark.parametrize(
        ("bitrate", "channels", "expected"),
        [
            (128_000, 2, 128_000),
            (60_000, 2, 60_000),
            (500_000, 6, 500_000),
            (44_100, 2, 128_000),
            (500_001, 6, 384_000),
            (None, None, 128_000),
            (None, 1, 64_000),
        ],
    )
    def test_audio_bitrate(self, bitrate, channels, expected):
        """In-range bitrates are kept, others synthesized per channel."""
        assert select_audio_bitrate(bitrate, channels) == expected

    @pytest.mark.parametrize(
        ("channels", "expected"),
        [
            (1, ("mono", 1, False)),
            (2, ("stereo", 2, False)),
            (6, ("5.1", 6, False)),
            (8, ("7.1", 8, False)),
            (3, ("stereo", 2, True)),
            (None, ("stereo", 2, True)),
        ],
    )
    def test_channel_layout(self, channels, expected):
        """Standard counts map to layouts; others are forced to stereo."""
        assert select_channel_layout(channels) == expected


# =============================================================================
# Passthrough precedence
# =============================================================================


class TestPassthroughPrecedence:
    """Tests for the UHD, 10-bit, HDR resolution order."""

    def test_uhd_beats_hdr(self, qsv_caps):
        """UHD HDR content is passed through as UHD, even when allowed."""
        profile = _profile(width=3840, height=2160, **HDR10)

        plan = decide(profile, qsv_caps, EncodeOverrides(allow_10bit=True, allow_hdr=True))

        assert plan == Passthrough(PassthroughReason.UHD)

    def test_10bit_without_10bit_encode(self, software_caps):
        """10-bit sources pass through when 10-bit output is not allowed."""
        plan = decide(_profile(pixel_format="yuv420p10le"), software_caps)

        assert plan == Passthrough(PassthroughReason.TEN_BIT)

    def test_10bit_beats_hdr(self, software_caps):
        """HDR10 content with nothing allowed is reported as 10-bit."""
        plan = decide(_profile(**HDR10), software_caps)

        assert plan == Passthrough(PassthroughReason.TEN_BIT)

    def test_hdr_when_only_10bit_allowed(self, software_caps):
        """Allowing 10-bit alone still passes HDR through."""
        plan = decide(_profile(**HDR10), software_caps, EncodeOverrides(allow_10bit=True))

        assert plan == Passthrough(PassthroughReason.HDR)

    def test_allow_flags_default_to_caps(self, qsv_caps):
        """With 10-bit encode support, HDR10 is transcoded by default."""
        plan = decide(_profile(**HDR10), qsv_caps, EncodeOverrides(codec="hevc", accelerator="vaapi"))

        assert isinstance(plan, Transcode)

    def test_hdr_override_independent(self, qsv_caps):
        """allow_hdr can be turned off while 10-bit stays allowed."""
        plan = decide(_profile(**HDR10), qsv_caps, EncodeOverrides(allow_hdr=False))

        assert plan == Passthrough(PassthroughReason.HDR)


# =============================================================================
# Transcode plans
# =============================================================================


class TestTranscode:
    """Tests for transcode parameter assembly."""

    def test_software_hd(self, software_caps):
        """A plain 1080p stream on a software host."""
        plan = decide(_profile(), software_caps)

        assert plan == Transcode(
            accelerator=Accelerator.SOFTWARE,
            codec=Codec.H264,
            encoder="libx264",
            low_power=False,
            video_bitrate=8_000_000,
            max_bitrate=10_000_000,
            buffer_size=16_000_000,
            gop=30,
            frame_rate="30/1",
            b_frames=2,
            audio_bitrate=128_000,
            channel_layout="stereo",
            audio_channels=2,
        )

    def test_720p_rates(self, software_caps):
        """Max rate and buffer derive from the truncated bitrate."""
        plan = decide(_profile(width=1280, height=720), software_caps)

        assert plan.video_bitrate == 3_555_555
        assert plan.max_bitrate == 4_444_443
        assert plan.buffer_size == 7_111_110

    def test_best_low_power_disables_bframes(self, qsv_caps):
        """The probed low-power qsv path runs without B-frames."""
        plan = decide(_profile(), qsv_caps)

        assert plan.encoder == "h264_qsv"
        assert plan.low_power
        assert plan.b_frames == 0

    def test_override_uses_result_table_for_low_power(self, qsv_caps):
        """Low power for a non-best pair comes from the measured results."""
        h264 = decide(_profile(), qsv_caps, EncodeOverrides(accelerator="vaapi"))
        hevc = decide(
            _profile(), qsv_caps, EncodeOverrides(accelerator="vaapi", codec="hevc")
        )

        assert h264.low_power and h264.b_frames == 0
        assert not hevc.low_power and hevc.b_frames == 2

    def test_software_override_on_hardware_host(self, qsv_caps):
        """Software never uses low power."""
        plan = decide(_profile(), qsv_caps, EncodeOverrides(accelerator="software"))

        assert plan.encoder == "libx264"
        assert not plan.low_power
        assert plan.b_frames == 2

    def test_codec_alias(self, software_caps):
        """h265 selects hevc."""
        plan = decide(_profile(), software_caps, EncodeOverrides(codec="h265"))

        assert plan.codec is Codec.HEVC
        assert plan.encoder == "libx265"

    def test_10bit_to_h264_gpu_scaler(self, qsv_caps):
        """10-bit input to h264 on qsv converts on the GPU."""
        plan = decide(_profile(pixel_format="p010le"), qsv_caps)

        assert plan.pixel_format_filter == "scale_qsv=format=nv12"
        assert plan.hdr is None

    def test_source_bit_depth_recorded(self, qsv_caps):
        """Plans remember whether the input was 10-bit."""
        assert decide(_profile(pixel_format="p010le"), qsv_caps).source_10bit
        assert not decide(_profile(pixel_format="yuv420p"), qsv_caps).source_10bit

    def test_10bit_to_h264_software_filter(self, qsv_caps):
        """10-bit input to software h264 uses the generic filter."""
        plan = decide(
            _profile(pixel_format="yuv420p10le"),
            qsv_caps,
            EncodeOverrides(accelerator="software"),
        )

        assert plan.pixel_format_filter == "format=yuv420p"

    def test_10bit_to_hevc_no_filter(self, qsv_caps):
        """hevc output keeps 10-bit frames."""
        plan = decide(
            _profile(pixel_format="yuv420p10le"),
            qsv_caps,
            EncodeOverrides(accelerator="vaapi", codec="hevc"),
        )

        assert plan.pixel_format_filter is None

    def test_hdr_block_for_hevc(self, qsv_caps):
        """HDR hevc output carries BT.2020 tags and the source transfer."""
        plan = decide(
            _profile(**HDR10),
            qsv_caps,
            EncodeOverrides(accelerator="vaapi", codec="hevc"),
        )

        assert plan.hdr == HdrMetadata(
            color_transfer="smpte2084",
            color_primaries="bt2020",
            colorspace="bt2020nc",
        )

    def test_hlg_transfer_verbatim(self, qsv_caps):
        """The transfer characteristic is copied as is."""
        profile = _profile(**{**HDR10, "color_transfer": "arib-std-b67"})

        plan = decide(profile, qsv_caps, EncodeOverrides(accelerator="vaapi", codec="hevc"))

        assert plan.hdr.color_transfer == "arib-std-b67"

    def test_no_hdr_block_for_h264(self, qsv_caps):
        """HDR sources tone-mapped to h264 get no HDR tags."""
        plan = decide(_profile(**HDR10), qsv_caps, EncodeOverrides(codec="h264"))

        assert plan.hdr is None
        assert plan.pixel_format_filter == "scale_qsv=format=nv12"

    def test_fallback_diagnostics(self, software_caps):
        """Fallbacks are flagged and described."""
        plan = decide(
            _profile(frame_rate="invalid", audio_channels=3, audio_bitrate=44_100),
            software_caps,
        )

        assert plan.gop == 50
        assert plan.frame_rate == "25/1"
        assert plan.gop_fallback
        assert plan.channel_layout == "stereo"
        assert plan.audio_channels == 2
        assert plan.channel_layout_forced
        assert plan.audio_bitrate == 192_000
        assert len(plan.diagnostics) == 2
        assert any("layout forced" in note for note in plan.diagnostics)

    def test_surround_audio(self, software_caps):
        """5.1 audio keeps its layout."""
        plan = decide(_profile(audio_channels=6, audio_bitrate=None), software_caps)

        assert plan.channel_layout == "5.1"
        assert plan.audio_channels == 6
        assert plan.audio_bitrate == 384_000

    def test_deterministic(self, qsv_caps):
        """The same inputs always give the same plan."""
        profile = _profile(width=1280, height=720, frame_rate="30000/1001")

        assert decide(profile, qsv_caps) == decide(profile, qsv_caps)


# =============================================================================
# Errors
# =============================================================================


class TestDecideErrors:
    """Tests for fatal override errors."""

    def test_unknown_accelerator(self, software_caps):
        """Unknown accelerators list the valid names."""
        with pytest.raises(UnknownAcceleratorError) as exc_info:
            decide(_profile(), software_caps, EncodeOverrides(accelerator="cuda"))

        assert exc_info.value.name == "cuda"
        assert "qsv" in exc_info.value.known

    def test_unknown_codec(self, software_caps):
        """Only h264 and hevc are accepted."""
        with pytest.raises(UnknownCodecError):
            decide(_profile(), software_caps, EncodeOverrides(codec="av1"))

    def test_encoder_unavailable(self, software_caps):
        """Forcing an accelerator ffmpeg lacks is fatal."""
        with pytest.raises(EncoderUnavailableError) as exc_info:
            decide(_profile(), software_caps, EncodeOverrides(accelerator="qsv"))

        assert exc_info.value.encoder == "h264_qsv"

    def test_invalid_override_beats_passthrough(self, software_caps):
        """Invalid requests fail even when the input would pass through."""
        with pytest.raises(UnknownAcceleratorError):
            decide(
                _profile(width=3840, height=2160),
                software_caps,
                EncodeOverrides(accelerator="cuda"),
            )
