"""Unit tests for ffmpeg command rendering."""

import pytest

from ffsmart.executor.command import (
    HTTP_RECONNECT_ARGS,
    MPEGTS_OUTPUT_ARGS,
    build_audio_args,
    build_ffmpeg_args,
    build_input_args,
    build_video_args,
    describe_plan,
    is_network_source,
    select_video_filter,
)
from ffsmart.hardware.models import Accelerator, Codec
from ffsmart.planner.models import HdrMetadata, Passthrough, PassthroughReason, Transcode


def _transcode(**kwargs) -> Transcode:
    values = {
        "accelerator": Accelerator.SOFTWARE,
        "codec": Codec.H264,
        "encoder": "libx264",
        "low_power": False,
        "video_bitrate": 8_000_000,
        "max_bitrate": 10_000_000,
        "buffer_size": 16_000_000,
        "gop": 30,
        "frame_rate": "30/1",
        "b_frames": 2,
        "audio_bitrate": 128_000,
        "channel_layout": "stereo",
        "audio_channels": 2,
    }
    values.update(kwargs)
    return Transcode(**values)


def _value_after(args: list[str], flag: str) -> str:
    return args[args.index(flag) + 1]


class TestInputArgs:
    """Tests for input side options."""

    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("http://example.com/live.ts", True),
            ("HTTPS://example.com/live.m3u8", True),
            ("/media/recording.ts", False),
            ("udp://239.0.0.1:1234", False),
        ],
    )
    def test_is_network_source(self, source, expected):
        """Only HTTP(S) counts as a network source."""
        assert is_network_source(source) is expected

    def test_local_source_has_no_network_options(self):
        """Local files get no reconnect or header options."""
        assert build_input_args("/media/a.ts", user_agent="VLC/3.0") == []

    def test_http_source(self):
        """User agent and headers come before the reconnect options."""
        args = build_input_args(
            "http://example.com/live.ts",
            user_agent="VLC/3.0",
            headers={"Referer": "http://example.com/"},
        )

        assert args[:4] == [
            "-user_agent",
            "VLC/3.0",
            "-headers",
            "Referer: http://example.com/\r\n",
        ]
        assert args[4:] == list(HTTP_RECONNECT_ARGS)


class TestVideoArgs:
    """Tests for build_video_args."""

    def test_software_h264(self):
        """Rate control, GOP, B-frames and constant frame rate."""
        args = build_video_args(_transcode())

        assert args[:4] == ["-c:v", "libx264", "-preset", "veryfast"]
        assert _value_after(args, "-b:v") == "8000000"
        assert _value_after(args, "-maxrate") == "10000000"
        assert _value_after(args, "-bufsize") == "16000000"
        assert _value_after(args, "-g") == "30"
        assert _value_after(args, "-bf") == "2"
        assert args[-4:] == ["-fps_mode", "cfr", "-r", "30/1"]
        assert "-vf" not in args
        assert "-tag:v" not in args

    def test_low_power_qsv(self):
        """Low-power plans add the accelerator's low-power switch."""
        args = build_video_args(
            _transcode(
                accelerator=Accelerator.QSV,
                encoder="h264_qsv",
                low_power=True,
                b_frames=0,
            )
        )

        assert _value_after(args, "-low_power") == "1"
        assert _value_after(args, "-bf") == "0"

    def test_normal_power_omits_switch(self):
        args = build_video_args(_transcode(accelerator=Accelerator.QSV, encoder="h264_qsv"))

        assert "-low_power" not in args

    def test_pixel_format_filter_first(self):
        """The downconvert filter precedes the encoder selection."""
        args = build_video_args(
            _transcode(
                accelerator=Accelerator.VAAPI,
                encoder="h264_vaapi",
                pixel_format_filter="scale_vaapi=format=nv12",
            )
        )

        assert args[:2] == ["-vf", "scale_vaapi=format=nv12"]

    def test_hevc_hdr(self):
        """hevc output is tagged hvc1 and HDR plans carry color tags."""
        args = build_video_args(
            _transcode(
                codec=Codec.HEVC,
                encoder="libx265",
                hdr=HdrMetadata(color_transfer="smpte2084"),
            )
        )

        assert _value_after(args, "-tag:v") == "hvc1"
        assert _value_after(args, "-color_primaries") == "bt2020"
        assert _value_after(args, "-colorspace") == "bt2020nc"
        assert _value_after(args, "-color_trc") == "smpte2084"


class TestAudioArgs:
    def test_aac(self):
        """Audio is always AAC with the planned bitrate and channels."""
        args = build_audio_args(_transcode(audio_bitrate=384_000, audio_channels=6))

        assert args == [
            "-c:a",
            "aac",
            "-b:a",
            "384000",
            "-ac",
            "6",
            "-af",
            "aresample=async=1",
        ]


class TestBuildFfmpegArgs:
    """Tests for complete command lines."""

    def test_passthrough(self):
        """Passthrough copies both streams and skips hardware decode."""
        args = build_ffmpeg_args(
            Passthrough(PassthroughReason.UHD), "/media/uhd.ts"
        )

        assert args[:4] == ["ffmpeg", "-hide_banner", "-loglevel", "warning"]
        assert "-hwaccel" not in args
        assert _value_after(args, "-c:v") == "copy"
        assert _value_after(args, "-c:a") == "copy"
        assert args[-1] == "pipe:1"

    def test_stream_mapping_and_muxer(self):
        """First video, optional first audio, MPEG-TS output."""
        args = build_ffmpeg_args(_transcode(), "/media/a.ts", output="out.ts")

        assert _value_after(args, "-i") == "/media/a.ts"
        assert args[args.index("-i") + 2 : args.index("-i") + 6] == [
            "-map",
            "0:v:0",
            "-map",
            "0:a:0?",
        ]
        assert args[-len(MPEGTS_OUTPUT_ARGS) - 1 : -1] == list(MPEGTS_OUTPUT_ARGS)
        assert args[-1] == "out.ts"

    def test_vaapi_hw_decode(self):
        """VAAPI plans decode on the configured render node."""
        args = build_ffmpeg_args(
            _transcode(accelerator=Accelerator.VAAPI, encoder="h264_vaapi"),
            "http://example.com/live.ts",
            vaapi_device="/dev/dri/renderD129",
        )

        assert _value_after(args, "-hwaccel") == "vaapi"
        assert _value_after(args, "-vaapi_device") == "/dev/dri/renderD129"
        assert args.index("-reconnect") < args.index("-hwaccel") < args.index("-i")

    def test_hw_decode_disabled(self):
        """Without hardware decode the input options are dropped."""
        args = build_ffmpeg_args(
            _transcode(accelerator=Accelerator.QSV, encoder="h264_qsv"),
            "/media/a.ts",
            hw_decode=False,
        )

        assert "-hwaccel" not in args
        assert _value_after(args, "-c:v") == "h264_qsv"

    def test_custom_executable(self):
        args = build_ffmpeg_args(_transcode(), "/media/a.ts", ffmpeg="/opt/ffmpeg/bin/ffmpeg")

        assert args[0] == "/opt/ffmpeg/bin/ffmpeg"


class TestSoftwareDecodedFrames:
    """Filters and device setup when 10-bit input is decoded in software."""

    def test_qsv_h264_uploads_nv12(self):
        """qsv opens the device and uploads 8-bit frames instead of scale_qsv."""
        plan = _transcode(
            accelerator=Accelerator.QSV,
            encoder="h264_qsv",
            pixel_format_filter="scale_qsv=format=nv12",
            source_10bit=True,
        )

        args = build_ffmpeg_args(plan, "/media/hdr.ts", hw_decode=False)

        assert "-hwaccel" not in args
        start = args.index("-init_hw_device")
        assert args[start : start + 4] == [
            "-init_hw_device",
            "qsv=hw",
            "-filter_hw_device",
            "hw",
        ]
        assert start < args.index("-i")
        assert _value_after(args, "-vf") == "format=nv12,hwupload=extra_hw_frames=64"
        assert "scale_qsv" not in " ".join(args)

    def test_qsv_hevc_keeps_10bit(self):
        """10-bit hevc output uploads p010 frames."""
        plan = _transcode(
            accelerator=Accelerator.QSV,
            codec=Codec.HEVC,
            encoder="hevc_qsv",
            source_10bit=True,
        )

        args = build_ffmpeg_args(plan, "/media/hdr.ts", hw_decode=False)

        assert _value_after(args, "-vf") == "format=p010le,hwupload=extra_hw_frames=64"

    def test_vaapi_h264_uploads_on_render_node(self):
        """vaapi opens the configured node and uploads instead of scale_vaapi."""
        plan = _transcode(
            accelerator=Accelerator.VAAPI,
            encoder="h264_vaapi",
            pixel_format_filter="scale_vaapi=format=nv12",
            source_10bit=True,
        )

        args = build_ffmpeg_args(
            plan, "/media/hdr.ts", hw_decode=False, vaapi_device="/dev/dri/renderD129"
        )

        assert "-hwaccel" not in args
        assert _value_after(args, "-vaapi_device") == "/dev/dri/renderD129"
        assert args.index("-vaapi_device") < args.index("-i")
        assert _value_after(args, "-vf") == "format=nv12,hwupload"

    def test_nvenc_h264_converts_in_software(self):
        """nvenc takes software frames, so scale_cuda becomes a format filter."""
        plan = _transcode(
            accelerator=Accelerator.NVENC,
            encoder="h264_nvenc",
            pixel_format_filter="scale_cuda=format=yuv420p",
            source_10bit=True,
        )

        args = build_ffmpeg_args(plan, "/media/hdr.ts", hw_decode=False)

        assert "-hwaccel" not in args
        assert "-init_hw_device" not in args
        assert _value_after(args, "-vf") == "format=yuv420p"

    def test_nvenc_hevc_needs_no_filter(self):
        plan = _transcode(
            accelerator=Accelerator.NVENC,
            codec=Codec.HEVC,
            encoder="hevc_nvenc",
            source_10bit=True,
        )

        args = build_ffmpeg_args(plan, "/media/hdr.ts", hw_decode=False)

        assert "-vf" not in args

    def test_hw_decode_keeps_device_filter(self):
        """With hardware decode the plan's device-side filter is used as is."""
        plan = _transcode(
            accelerator=Accelerator.QSV,
            encoder="h264_qsv",
            pixel_format_filter="scale_qsv=format=nv12",
            source_10bit=True,
        )

        args = build_ffmpeg_args(plan, "/media/hdr.ts")

        assert _value_after(args, "-hwaccel") == "qsv"
        assert "-init_hw_device" not in args
        assert _value_after(args, "-vf") == "scale_qsv=format=nv12"

    def test_software_encoder_unchanged(self):
        plan = _transcode(pixel_format_filter="format=yuv420p", source_10bit=True)

        assert select_video_filter(plan, hw_frames=False) == "format=yuv420p"


class TestBenchmarkOptions:
    """Tests for the bounded, progress-reporting variant of a command."""

    def test_duration_and_stats(self):
        """Duration is an output option and -stats follows the log level."""
        args = build_ffmpeg_args(
            _transcode(), "/media/a.ts", output="/dev/null", duration=15, stats=True
        )

        assert args[:5] == ["ffmpeg", "-hide_banner", "-loglevel", "warning", "-stats"]
        assert _value_after(args, "-t") == "15"
        assert args.index("-t") > args.index("-i")
        assert args[-1] == "/dev/null"

    def test_defaults_omit_both(self):
        args = build_ffmpeg_args(_transcode(), "/media/a.ts")

        assert "-t" not in args
        assert "-stats" not in args


class TestDescribePlan:
    """Tests for describe_plan."""

    def test_passthrough(self):
        assert describe_plan(Passthrough(PassthroughReason.TEN_BIT)) == "passthrough (10bit)"

    def test_transcode(self):
        """Summary lists backend, encoder, rates and extras."""
        plan = _transcode(
            accelerator=Accelerator.QSV,
            codec=Codec.HEVC,
            encoder="hevc_qsv",
            low_power=True,
            hdr=HdrMetadata(color_transfer="arib-std-b67"),
        )

        assert describe_plan(plan) == (
            "qsv/hevc, hevc_qsv low-power, 8000k, gop 30@30/1, "
            "aac 128k stereo, hdr arib-std-b67"
        )

    def test_transcode_with_filter(self):
        plan = _transcode(pixel_format_filter="format=yuv420p")

        assert describe_plan(plan).endswith(", format=yuv420p")
