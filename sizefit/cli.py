"""Thin CLI entry point: builds a TranscodeRequest and calls the engine."""

import argparse
import json
import logging
import sys
import uuid
from pathlib import Path

from sizefit import ffutil
from sizefit.engine import convert, convert_file
from sizefit.manifest import load_manifest, load_settings, parse_markers, parse_size
from sizefit.models import OutputKind, ProgressEvent


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="sizefit",
        description="SizeFit: transcode media to fit a target file size.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    conv = sub.add_parser("convert", help="Convert a media file")
    conv.add_argument("input", nargs="?", type=Path, help="Input media file")
    conv.add_argument("--manifest", "-m", type=Path, help="Path to a JSON job manifest")
    conv.add_argument("--size", "-s", type=str, default="25M", help="Target size, e.g. 25M or 8.5m")
    conv.add_argument(
        "--kind", "-k", type=str, default="mp4",
        help=f"Output kind: {', '.join(k.value for k in OutputKind)}",
    )
    conv.add_argument("--name", "-n", type=str, default="", help="Output file name (without extension)")
    conv.add_argument("--trim-start", type=float, help="Start offset in seconds")
    conv.add_argument("--trim-duration", type=float, help="Clip duration in seconds")
    conv.add_argument("--markers", type=Path, help="JSON file with a list of {time, name} markers")

    prb = sub.add_parser("probe", help="Print media metadata")
    prb.add_argument("input", type=Path, help="Input media file")

    serve = sub.add_parser("serve", help="Launch the web UI")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    settings = load_settings()
    try:
        ffutil.check_ffmpeg(settings.ffmpeg, settings.ffprobe)
    except ffutil.FFmpegNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.command == "serve":
        from sizefit.web import create_app
        app = create_app(settings=settings)
        print(f"SizeFit web UI: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False, threaded=True)
        return

    if args.command == "probe":
        try:
            meta = ffutil.probe_metadata(args.input, settings.ffprobe)
        except (ffutil.ProbeError, ffutil.FFmpegNotFoundError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        print(f"{args.input}")
        print(f"  Duration: {meta.duration:.2f}s")
        print(f"  Resolution: {meta.width}x{meta.height} @ {meta.fps:.2f}fps")
        print(f"  Codecs: {meta.codec_video} / {meta.codec_audio or 'no audio'}")
        print(f"  Container: {meta.format_name}, {meta.bitrate // 1000} kbps, {meta.size} bytes")
        return

    def on_progress(event: ProgressEvent) -> None:
        print(f"  [{event.progress:5.1f}%] {event.status.value}")

    if args.manifest:
        try:
            request = load_manifest(args.manifest)
        except (OSError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        result = convert(request, settings=settings, on_progress=on_progress)
    elif args.input:
        try:
            target_bytes = parse_size(args.size)
            markers = (
                parse_markers(json.loads(args.markers.read_text())) if args.markers else []
            )
        except (OSError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        result = convert_file(
            uuid.uuid4().hex[:12],
            args.input,
            args.name,
            target_bytes,
            args.kind,
            trim_start=args.trim_start,
            trim_duration=args.trim_duration,
            markers=markers,
            settings=settings,
            on_progress=on_progress,
        )
    else:
        print("Error: provide either an INPUT argument or --manifest.", file=sys.stderr)
        sys.exit(1)

    print()
    if not result.success:
        print(f"Conversion failed: {result.error}", file=sys.stderr)
        sys.exit(1)

    print(f"Done! Output: {result.output_path}")
    print(f"  Size: {result.output_size} bytes")
