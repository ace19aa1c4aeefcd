"""
Command-line interface for voxkit.

Synthesizes text without running the HTTP server and manages the voices
directory.

Usage Examples:
    # Synthesize with the default voice
    voxkit "Hello there." -o hello.wav

    # Read the text from stdin
    cat chapter.txt | voxkit -f - -o chapter.wav

    # Pick a voice, model variant and output format
    voxkit --file chapter.txt -v narrator --model 0.6b --format flac -o chapter.flac

    # Voice management
    voxkit --list-voices
    voxkit --design calm "A calm, low-pitched male voice with a slow pace"
    voxkit --clone alice recordings/alice.wav
    voxkit --import-vox alice.vox
    voxkit --export-vox alice -o alice.vox
    voxkit --delete-voice alice

Environment Variables:
    VOXKIT_CONFIG: Settings file path (default: config/settings.yaml)
    VOXKIT_VOICES_DIR: Voices directory override
    VOXKIT_DEVICE: Device override (cuda/cpu/auto)
    VOXKIT_LOG_LEVEL: 1-4, console verbosity
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from voxkit.core.config import load_settings
from voxkit.core.errors import VoxkitError
from voxkit.core.logging import configure_logging, fail, get_logger, info, set_request_id
from voxkit.services.synthesis_service import SynthesisService, SynthesizeRequest


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="voxkit", description="voxkit CLI (serverless synthesis and voice management)")

    # Input
    parser.add_argument("text_pos", nargs="?", help="Text to synthesize (positional)")
    parser.add_argument("--text", help="Text to synthesize")
    parser.add_argument("-f", "--file", help="Read the text to synthesize from a file (\"-\" reads stdin)")

    # Output and synthesis overrides
    parser.add_argument("-o", "--out", help="Output path (audio file, or .vox with --export-vox)")
    parser.add_argument("-v", "--voice", help="Voice name (default: first built-in voice)")
    parser.add_argument("--model", help="Model variant, e.g. 0.6b or 1.7b")
    parser.add_argument("--format", choices=("wav", "flac", "ogg"), help="Output audio format")
    parser.add_argument("--language", help="Language override")
    parser.add_argument("--device", help="Device override (cuda/cpu/auto)")
    parser.add_argument("--config", help="Settings file path")

    # Voice management
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--list-voices", action="store_true", help="List available voices")
    group.add_argument("--design", nargs=2, metavar=("NAME", "DESC"), help="Create a voice from a description")
    group.add_argument("--clone", nargs=2, metavar=("NAME", "REF"), help="Create a voice from reference audio")
    group.add_argument("--import-vox", metavar="PATH", help="Install a .vox voice container")
    group.add_argument("--export-vox", metavar="NAME", help="Write a voice as a .vox container")
    group.add_argument("--delete-voice", metavar="NAME", help="Delete a custom voice")
    parser.add_argument("--name", help="Install name for --import-vox (default: name in the manifest)")
    parser.add_argument("--description", help="Description for --clone")

    parser.add_argument("--json", action="store_true", help="Print a JSON summary")

    return parser.parse_args(argv)


def _load_text(args: argparse.Namespace) -> str:
    text = args.text or args.text_pos
    if args.file:
        if text:
            raise SystemExit("Use --file without --text or positional text.")
        text = sys.stdin.read() if args.file == "-" else Path(args.file).read_text(encoding="utf-8")
        if not text.strip():
            raise SystemExit("Input file is empty.")
        return text
    if not text:
        raise SystemExit("Provide --text, --file or a positional text.")
    return text


def _emit(payload: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def _run(service: SynthesisService, args: argparse.Namespace, log) -> Dict[str, Any]:
    if args.list_voices:
        voices = service.list_voices()
        if not args.json:
            for v in voices:
                print(f"{v.name:<20} {v.kind.value:<9} {v.description or ''}")
        return {"ok": True, "voices": [v.to_dict() for v in voices]}

    if args.design:
        name, description = args.design
        record = service.design_voice(name, description)
        return {"ok": True, "voice": record.to_dict()}

    if args.clone:
        name, reference = args.clone
        record = service.clone_voice(name, reference, args.description)
        return {"ok": True, "voice": record.to_dict()}

    if args.import_vox:
        record = service.import_voice(Path(args.import_vox), args.name)
        return {"ok": True, "voice": record.to_dict()}

    if args.export_vox:
        data = service.export_voice(args.export_vox)
        out_path = Path(args.out or f"{args.export_vox}.vox")
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_bytes(data)
        return {"ok": True, "out": str(out_path), "bytes": len(data)}

    if args.delete_voice:
        return {"ok": True, "deleted": service.delete_voice(args.delete_voice)}

    text = _load_text(args)
    fmt = args.format or (Path(args.out).suffix.lstrip(".").lower() if args.out else "")
    if fmt not in ("wav", "flac", "ogg"):
        fmt = None
    result = service.synthesize(
        SynthesizeRequest(text=text, voice=args.voice, language=args.language, variant=args.model, format=fmt),
        request_id=str(uuid4())[:12],
    )
    out_path = Path(args.out or f"out.{result.format}")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(result.audio)
    info(log, "cli_written", out=str(out_path), bytes=len(result.audio))
    return {
        "ok": True,
        "out": str(out_path),
        "bytes": len(result.audio),
        "sample_rate": result.sample_rate,
        "voice": result.voice,
        "chunks": result.chunks,
        "clone_prompt_tier": result.clone_prompt_tier,
    }


def main(argv: Optional[List[str]] = None, service: Optional[SynthesisService] = None) -> int:
    """
    CLI entry point.

    Returns 0 on success, 1 when the operation fails with a voxkit error.
    """
    args = _parse_args(argv)

    if args.device:
        os.environ["VOXKIT_DEVICE"] = args.device

    configure_logging()
    log = get_logger("voxkit.cli")
    set_request_id(str(uuid4())[:12])

    if service is None:
        service = SynthesisService(load_settings(args.config))

    try:
        payload = _run(service, args, log)
    except VoxkitError as e:
        fail(log, "cli_failed", error=e.code, message=e.message)
        _emit(e.to_dict(), args.json)
        return 1

    _emit(payload, args.json)
    print("CLI_OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
