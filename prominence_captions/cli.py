"""Command-line interface for Prominence Captions.

WHY: The pipeline needs to be exercised without a browser, a microphone
or cloud credentials: replaying a recorded session to inspect how words
were sized, previewing the degraded demo display, running the recognizer
proxy server, and captioning live against that server.

HOW: argparse with four subcommands. ``replay`` reads a JSON Lines
session script, drives a CaptionSession on a ManualClock set from each
entry's ``t``, and prints rendered frames. ``demo`` ticks the demo
sequence. ``serve`` runs the FastAPI proxy under uvicorn. ``live`` runs a
LiveCaptioner with a RemoteRecognizer, optionally streaming an audio file
through it, and falls back to demo mode when the server is unreachable. Status
messages go to stderr; frames go to stdout so output can be piped.

RULES:
- Script lines are JSON objects with "t" (ms) and "kind"; blank lines
  and lines starting with "#" are skipped
- Kinds: prominence, detection, result, noise_calibration_start,
  noise_calibration_end, voice_calibration_start,
  voice_calibration_finish, sensitivity
- "detection" entries pass through the oracle detection gate first
  (and the oracle's start-up noise calibration)
- --final-only prints just the last frame
- live: a failed /health preflight or a server without a speech backend
  means no recognizer, so the session runs in demo mode
- Exit code 1 on unreadable or invalid input
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

import numpy as np
import soundfile as sf
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from prominence_captions.config import (
    CAPTION_BASE_SIZE,
    CAPTION_LANGUAGE,
    LOG_LEVEL,
    RECOGNIZER_URL,
    SERVER_HOST,
    SERVER_PORT,
    load_settings,
    normalize_language,
)
from prominence_captions.core.clock import ManualClock
from prominence_captions.core.ir import RenderWord
from prominence_captions.errors import InputUnavailableError
from prominence_captions.live import DEMO_TICK_INTERVAL_S, LiveCaptioner
from prominence_captions.oracle import OracleConfig, RawDetection, ReplayOracle
from prominence_captions.recognizer.base import RecognitionResult
from prominence_captions.recognizer.remote import RemoteRecognizer
from prominence_captions.renderers import RENDERERS
from prominence_captions.renderers.base import BaseRenderer
from prominence_captions.session import CaptionSession, Status

logger = logging.getLogger(__name__)

DEMO_TICK_MS = 600.0

AUDIO_CHUNK_S = 0.1
STREAM_WAIT_S = 5.0
AUDIO_DRAIN_S = 1.0


def _status(msg: str) -> None:
    """Print a status message to stderr, flushed immediately."""
    print(msg, file=sys.stderr, flush=True)


# ---------------------------------------------------------------------------
# Session script entries
# ---------------------------------------------------------------------------


class _Entry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    t: float = Field(ge=0, description="Session clock time of the entry in ms.")


class ProminenceEntry(_Entry):
    kind: Literal["prominence"]
    score: float = Field(ge=0, le=1)
    features: Dict[str, float] = Field(default_factory=dict)
    calibration: bool = False

    def to_payload(self) -> Dict[str, Any]:
        return {
            "timestamp": self.t,
            "fusionScore": self.score,
            "features": dict(self.features),
            "calibration": self.calibration,
        }


class DetectionEntry(_Entry):
    kind: Literal["detection"]
    score: float = Field(ge=0, le=1)
    energy: float = 0.0
    spectral_flux: float = Field(default=0.0, alias="spectralFlux")

    def to_detection(self) -> RawDetection:
        return RawDetection(
            timestamp_ms=self.t,
            fusion_score=self.score,
            energy=self.energy,
            spectral_flux=self.spectral_flux,
        )


class ResultEntry(_Entry):
    kind: Literal["result"]
    transcript: str
    is_final: bool = Field(default=False, alias="isFinal")


class NoiseCalibrationStartEntry(_Entry):
    kind: Literal["noise_calibration_start"]


class NoiseCalibrationEndEntry(_Entry):
    kind: Literal["noise_calibration_end"]


class VoiceCalibrationStartEntry(_Entry):
    kind: Literal["voice_calibration_start"]


class VoiceCalibrationFinishEntry(_Entry):
    kind: Literal["voice_calibration_finish"]


class SensitivityEntry(_Entry):
    kind: Literal["sensitivity"]
    value: float = Field(ge=0, le=100)


ScriptEntry = Annotated[
    Union[
        ProminenceEntry,
        DetectionEntry,
        ResultEntry,
        NoiseCalibrationStartEntry,
        NoiseCalibrationEndEntry,
        VoiceCalibrationStartEntry,
        VoiceCalibrationFinishEntry,
        SensitivityEntry,
    ],
    Field(discriminator="kind"),
]

_ENTRY_ADAPTER = TypeAdapter(ScriptEntry)


def parse_script(lines: List[str]) -> List[Any]:
    """Parse session script lines into entries.

    Raises:
        ValueError: On the first invalid line, naming its line number.
    """
    entries: List[Any] = []
    for number, line in enumerate(lines, start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        try:
            entries.append(_ENTRY_ADAPTER.validate_json(stripped))
        except ValidationError as exc:
            first = exc.errors()[0] if exc.errors() else {"msg": str(exc)}
            raise ValueError(
                "Invalid script entry on line {}: {}".format(number, first.get("msg", "invalid"))
            ) from exc
    return entries


def load_script(path: Path) -> List[Any]:
    """Read and parse a session script file.

    Raises:
        ValueError: If the file is missing or contains an invalid entry.
    """
    if not path.is_file():
        raise ValueError("Script not found: {}".format(path))
    with open(path, encoding="utf-8") as f:
        return parse_script(f.readlines())


# ---------------------------------------------------------------------------
# Replay
# ---------------------------------------------------------------------------


def _print_status(status: Status) -> None:
    _status("[{}] {}".format(status.kind.value, status.message))


async def replay_script(
    entries: List[Any],
    renderer: BaseRenderer,
    final_only: bool = False,
    out=None,
) -> CaptionSession:
    """Drive a CaptionSession through script entries, printing frames."""
    out = out or sys.stdout
    clock = ManualClock()

    def print_frame(words: List[RenderWord]) -> None:
        if not final_only:
            print(renderer.render(words).content, file=out, flush=True)

    session = CaptionSession(
        settings=load_settings(),
        clock=clock,
        listener=print_frame,
        status_listener=_print_status,
    )

    oracle: Optional[ReplayOracle] = None
    if any(isinstance(entry, DetectionEntry) for entry in entries):
        oracle = ReplayOracle(config=OracleConfig())
        oracle.set_callbacks(
            on_prominence=session.on_prominence,
            on_calibration_start=session.on_noise_calibration_start,
            on_calibration_end=session.on_noise_calibration_end,
        )
        await oracle.start()

    for entry in entries:
        clock.set(entry.t)
        _dispatch(session, oracle, entry)

    if oracle is not None:
        await oracle.stop()
    if final_only:
        print(renderer.render(session.render_words()).content, file=out, flush=True)
    return session


def _dispatch(session: CaptionSession, oracle: Optional[ReplayOracle], entry: Any) -> None:
    if isinstance(entry, ProminenceEntry):
        session.on_prominence(entry.to_payload())
    elif isinstance(entry, DetectionEntry):
        if oracle is not None:
            oracle.feed(entry.to_detection())
    elif isinstance(entry, ResultEntry):
        session.on_recognition_result(RecognitionResult.single(entry.transcript, entry.is_final))
    elif isinstance(entry, NoiseCalibrationStartEntry):
        session.on_noise_calibration_start()
    elif isinstance(entry, NoiseCalibrationEndEntry):
        session.on_noise_calibration_end()
    elif isinstance(entry, VoiceCalibrationStartEntry):
        session.start_voice_calibration()
    elif isinstance(entry, VoiceCalibrationFinishEntry):
        session.finish_voice_calibration()
    elif isinstance(entry, SensitivityEntry):
        session.set_sensitivity(entry.value)


def _run_replay(args: argparse.Namespace) -> None:
    try:
        entries = load_script(Path(args.script))
    except ValueError as e:
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)

    renderer = RENDERERS[args.format](base_size=args.base_size)
    _status("Replaying {} entries from {}".format(len(entries), args.script))
    session = asyncio.run(replay_script(entries, renderer, final_only=args.final_only))
    _status("Done: {} prominence event(s), {} word(s) on screen".format(
        session.total_events, len(session.transcript),
    ))


# ---------------------------------------------------------------------------
# Demo
# ---------------------------------------------------------------------------


def run_demo(ticks: int, renderer: BaseRenderer, out=None) -> CaptionSession:
    """Print the demo display for a number of ticks, DEMO_TICK_MS apart."""
    out = out or sys.stdout
    clock = ManualClock()
    session = CaptionSession(
        settings=load_settings(),
        clock=clock,
        listener=lambda words: print(renderer.render(words).content, file=out, flush=True),
        status_listener=_print_status,
    )
    session.enable_demo_mode()
    for _ in range(ticks):
        clock.advance(DEMO_TICK_MS)
        session.demo_tick()
    return session


def _run_demo(args: argparse.Namespace) -> None:
    if args.ticks < 1:
        print("Error: --ticks must be at least 1", file=sys.stderr)
        sys.exit(1)
    run_demo(args.ticks, RENDERERS[args.format](base_size=args.base_size))


# ---------------------------------------------------------------------------
# Live
# ---------------------------------------------------------------------------


def load_audio(path: Path) -> Tuple[np.ndarray, int]:
    """Read an audio file as mono float32 samples in [-1, 1].

    Multi-channel files are down-mixed by averaging the channels.

    Raises:
        ValueError: If the file is missing or cannot be decoded.
    """
    if not path.is_file():
        raise ValueError("Audio file not found: {}".format(path))
    try:
        data, sample_rate = sf.read(str(path), dtype="float32", always_2d=True)
    except RuntimeError as exc:
        raise ValueError("Cannot read audio file {}: {}".format(path, exc)) from exc
    return data.mean(axis=1, dtype=np.float32), int(sample_rate)


async def stream_audio(
    recognizer: RemoteRecognizer,
    samples: np.ndarray,
    sample_rate: int,
    chunk_s: float = AUDIO_CHUNK_S,
) -> int:
    """Send samples to the recognizer in chunks paced at real time.

    Waits up to STREAM_WAIT_S for the server to answer "started" first.

    Returns:
        The number of chunks the recognizer accepted.
    """
    waited = 0.0
    while not recognizer.is_streaming:
        if waited >= STREAM_WAIT_S or not recognizer.is_connected:
            logger.warning("Recognizer server never started streaming; audio not sent")
            return 0
        await asyncio.sleep(0.05)
        waited += 0.05

    step = max(1, int(sample_rate * chunk_s))
    accepted = 0
    for offset in range(0, len(samples), step):
        chunk = samples[offset:offset + step]
        if await recognizer.send_audio(chunk):
            accepted += 1
        await asyncio.sleep(len(chunk) / sample_rate)
    logger.info("Streamed %d audio chunk(s)", accepted)
    return accepted


async def _preflight(recognizer: RemoteRecognizer) -> bool:
    try:
        health = await recognizer.check_health()
    except InputUnavailableError as exc:
        logger.warning("Recognizer server unavailable: %s", exc.message)
        return False
    if not health.get("speechClient"):
        logger.warning("Recognizer server has no speech backend configured")
        return False
    return True


async def run_live(
    renderer: BaseRenderer,
    server_url: Optional[str] = None,
    language: Optional[str] = None,
    audio: Optional[Tuple[np.ndarray, int]] = None,
    duration_s: Optional[float] = None,
    demo_tick_interval_s: float = DEMO_TICK_INTERVAL_S,
    out=None,
) -> CaptionSession:
    """Caption results from the recognizer proxy, printing frames.

    HOW: A /health preflight decides whether the RemoteRecognizer is used
    at all; without it LiveCaptioner runs the demo display. With audio,
    the samples are streamed once recognition has started and the
    session runs for AUDIO_DRAIN_S afterwards (or duration_s, when
    given). Without audio the session runs for duration_s, or until
    cancelled when that is None too.

    Args:
        audio: (samples, sample_rate) as returned by load_audio().
    """
    out = out or sys.stdout
    settings = load_settings()
    if language:
        settings.language = normalize_language(language)

    session = CaptionSession(
        settings=settings,
        listener=lambda words: print(renderer.render(words).content, file=out, flush=True),
        status_listener=_print_status,
    )
    recognizer: Optional[RemoteRecognizer] = RemoteRecognizer(
        server_url=server_url,
        language=settings.language,
        sample_rate=audio[1] if audio is not None else None,
    )
    if not await _preflight(recognizer):
        recognizer = None

    live = LiveCaptioner(session, recognizer=recognizer, demo_tick_interval_s=demo_tick_interval_s)
    await live.start()
    try:
        if audio is not None and recognizer is not None and live.recognizing:
            await stream_audio(recognizer, audio[0], audio[1])
            if duration_s is None:
                await asyncio.sleep(AUDIO_DRAIN_S)
        if duration_s is not None:
            await asyncio.sleep(duration_s)
        elif audio is None:
            await asyncio.Event().wait()
    finally:
        await live.stop()
    return session


def _run_live(args: argparse.Namespace) -> None:
    if args.duration is not None and args.duration <= 0:
        print("Error: --duration must be positive", file=sys.stderr)
        sys.exit(1)
    audio = None
    if args.audio:
        try:
            audio = load_audio(Path(args.audio))
        except ValueError as e:
            print("Error: {}".format(e), file=sys.stderr)
            sys.exit(1)

    renderer = RENDERERS[args.format](base_size=args.base_size)
    _status("Live captions via {}".format(args.url))
    try:
        asyncio.run(run_live(
            renderer,
            server_url=args.url,
            language=args.language,
            audio=audio,
            duration_s=args.duration,
        ))
    except KeyboardInterrupt:
        _status("Stopped")
        return
    _status("Done")


# ---------------------------------------------------------------------------
# Serve
# ---------------------------------------------------------------------------


def _run_serve(args: argparse.Namespace) -> None:
    from prominence_captions.server.app import run_server

    _status("Recognizer proxy on ws://{}:{}".format(args.host, args.port))
    run_server(host=args.host, port=args.port)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    RULES:
    - Subcommands: replay SCRIPT, demo, serve, live
    - --format picks a renderer from RENDERERS (replay, demo, live)
    """
    parser = argparse.ArgumentParser(
        prog="prominence-captions",
        description="Live captions sized by prosodic prominence: replay recorded "
                    "sessions, preview demo mode, run the recognizer proxy, or caption live.",
    )
    parser.add_argument(
        "--log-level",
        default=LOG_LEVEL,
        help="Logging level (default: %(default)s).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    render_options = argparse.ArgumentParser(add_help=False)
    render_options.add_argument(
        "--format",
        default="plain_text",
        choices=sorted(RENDERERS.keys()),
        help="Frame renderer (default: %(default)s).",
    )
    render_options.add_argument(
        "--base-size",
        type=int,
        default=CAPTION_BASE_SIZE,
        help="Base font size in px for the normal tier (default: %(default)s).",
    )

    replay = subparsers.add_parser(
        "replay",
        parents=[render_options],
        help="Replay a JSON Lines session script.",
    )
    replay.add_argument("script", help="Path to the session script (.jsonl).")
    replay.add_argument(
        "--final-only",
        action="store_true",
        help="Print only the final frame.",
    )
    replay.set_defaults(handler=_run_replay)

    demo = subparsers.add_parser(
        "demo",
        parents=[render_options],
        help="Print demo-mode frames.",
    )
    demo.add_argument(
        "--ticks",
        type=int,
        default=9,
        help="Number of demo ticks, %d ms apart (default: %%(default)s)." % int(DEMO_TICK_MS),
    )
    demo.set_defaults(handler=_run_demo)

    serve = subparsers.add_parser("serve", help="Run the recognizer proxy server.")
    serve.add_argument("--host", default=SERVER_HOST, help="Bind address (default: %(default)s).")
    serve.add_argument("--port", type=int, default=SERVER_PORT, help="Port (default: %(default)s).")
    serve.set_defaults(handler=_run_serve)

    live = subparsers.add_parser(
        "live",
        parents=[render_options],
        help="Caption live results from the recognizer proxy.",
    )
    live.add_argument(
        "--url",
        default=RECOGNIZER_URL,
        help="Recognizer proxy websocket URL (default: %(default)s).",
    )
    live.add_argument(
        "--language",
        default=CAPTION_LANGUAGE,
        help="Recognition language, short or full code (default: %(default)s).",
    )
    live.add_argument(
        "--audio",
        default=None,
        help="Audio file to stream to the recognizer in real time.",
    )
    live.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Seconds to run; until Ctrl-C (or the audio ends) when omitted.",
    )
    live.set_defaults(handler=_run_live)


    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the prominence-captions console script.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    args.handler(args)


if __name__ == "__main__":
    main()
