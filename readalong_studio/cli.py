"""Command-line interface for the read-along studio.

WHY: Operators and build scripts need to inspect and fix read-alongs
without a browser: ask which word is read at a given time, add or remove
an anchor, check that anchors are in order, and export the updated text
for the re-aligner. The CLI wires the parsers, the session and the
formatters together behind one command.

HOW: argparse with one subcommand per operation. Every subcommand loads
a ReadAlongSession from --text (TEI) and --alignment (SMIL) on top of a
HeadlessAudioBackend (optionally given a --duration). Anchor edits run
in ANCHOR mode and write the edited document back out. Results go to
stdout; status messages go to stderr.

RULES:
- Subcommands: locate, anchors add/remove/validate, export
- Times on the command line are seconds
- anchors add/remove write the edited TEI (word wrappers kept) to
  --output, or next to the input as {stem}-anchored.xml
- export: --formats is comma-separated formatter keys (default: all)
- Output naming: {stem}{suffix}, numeric suffix for conflicts (-text-2.txt)
- ReadAlongError → "Error: ..." on stderr, exit code 1
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from readalong_studio.config import LOG_LEVEL
from readalong_studio.core.session import Asset, AssetStatus, ReadAlongSession, ReadingMode
from readalong_studio.errors import ReadAlongError
from readalong_studio.formatters import FORMATTERS
from readalong_studio.formatters.base import FormatterOutput
from readalong_studio.playback import HeadlessAudioBackend

logger = logging.getLogger(__name__)

ANCHORED_SUFFIX = "-anchored.xml"


class CliError(Exception):
    """Bad command-line input (missing files, unknown formats)."""


def _status(msg: str) -> None:
    """Print a status message to stderr.

    Status output must not pollute stdout so results can be piped.
    """
    print(msg, file=sys.stderr, flush=True)


def _read_file(path_str: str, what: str) -> bytes:
    path = Path(path_str)
    if not path.is_file():
        raise CliError("{} file not found: {}".format(what, path))
    return path.read_bytes()


def _load_session(args: argparse.Namespace, mode: ReadingMode) -> ReadAlongSession:
    """Load text and alignment into a fresh session.

    WHY: Every subcommand starts from the same three assets; load
    failures must stop the command with the parser's message.

    HOW: Builds a HeadlessAudioBackend, reports it ready when --duration
    is given, loads both documents, and prints any diagnostics.

    RULES:
    - An asset in ERROR state raises ReadAlongError with its message
    - Diagnostics are printed as warnings, never fatal
    """
    audio = HeadlessAudioBackend()
    session = ReadAlongSession(audio, mode=mode)
    if args.duration is not None:
        audio.load(args.duration)

    session.load_text(_read_file(args.text, "Text"))
    session.load_alignment(_read_file(args.alignment, "Alignment"))

    for asset in (Asset.XML, Asset.SMIL):
        if session.status[asset] == AssetStatus.ERROR:
            raise ReadAlongError(session.errors[asset])
    for message in session.diagnostics:
        _status("Warning: {}".format(message))
    return session


def _resolve_output_path(
    stem: str,
    suffix: str,
    output_dir: Path,
) -> Path:
    """Resolve the output file path, adding a numeric suffix on conflict.

    First attempt is {stem}{suffix}; on conflict a counter starting at 2
    is inserted before the extension (story-text-2.txt).
    """
    base_path = output_dir / "{}{}".format(stem, suffix)
    if not base_path.exists():
        return base_path

    dot_idx = suffix.rfind(".")
    if dot_idx > 0:
        suffix_name = suffix[:dot_idx]
        suffix_ext = suffix[dot_idx:]
    else:
        suffix_name = suffix
        suffix_ext = ""

    counter = 2
    while True:
        candidate = output_dir / "{}{}-{}{}".format(stem, suffix_name, counter, suffix_ext)
        if not candidate.exists():
            return candidate
        counter += 1


def _save_output(
    output: FormatterOutput,
    stem: str,
    output_dir: Path,
) -> Path:
    """Save a single formatter output to disk; returns the path used."""
    path = _resolve_output_path(stem, output.suffix, output_dir)

    if isinstance(output.content, bytes):
        path.write_bytes(output.content)
    else:
        path.write_text(output.content, encoding="utf-8")

    return path


def _write_document(session: ReadAlongSession, args: argparse.Namespace) -> Path:
    """Write the edited TEI document (word wrappers kept) and return its path."""
    text_path = Path(args.text)
    if args.output:
        path = Path(args.output)
    else:
        path = _resolve_output_path(text_path.stem, ANCHORED_SUFFIX, text_path.parent)
    path.write_text(session.document.serialize(), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_locate(args: argparse.Namespace) -> int:
    session = _load_session(args, ReadingMode.READ_ONLY)
    for t in args.times:
        word_id = session.word_at(t)
        if word_id is None:
            print("{:.3f}\t-".format(t))
            continue
        word = session.tree.word(word_id)
        text = word.text if word is not None else ""
        print("{:.3f}\t{}\t{}".format(t, word_id, text))
    return 0


def _cmd_anchors_add(args: argparse.Namespace) -> int:
    session = _load_session(args, ReadingMode.ANCHOR)
    marker = session.insert_anchor(args.word_id, time=args.time, label=args.label)
    path = _write_document(session, args)
    _status("Anchor before {} at {:.2f}s ({})".format(args.word_id, marker.time, marker.color))
    _status("Saved: {}".format(path))
    return 0


def _cmd_anchors_remove(args: argparse.Namespace) -> int:
    session = _load_session(args, ReadingMode.ANCHOR)
    session.delete_anchor(args.word_id)
    path = _write_document(session, args)
    _status("Removed anchor before {}".format(args.word_id))
    _status("Saved: {}".format(path))
    return 0


def _cmd_anchors_validate(args: argparse.Namespace) -> int:
    session = _load_session(args, ReadingMode.ANCHOR)
    ordered = session.validate_anchors()
    for marker in ordered:
        print("{}\t{:.2f}\t{}".format(marker.id, marker.time, marker.text))
    _status("{} anchor(s) in order".format(len(ordered)))
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    if args.formats:
        format_keys = [f.strip() for f in args.formats.split(",") if f.strip()]
        for key in format_keys:
            if key not in FORMATTERS:
                raise CliError("Unknown format '{}'. Available formats: {}".format(
                    key, ", ".join(sorted(FORMATTERS.keys()))
                ))
    else:
        format_keys = list(FORMATTERS.keys())

    text_path = Path(args.text)
    output_dir = Path(args.output_dir) if args.output_dir else text_path.parent
    if not output_dir.is_dir():
        raise CliError("Output directory does not exist: {}".format(output_dir))

    mode = ReadingMode.READ_ONLY if args.skip_validation else ReadingMode.PREVIEW
    session = _load_session(args, mode)

    saved_files: List[Path] = []
    for key in format_keys:
        formatter = FORMATTERS[key]()
        _status("Running {} formatter...".format(formatter.name))
        for output in formatter.format(session):
            saved_path = _save_output(output, text_path.stem, output_dir)
            saved_files.append(saved_path)
            _status("  Saved: {}".format(saved_path.name))

    _status("Done! Saved {} file(s) to {}".format(len(saved_files), output_dir))
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_asset_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--text",
        required=True,
        help="Path to the TEI text document.",
    )
    parser.add_argument(
        "--alignment",
        required=True,
        help="Path to the SMIL alignment document.",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Audio duration in seconds (enables the 'all' sprite entry).",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    Kept separate from main() so tests can inspect the parser.
    """
    parser = argparse.ArgumentParser(
        prog="readalong_studio",
        description="Inspect read-along alignments and edit re-alignment anchors.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    locate = commands.add_parser("locate", help="Print the word read at each time.")
    _add_asset_arguments(locate)
    locate.add_argument("times", nargs="+", type=float, help="Times in seconds.")
    locate.set_defaults(handler=_cmd_locate)

    anchors = commands.add_parser("anchors", help="Add, remove or validate anchors.")
    anchor_commands = anchors.add_subparsers(dest="anchor_command", required=True)

    add = anchor_commands.add_parser("add", help="Insert an anchor before a word.")
    _add_asset_arguments(add)
    add.add_argument("word_id", help="Id of the word the anchor precedes.")
    add.add_argument(
        "--time",
        type=float,
        default=None,
        help="Anchor time in seconds (default: the word's aligned start).",
    )
    add.add_argument("--label", default="", help="Marker label.")
    add.add_argument("--output", default=None, help="Where to write the edited text.")
    add.set_defaults(handler=_cmd_anchors_add)

    remove = anchor_commands.add_parser("remove", help="Delete the anchor before a word.")
    _add_asset_arguments(remove)
    remove.add_argument("word_id", help="Id of the word whose anchor is removed.")
    remove.add_argument("--output", default=None, help="Where to write the edited text.")
    remove.set_defaults(handler=_cmd_anchors_remove)

    validate = anchor_commands.add_parser("validate", help="Check anchor time ordering.")
    _add_asset_arguments(validate)
    validate.set_defaults(handler=_cmd_anchors_validate)

    export = commands.add_parser("export", help="Write output formats for a read-along.")
    _add_asset_arguments(export)
    export.add_argument(
        "--formats",
        default=None,
        help="Comma-separated list of output formats. "
             "Available: {}. Default: all.".format(", ".join(sorted(FORMATTERS.keys()))),
    )
    export.add_argument(
        "--output-dir",
        default=None,
        help="Directory to save output files (default: same as the text file).",
    )
    export.add_argument(
        "--skip-validation",
        action="store_true",
        help="Export without checking anchor ordering.",
    )
    export.set_defaults(handler=_cmd_export)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for ``python -m readalong_studio`` and the console script.

    argv=None means use sys.argv; explicit argv is for testing.
    Returns the process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else LOG_LEVEL,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        return args.handler(args)
    except (ReadAlongError, CliError) as e:
        print("Error: {}".format(e), file=sys.stderr)
        return 1
    except OSError as e:
        logger.debug("I/O failure", exc_info=True)
        print("Error: {}".format(e), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
