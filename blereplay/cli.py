"""Command-line interface for validating, inspecting, playing and converting scenarios."""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config_loader import ConfigurationError, load_config
from .config_models import SystemConfig
from .formatters import OutputFormatter, TextFormatter, create_formatter
from .logging_config import get_logger, setup_logging
from .scenario.converter import ConversionError, convert_file
from .scenario.loader import ScenarioDecodeError, load_events, load_scenario
from .scenario.models import Event
from .scenario.player import EventPlayer
from .scenario.validator import EventValidationError, EventValidator

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

logger = get_logger(__name__)


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        'path',
        type=Path,
        help='Path to the scenario JSON file'
    )
    parser.add_argument(
        '--format',
        choices=['text', 'json'],
        default=None,
        help='Output format (default: from config, text)'
    )
    parser.add_argument(
        '--no-color',
        action='store_true',
        help='Disable colored output'
    )
    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Suppress non-essential output'
    )
    parser.add_argument(
        '--config',
        type=Path,
        help='Path to configuration file (default: config/blereplay.yml)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Log debug information to stderr'
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog='blereplay',
        description='BLE scenario validator and player',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check a recorded scenario before using it as a fixture
  blereplay validate scenarios/pairing.json

  # Show devices, duration and event counts
  blereplay info scenarios/pairing.json --format json

  # Replay in real time starting at 1.5s
  blereplay play scenarios/pairing.json --skip-to 1500

  # Migrate a legacy recording
  blereplay convert old/pairing.json -o scenarios/pairing.json
        """
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', required=True)

    validate_parser = subparsers.add_parser('validate', help='Validate a scenario or events JSON file')
    _add_common_options(validate_parser)

    info_parser = subparsers.add_parser('info', help='Display scenario metadata and statistics')
    _add_common_options(info_parser)

    play_parser = subparsers.add_parser('play', help='Play back events in real time')
    _add_common_options(play_parser)
    play_parser.add_argument(
        '--skip-to',
        type=int,
        metavar='MS',
        help='Start from the first event at or after this timestamp (ms)'
    )
    play_parser.add_argument(
        '--no-realtime',
        action='store_true',
        help='Print all events immediately without real-time delays'
    )
    play_parser.add_argument(
        '--no-validate',
        action='store_true',
        help='Replay the stream even if it fails validation'
    )

    convert_parser = subparsers.add_parser('convert', help='Convert old format scenarios to the current schema')
    _add_common_options(convert_parser)
    convert_parser.add_argument(
        '-o', '--output',
        type=Path,
        required=True,
        help='Output file path'
    )

    return parser


def _print(text: str) -> None:
    print(text, flush=True)


def _print_error(text: str) -> None:
    print(text, file=sys.stderr, flush=True)


def run_validate(args: argparse.Namespace, config: SystemConfig, formatter: OutputFormatter) -> int:
    """Validate an event stream and report errors and warnings."""
    events = load_events(args.path)
    result = EventValidator.validate_with_result(events)

    _print(formatter.format_validation_result(result, events))
    return EXIT_OK if result.is_valid else EXIT_FAILURE


def run_info(args: argparse.Namespace, config: SystemConfig, formatter: OutputFormatter) -> int:
    """Print scenario summary information."""
    scenario = load_scenario(args.path)
    _print(formatter.format_scenario_info(scenario))
    return EXIT_OK


def _skip_index(events: List[Event], skip_to: Optional[int]) -> int:
    """Index of the first event at or after skip_to; len(events) if there is none."""
    if skip_to is None:
        return 0
    for index, event in enumerate(events):
        if event.t >= skip_to:
            return index
    return len(events)


def run_play(args: argparse.Namespace, config: SystemConfig, formatter: OutputFormatter) -> int:
    """Replay a scenario, printing each event as it fires."""
    events = load_events(args.path)

    validate = config.playback.validate_on_load and not args.no_validate
    try:
        player = EventPlayer(events, validate=validate)
    except EventValidationError as e:
        _print_error(formatter.format_error(e))
        return EXIT_FAILURE

    start_index = _skip_index(list(player.events), args.skip_to)
    realtime = config.playback.realtime and not args.no_realtime

    if not args.quiet:
        _print(formatter.format_playback_header(str(args.path), player.event_count, player.duration_ms))
        if realtime and isinstance(formatter, TextFormatter):
            _print(formatter.format_hint("Press Ctrl-C to quit"))
        _print("")

    if not realtime:
        remaining = player.events[start_index:]
        for event in remaining:
            _print(formatter.format_event(event, event.t))
        events_played = len(remaining)
    else:
        if start_index >= player.event_count:
            logger.info(f"No events at or after {args.skip_to}ms")
        # Validation, if enabled, covered the whole stream; the tail may start mid-exchange
        replay = EventPlayer.without_validation(player.events[start_index:])
        played = []

        def on_event(event: Event) -> None:
            _print(formatter.format_event(event, event.t))
            played.append(event)

        replay.subscribe(on_event)
        replay.start()
        try:
            while not replay.wait_until_complete(timeout=0.1):
                pass
        except KeyboardInterrupt:
            replay.stop()
            _print("")
            _print("Interrupted")
            return EXIT_INTERRUPTED
        events_played = len(played)

    if not args.quiet:
        _print("")
        _print(formatter.format_playback_footer(events_played, player.duration_ms))

    return EXIT_OK


def run_convert(args: argparse.Namespace, config: SystemConfig, formatter: OutputFormatter) -> int:
    """Convert a legacy or bare-events file to the current scenario schema."""
    try:
        result = convert_file(args.path, args.output)
    except ConversionError as e:
        _print_error(formatter.format_error(e))
        return EXIT_FAILURE

    if result.warnings and not args.quiet:
        _print_error(f"Conversion warnings ({len(result.warnings)}):")
        for warning in result.warnings:
            _print_error(f"  - {warning}")
        _print_error("Run `blereplay validate` on the output to see full validation results.")

    _print(formatter.format_conversion_result(str(args.path), str(args.output), result))
    return EXIT_OK


COMMANDS = {
    'validate': run_validate,
    'info': run_info,
    'play': run_play,
    'convert': run_convert,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        _print_error(f"Error: {e}")
        return EXIT_FAILURE

    if args.verbose:
        config.logging.level = "DEBUG"
    setup_logging(config)

    output_format = args.format or config.output.format
    use_color = config.output.color and not args.no_color and sys.stdout.isatty()
    formatter = create_formatter(output_format, use_color, config.playback.value_preview_length)

    try:
        return COMMANDS[args.command](args, config, formatter)
    except ScenarioDecodeError as e:
        _print_error(formatter.format_error(e))
        return EXIT_FAILURE
    except KeyboardInterrupt:
        if not args.quiet:
            _print_error("\nOperation cancelled by user")
        return EXIT_INTERRUPTED


if __name__ == '__main__':
    sys.exit(main())
