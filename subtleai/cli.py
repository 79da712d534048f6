"""Command-Line Interface handler for SubtleAI."""

import argparse
import logging
import os
import sys
import threading

from .config_loader import ConfigLoader, get_api_key
from .log_setup import setup_logging
from .factory import create_generator
from .languages import AUTO, SUPPORTED_LANGUAGES
from .progress import CallbackSink, EventType, ProgressEvent
from .subtitle_formatter import SRTFormatter
from .subtitle_generator import PipelineState
from .utils import ensure_dir_exists
from .exceptions import SubtleAIError, ConfigurationError

logger = logging.getLogger(__name__) # Get logger for this module

LANGUAGE_CHOICES = sorted(SUPPORTED_LANGUAGES)
DEFAULT_CONFIG_FILE = "config.yaml"


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Options shared by the single-file and batch entry points."""
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to the configuration YAML file (config.yaml in the working directory, else built-in defaults)."
    )
    parser.add_argument(
        "-s", "--source-language",
        default=AUTO,
        choices=LANGUAGE_CHOICES,
        help="Spoken language of the media, or 'auto' to detect it."
    )
    parser.add_argument(
        "-t", "--output-language",
        default=None,
        choices=LANGUAGE_CHOICES,
        help="Subtitle language. Defaults to the spoken language (no translation)."
    )
    parser.add_argument(
        "--backend",
        default=None, # Default taken from config
        choices=["remote", "local"],
        help="Override the service backend specified in config."
    )
    parser.add_argument(
        "--temp-dir",
        default=None, # Default taken from config file
        help="Override the temporary directory specified in the config file."
    )
    parser.add_argument(
        "--device",
        default=None, # Default taken from config
        choices=["cuda", "cpu"],
        help="Override the processing device for the local backend."
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level for console and file output."
    )


def load_runtime_config(args: argparse.Namespace, default_log_file: str) -> dict:
    """Sets up logging, loads the config file and applies CLI overrides. Exits on config errors."""
    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    setup_logging(log_level=log_level, log_dir='logs', log_file=default_log_file)

    config_path = args.config
    if config_path is None and os.path.isfile(DEFAULT_CONFIG_FILE):
        config_path = DEFAULT_CONFIG_FILE
    try:
        config = ConfigLoader().load_config(config_path)
    except (ConfigurationError, FileNotFoundError) as e:
        logger.critical(f"Failed to load configuration from {config_path}: {e}")
        sys.exit(1)

    setup_logging(log_level=log_level, log_dir=config['log_dir'], log_file=config['log_file'])

    for option in ("temp_dir", "device", "backend"):
        value = getattr(args, option)
        if value:
            logger.info(f"Overriding {option} from config with CLI argument: {value}")
            config[option] = value
    return config


def log_progress(event: ProgressEvent) -> None:
    if event.type is EventType.PROGRESS:
        logger.info(f"[{event.step.value}] {event.message}")


class CLIHandler:
    """Parses arguments and runs the pipeline for a single media file."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Creates the argument parser for the CLI."""
        parser = argparse.ArgumentParser(
            description="SubtleAI: Generate readable, optionally translated SRT subtitles for audio or video files.",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter # Show defaults in help
        )
        parser.add_argument(
            "-i", "--input",
            required=True,
            help="Path to the input audio or video file."
        )
        parser.add_argument(
            "-o", "--output-dir",
            required=True,
            help="Directory to save the generated subtitle file (.srt)."
        )
        add_common_arguments(parser)
        return parser

    def run(self, argv=None) -> None:
        """Parses arguments, sets up logging, loads config, and runs the generator."""
        args = self.parser.parse_args(argv)
        config = load_runtime_config(args, default_log_file='subtleai_init.log')

        if not os.path.isfile(args.input):
            logger.critical(f"Input file not found or is not a file: {args.input}")
            sys.exit(1)

        cancel_event = threading.Event()
        try:
            generator = create_generator(config, api_key=get_api_key(config))
            ensure_dir_exists(args.output_dir)
            outcome = generator.generate(
                args.input,
                source_language=args.source_language,
                output_language=args.output_language,
                sink=CallbackSink(log_progress),
                cancel_event=cancel_event,
            )
        except SubtleAIError as e:
            logger.error(f"A SubtleAI error occurred: {e}")
            sys.exit(1)
        except KeyboardInterrupt:
            # The pipeline's own cleanup has run by the time this propagates.
            cancel_event.set()
            logger.warning("Process interrupted by user (Ctrl+C). Exiting.")
            sys.exit(1)
        except Exception as e:
            logger.critical(f"An unexpected critical error occurred at the top level: {e}", exc_info=True)
            sys.exit(2)

        if outcome.state is PipelineState.CANCELLED:
            logger.warning("Subtitle generation was cancelled.")
            sys.exit(1)
        if not outcome.succeeded:
            logger.error(f"Subtitle generation failed: {outcome.error}")
            sys.exit(1)

        language = args.output_language or outcome.detected_language or "und"
        base_name = os.path.splitext(os.path.basename(args.input))[0]
        output_path = os.path.join(args.output_dir, f"{base_name}.{language}.srt")
        try:
            SRTFormatter().write_text(outcome.srt, output_path)
        except SubtleAIError as e:
            logger.error(f"Could not save subtitles: {e}")
            sys.exit(1)
        logger.info("SubtleAI finished successfully.")
        sys.exit(0)


def main() -> None:
    CLIHandler().run()
