"""
Pipeline driver and command line entry point.

A parse run goes decode -> metadata -> streamed, quantized write for time-log
formats and decode -> reproject -> geometry write for shapefiles. Every run
produces an output envelope; failures end up in its message list instead of
propagating to the caller.
"""

import argparse
import contextlib
import sys
import time
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Sequence, TextIO, Union

from rdflib import URIRef

from fieldnorm.config import PipelineConfig
from fieldnorm.models import ElementType, InputFormat, ParseResult, RunState, Validation, ValueInfo
from fieldnorm.components import (
    CrsReprojector,
    DecodedTimeLog,
    DecoderComponent,
    GpsListDecoder,
    HackeLogDecoder,
    MetadataBuilder,
    ParserOutput,
    ShapeDecoder,
    TimeLogDecoder,
    TimeLogSink,
    feature_to_geojson,
    quantize
)
from fieldnorm.utils import ConfigurationError, OutputError, PipelineError, get_logger, setup_logging


def encode_values(values: Sequence[Optional[float]], channels: Sequence[ValueInfo]) -> List[Optional[int]]:
    """
    Quantize one sample's physical values under their channels' scale and offset.

    Raises:
        OutputError: If the value count differs from the channel count
    """
    if len(values) != len(channels):
        raise OutputError(f"Sample carries {len(values)} values for {len(channels)} channels")
    return [quantize(value, info.scale, info.offset) for value, info in zip(values, channels)]


def stream_samples(decoder: TimeLogDecoder, decoded: DecodedTimeLog, sink: TimeLogSink,
                   channels: Sequence[ValueInfo], result: ParseResult) -> None:
    """Write each usable sample of a decoded log to ``sink``, counting the unusable ones as skipped."""
    result.state = RunState.STREAMING
    for sample in decoder.samples(decoded):
        if sample is None:
            result.samples_skipped += 1
            continue
        sink.write(sample.time, sample.north, sample.east, sample.up, encode_values(sample.values, channels))
        result.samples_written += 1


class FieldDataPipeline:
    """Runs one input through the decoder selected by the caller."""

    def __init__(self, config: PipelineConfig):
        """
        Initialize pipeline with configuration.

        Args:
            config: Pipeline configuration loaded from YAML
        """
        self.config = config
        self.logger = get_logger(__name__)

        self.decoders: Dict[InputFormat, DecoderComponent] = {
            InputFormat.GPS: GpsListDecoder(config),
            InputFormat.HACKE: HackeLogDecoder(config),
            InputFormat.SHAPE: ShapeDecoder(config),
        }
        self.reprojector = CrsReprojector(config)

    def set_decoder(self, decoder: DecoderComponent) -> None:
        """Replace the decoder registered for ``decoder.input_format`` (dependency injection)."""
        self.decoders[decoder.input_format] = decoder

    def test(self, input: BinaryIO, input_format: Union[InputFormat, str],
             errors: Optional[TextIO] = None) -> bool:
        """
        Cheap feasibility check; never produces an envelope.

        Args:
            input: Input stream
            input_format: Format to probe for
            errors: Optional text stream receiving the reason for a negative answer

        Returns:
            True if the selected decoder is likely able to parse the input
        """
        decoder = self.decoders[InputFormat(input_format)]
        try:
            return decoder.test(input, errors)
        except (OSError, PipelineError) as e:
            self.logger.error(f"Feasibility check failed: {e}")
            if errors is not None:
                print(str(e), file=errors)
            return False

    def parse(self, input: BinaryIO, output: BinaryIO, input_format: Union[InputFormat, str]) -> ParseResult:
        """
        Run the full pipeline and write the output envelope.

        Args:
            input: Input stream
            output: Binary stream receiving the envelope
            input_format: Format of the input

        Returns:
            Run summary; ``errors`` holds every message written to the envelope
        """
        input_format = InputFormat(input_format)
        start_time = time.perf_counter()
        validation = Validation()
        result = ParseResult(input_format=input_format, state=RunState.DECODING)
        envelope: Optional[ParserOutput] = None

        try:
            envelope = ParserOutput(output)
            decoder = self.decoders[input_format]
            self.logger.info(f"Starting {input_format.value} parse run")
            if isinstance(decoder, TimeLogDecoder):
                self._parse_timelog(decoder, input, envelope, result)
            else:
                self._parse_shape(decoder, input, envelope, validation, result)
            result.state = RunState.DONE
        except PipelineError as e:
            self.logger.error(f"{input_format.value} parse failed in state {result.state.value}: {e}")
            validation.fatal(str(e))
            result.state = RunState.FAILED
        except Exception as e:
            self.logger.exception(f"Unexpected failure during {input_format.value} parse")
            validation.fatal(str(e) or type(e).__name__)
            result.state = RunState.FAILED
        finally:
            result.parse_time_ms = int((time.perf_counter() - start_time) * 1000)
            result.errors = validation.messages()
            if envelope is not None:
                try:
                    envelope.set_parse_time(result.parse_time_ms)
                    envelope.set_errors(validation)
                    envelope.close()
                except Exception as e:
                    self.logger.error(f"Failed to finalize output envelope: {e}")

        self.logger.info(
            f"Parse summary: format={input_format.value} state={result.state.value} "
            f"records={result.records_decoded} written={result.samples_written} "
            f"skipped={result.samples_skipped} features={result.features_written} "
            f"time={result.parse_time_ms}ms errors={len(result.errors)}"
        )
        return result

    def _parse_timelog(self, decoder: TimeLogDecoder, input: BinaryIO, envelope: ParserOutput,
                       result: ParseResult) -> None:
        decoded = decoder.execute(input)
        result.records_decoded = decoded.count

        timelog = decoder.build_timelog(decoded)
        channels = decoder.describe_channels(timelog)
        metadata = MetadataBuilder(self.config)
        metadata.add_channels(
            timelog, channels, decoder.format_name,
            type_names=decoder.channel_types(channels),
            labelled=decoder.labelled_metadata,
        )
        envelope.write_triples(metadata.execute())
        result.state = RunState.METADATA_EMITTED

        with envelope.add_timelog(timelog, channels) as writer:
            stream_samples(decoder, decoded, writer, channels, result)

    def _parse_shape(self, decoder: DecoderComponent, input: BinaryIO, envelope: ParserOutput,
                     validation: Validation, result: ParseResult) -> None:
        decoded = decoder.execute(input)
        validation.add_all(decoded.validation)
        result.records_decoded = len(decoded.features)

        reprojected = self.reprojector.execute(decoded.features, decoded.projection_wkt)
        validation.add_all(reprojected.validation)
        result.state = RunState.STREAMING
        if not reprojected.features:
            return

        metadata = MetadataBuilder(self.config)
        decimals = self.config.shape.geojson_decimals
        with envelope.write_geo() as geo:
            for feature in reprojected.features:
                uri = URIRef(metadata.random_uri())
                try:
                    geo.write_feature(feature_to_geojson(feature, decimals), ElementType.OTHER,
                                      str(uri), feature.feature_id)
                except OutputError as e:
                    validation.warn("Feature %s skipped: %s", feature.feature_id, e)
                    continue
                metadata.add_feature(feature, decoder.format_name, uri)
                result.features_written += 1
        envelope.write_triples(metadata.execute())


def build_parser() -> argparse.ArgumentParser:
    formats = [f.value for f in InputFormat]
    parser = argparse.ArgumentParser(prog="fieldnorm", description="Normalize agricultural field data exports.")
    parser.add_argument("--config", type=Path, help="YAML configuration file")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Override the configured log level")
    commands = parser.add_subparsers(dest="command", required=True)

    parse = commands.add_parser("parse", help="Parse the input and write the output envelope")
    parse.add_argument("format", choices=formats)
    parse.add_argument("input", nargs="?", default="-", help="Input file (default: stdin)")
    parse.add_argument("output", nargs="?", default="-", help="Output file (default: stdout)")

    test = commands.add_parser("test", help="Check whether the input can be parsed")
    test.add_argument("format", choices=formats)
    test.add_argument("input", nargs="?", default="-", help="Input file (default: stdin)")
    return parser


def _open(path: str, mode: str, std: BinaryIO):
    if path == "-":
        return contextlib.nullcontext(std)
    return open(path, mode)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the command line."""
    args = build_parser().parse_args(argv)

    try:
        config = PipelineConfig.from_yaml(args.config) if args.config else PipelineConfig()
    except (FileNotFoundError, ConfigurationError) as e:
        print(f"Failed to load configuration: {e}", file=sys.stderr)
        return 2

    setup_logging(
        level=args.log_level or config.logging.level,
        log_file=config.logging.log_file,
        include_timestamp=config.logging.include_timestamp,
    )
    pipeline = FieldDataPipeline(config)

    try:
        if args.command == "test":
            with _open(args.input, "rb", sys.stdin.buffer) as stream:
                return 0 if pipeline.test(stream, args.format, sys.stderr) else 1

        with _open(args.input, "rb", sys.stdin.buffer) as stream, \
                _open(args.output, "wb", sys.stdout.buffer) as out:
            pipeline.parse(stream, out, args.format)
    except OSError as e:
        print(f"Cannot open input or output: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
