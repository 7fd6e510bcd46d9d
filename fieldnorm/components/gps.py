"""
Binary GPS list decoder.

Decodes the protobuf ``GPSList`` message exported by machine telematics
terminals: a repeated list of entries with a UTC timestamp, a north/east/up
position and five discrete status and quality fields. The message descriptor
is assembled at import time in a private descriptor pool, so no generated
code is needed and the process-wide default pool is left untouched.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, BinaryIO, List, Optional, Sequence, TextIO

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory, timestamp_pb2
from google.protobuf.message import DecodeError

from fieldnorm.components.base import TimeLogDecoder
from fieldnorm.config import PipelineConfig
from fieldnorm.models import InputFormat, Sample, TimeLog, ValueInfo, new_value_info
from fieldnorm.utils import MalformedInputError, get_logger

PACKAGE = "agrirouter.technicalmessagetype"

POSITION_STATUS = [
    ("D_NO_GPS", 0), ("D_GNSS", 1), ("D_DGNSS", 2), ("D_PRECISE_GNSS", 3),
    ("D_RTK_FINTEGER", 4), ("D_RTK_FLOAT", 5), ("D_EST_DR_MODE", 6),
    ("D_MANUAL_INPUT", 7), ("D_SIMULATE_MODE", 8), ("D_ERROR", 14), ("D_NOT_AVAILABLE", 15),
]

FIELD_STATUS = [("FS_UNKNOWN", 0), ("FS_FIELD", 1), ("FS_ROAD", 2)]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _gps_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    fd = descriptor_pb2.FieldDescriptorProto
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="agrirouter/technicalmessagetype/gps.proto",
        package=PACKAGE,
        syntax="proto3",
        dependency=[timestamp_pb2.DESCRIPTOR.name],
    )
    gps_list = file_proto.message_type.add(name="GPSList")
    entry = gps_list.nested_type.add(name="GPSEntry")
    entry_name = f".{PACKAGE}.GPSList.GPSEntry"

    for enum_name, values in (("PositionStatus", POSITION_STATUS), ("FieldStatus", FIELD_STATUS)):
        enum = entry.enum_type.add(name=enum_name)
        for value_name, number in values:
            enum.value.add(name=value_name, number=number)

    def scalar(name, number, field_type, type_name=None):
        field = entry.field.add(name=name, number=number, type=field_type, label=fd.LABEL_OPTIONAL)
        if type_name:
            field.type_name = type_name

    scalar("position_north", 1, fd.TYPE_DOUBLE)
    scalar("position_east", 2, fd.TYPE_DOUBLE)
    scalar("position_up", 3, fd.TYPE_DOUBLE)
    scalar("position_status", 4, fd.TYPE_ENUM, f"{entry_name}.PositionStatus")
    scalar("pdop", 5, fd.TYPE_DOUBLE)
    scalar("hdop", 6, fd.TYPE_DOUBLE)
    scalar("number_of_satellites", 7, fd.TYPE_UINT32)
    scalar("gps_utc_timestamp", 8, fd.TYPE_MESSAGE, ".google.protobuf.Timestamp")
    scalar("field_status", 9, fd.TYPE_ENUM, f"{entry_name}.FieldStatus")

    gps_list.field.add(
        name="gps_entries", number=1, type=fd.TYPE_MESSAGE, label=fd.LABEL_REPEATED, type_name=entry_name
    )
    return file_proto


def _build_message_classes():
    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(timestamp_pb2.DESCRIPTOR.serialized_pb)
    pool.AddSerializedFile(_gps_file_descriptor().SerializeToString())
    gps_list = message_factory.GetMessageClass(pool.FindMessageTypeByName(f"{PACKAGE}.GPSList"))
    gps_entry = message_factory.GetMessageClass(pool.FindMessageTypeByName(f"{PACKAGE}.GPSList.GPSEntry"))
    return gps_list, gps_entry


GPSList, GPSEntry = _build_message_classes()


def to_datetime(timestamp: Any) -> datetime:
    """UTC datetime of a protobuf Timestamp (microsecond resolution)."""
    return _EPOCH + timedelta(seconds=timestamp.seconds, microseconds=timestamp.nanos // 1000)


def parse_gps_list(payload: bytes) -> Sequence[Any]:
    """
    Parse a serialized GPSList.

    Raises:
        MalformedInputError: If the payload is not a valid GPSList message
    """
    message = GPSList()
    try:
        message.ParseFromString(payload)
    except DecodeError as e:
        raise MalformedInputError(f"Invalid GPS list: {e}") from e
    return message.gps_entries


class GpsListDecoder(TimeLogDecoder):
    """Decoder for binary GPS entry lists."""

    input_format = InputFormat.GPS
    format_name = "gps"
    timelog_name = "GPS"

    def __init__(self, config: PipelineConfig):
        """
        Initialize GPS decoder.

        Args:
            config: Pipeline configuration
        """
        super().__init__(config)
        self.logger = get_logger(__name__)

    def test(self, stream: BinaryIO, errors: Optional[TextIO] = None) -> bool:
        """True iff the stream decodes to at least one GPS entry."""
        try:
            entries = parse_gps_list(stream.read())
        except MalformedInputError as e:
            if errors is not None:
                print(str(e), file=errors)
            return False
        if not entries and errors is not None:
            print("GPS list contains no entries.", file=errors)
        return len(entries) > 0

    def read_records(self, stream: BinaryIO) -> Sequence[Any]:
        entries = parse_gps_list(stream.read())
        self.logger.info(f"Decoded {len(entries)} GPS entries")
        return entries

    def record_time(self, record: Any) -> Optional[datetime]:
        if not record.HasField("gps_utc_timestamp"):
            return None
        return to_datetime(record.gps_utc_timestamp)

    def to_sample(self, record: Any) -> Optional[Sample]:
        time = self.record_time(record)
        if time is None:
            return None
        return Sample(
            time=time,
            north=record.position_north,
            east=record.position_east,
            up=record.position_up,
            values=[
                record.position_status,
                record.pdop,
                record.hdop,
                record.number_of_satellites,
                record.field_status,
            ],
        )

    def timelog_uri(self) -> str:
        return f"{self.config.metadata.uri_prefix}gps"

    def describe_channels(self, timelog: TimeLog) -> List[ValueInfo]:
        prefix = self.config.metadata.uri_prefix
        return [
            new_value_info(f"{prefix}posStatus").set_designator("Position status").add_timelog(timelog),
            new_value_info(f"{prefix}pdop").set_designator("Position DOP")
            .set_scale(0.1).set_number_of_decimals(1).add_timelog(timelog),
            new_value_info(f"{prefix}hdop").set_designator("Horizontal DOP")
            .set_scale(0.1).set_number_of_decimals(1).add_timelog(timelog),
            new_value_info(f"{prefix}satellites").set_designator("Number of satellites").add_timelog(timelog),
            new_value_info(f"{prefix}fieldStatus").set_designator("Field status").add_timelog(timelog),
        ]
