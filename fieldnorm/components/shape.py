"""
Zipped shapefile decoder.

The archive is unpacked into a private scratch directory, the principal
``.shp`` member is opened with pyshp and every record becomes a GeoFeature
(shapely geometry plus attribute dict). The scratch directory is removed when
the archive is closed, on success and on failure alike.
"""

import io
import shutil
import struct
import tempfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import BinaryIO, List, Optional, TextIO

import shapefile
from shapely.geometry import shape as to_shapely

from fieldnorm.components.base import DecoderComponent
from fieldnorm.config import PipelineConfig
from fieldnorm.models import GeoFeature, InputFormat, Validation
from fieldnorm.utils import MalformedInputError, NoGeometryFoundError, get_logger

GEOMETRY_SUFFIX = ".shp"
PROJECTION_SUFFIX = ".prj"
TABLE_SUFFIX = ".dbf"


class ShapeArchive:
    """
    Scratch-directory copy of a zipped shapefile.

    Usage::

        with ShapeArchive(stream) as archive:
            wkt = archive.projection_wkt()
            ...
    """

    def __init__(self, stream: BinaryIO):
        """
        Extract the archive.

        Raises:
            MalformedInputError: If the stream is not a zip archive
        """
        self.logger = get_logger(__name__)
        self.directory: Optional[Path] = Path(tempfile.mkdtemp(prefix="fieldnorm-shape-"))
        self.shp_path: Optional[Path] = None
        self.prj_path: Optional[Path] = None
        try:
            self._extract(stream)
        except Exception:
            self.close()
            raise

    def _extract(self, stream: BinaryIO) -> None:
        try:
            archive = zipfile.ZipFile(io.BytesIO(stream.read()))
        except zipfile.BadZipFile as e:
            raise MalformedInputError(f"Input is no zip archive: {e}") from e

        with archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                # flatten folders; the first member of a given name wins
                name = PurePosixPath(info.filename.replace("\\", "/")).name
                if name in ("", ".", ".."):
                    continue
                target = self.directory / name
                if target.exists():
                    continue
                with archive.open(info) as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)

                suffix = target.suffix.lower()
                if suffix == GEOMETRY_SUFFIX and self.shp_path is None:
                    self.shp_path = target
                elif suffix == PROJECTION_SUFFIX and self.prj_path is None:
                    self.prj_path = target

        self.logger.debug(f"Extracted shape archive to {self.directory}")

    def projection_wkt(self) -> Optional[str]:
        """Contents of the projection file, or None if the archive has none."""
        if self.prj_path is None:
            return None
        wkt = self.prj_path.read_text(encoding="utf-8", errors="replace").strip()
        return wkt or None

    def has_table(self) -> bool:
        if self.shp_path is None:
            return False
        return any(p.stem == self.shp_path.stem and p.suffix.lower() == TABLE_SUFFIX
                   for p in self.directory.iterdir())

    def close(self) -> None:
        """Delete the scratch directory; safe to call more than once."""
        if self.directory is not None:
            shutil.rmtree(self.directory, ignore_errors=True)
            self.logger.debug(f"Removed shape scratch directory {self.directory}")
            self.directory = None

    def __enter__(self) -> "ShapeArchive":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


@dataclass
class DecodedShape:
    """Features of one shapefile plus whatever the archive said about its CRS."""
    features: List[GeoFeature]
    projection_wkt: Optional[str] = None
    validation: Validation = field(default_factory=Validation)


class ShapeDecoder(DecoderComponent):
    """Decoder for zipped ESRI shapefiles."""

    input_format = InputFormat.SHAPE
    format_name = "shape"

    def __init__(self, config: PipelineConfig):
        """
        Initialize shapefile decoder.

        Args:
            config: Pipeline configuration
        """
        super().__init__(config)
        self.logger = get_logger(__name__)
        self.settings = config.shape

    def test(self, stream: BinaryIO, errors: Optional[TextIO] = None) -> bool:
        """True iff the archive lists a .shp member; nothing is extracted."""
        try:
            with zipfile.ZipFile(io.BytesIO(stream.read())) as archive:
                names = [i.filename for i in archive.infolist() if not i.is_dir()]
        except zipfile.BadZipFile as e:
            if errors is not None:
                print(f"Input is no zip archive: {e}", file=errors)
            return False

        if any(name.lower().endswith(GEOMETRY_SUFFIX) for name in names):
            return True
        if errors is not None:
            print("Archive contains no .shp file.", file=errors)
        return False

    def execute(self, stream: BinaryIO) -> DecodedShape:
        """
        Read every feature of the archive's principal shapefile.

        Raises:
            MalformedInputError: If the input is no zip archive or the shapefile is unreadable
            NoGeometryFoundError: If the archive contains no .shp member
        """
        with ShapeArchive(stream) as archive:
            if archive.shp_path is None:
                raise NoGeometryFoundError("No .shp file found in the archive")

            wkt = archive.projection_wkt()
            decoded = DecodedShape(features=[], projection_wkt=wkt)
            stem = archive.shp_path.stem
            try:
                with shapefile.Reader(str(archive.shp_path), encoding=self.settings.encoding) as reader:
                    if archive.has_table():
                        items = ((sr.shape, sr.record.as_dict()) for sr in reader.iterShapeRecords())
                    else:
                        items = ((s, {}) for s in reader.iterShapes())

                    for n, (shp, attributes) in enumerate(items, start=1):
                        feature_id = f"{stem}.{n}"
                        if shp.shapeType == shapefile.NULL or not shp.points:
                            decoded.validation.warn("Feature %s has no geometry and was skipped", feature_id)
                            continue
                        decoded.features.append(GeoFeature(
                            feature_id=feature_id,
                            geometry=to_shapely(shp.__geo_interface__),
                            attributes=attributes,
                        ))
            except (shapefile.ShapefileException, struct.error) as e:
                raise MalformedInputError(f"Cannot read shapefile {archive.shp_path.name}: {e}") from e

        self.logger.info(f"Decoded {len(decoded.features)} features from {stem}{GEOMETRY_SUFFIX}")
        return decoded
