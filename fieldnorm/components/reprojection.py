"""
CRS reprojection engine.

Brings shapefile geometry into geographic WGS84 with longitude-first axis
order. The engine has two states: IDENTITY (no source CRS known, or the source
already is WGS84) passes features through untouched; REPROJECTING transforms
every geometry with pyproj through shapely.

Un-reprojected geometry is never mixed into the output. Under the default
``fail_closed`` policy a single failure drops every feature of the run; under
``partial`` only the failing features are dropped.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np
import shapely
from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError, ProjError
from shapely.geometry import mapping
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform

from fieldnorm.components.base import PipelineComponent
from fieldnorm.config import PipelineConfig
from fieldnorm.models import GeoFeature, Validation
from fieldnorm.utils import TransformUnavailableError, get_logger

DESTINATION = CRS.from_epsg(4326)


class ReprojectionState(str, Enum):
    IDENTITY = "identity"
    REPROJECTING = "reprojecting"


@dataclass
class ReprojectionResult:
    """Features in the destination CRS plus what went wrong on the way."""
    state: ReprojectionState
    features: List[GeoFeature]
    validation: Validation = field(default_factory=Validation)


def is_destination(crs: CRS) -> bool:
    """True if ``crs`` is WGS84 geographic, whatever its declared axis order."""
    return crs.equals(DESTINATION, ignore_axis_order=True) or crs.to_epsg() == 4326


def _round_coords(coords: Any, decimals: int) -> Any:
    if isinstance(coords, (list, tuple)):
        if coords and isinstance(coords[0], (int, float)):
            return [round(c, decimals) for c in coords]
        return [_round_coords(c, decimals) for c in coords]
    return coords


def feature_to_geojson(feature: GeoFeature, decimals: int = 7) -> Dict[str, Any]:
    """
    GeoJSON Feature for a GeoFeature.

    Coordinates are rounded to ``decimals`` fraction digits; attribute values
    that JSON cannot carry natively (dates, bytes) are rendered as strings.
    """
    geometry = mapping(feature.geometry)
    geometry = dict(geometry, coordinates=_round_coords(geometry["coordinates"], decimals))
    properties = {}
    for name, value in feature.attributes.items():
        if value is None or isinstance(value, (bool, int, float, str)):
            if isinstance(value, float) and not math.isfinite(value):
                value = None
            properties[name] = value
        elif hasattr(value, "isoformat"):
            properties[name] = value.isoformat()
        else:
            properties[name] = str(value)
    return {"type": "Feature", "geometry": geometry, "properties": properties}


class CrsReprojector(PipelineComponent):
    """Reprojects decoded features into WGS84 (lon/lat)."""

    def __init__(self, config: PipelineConfig):
        """
        Initialize the reprojection engine.

        Args:
            config: Pipeline configuration (shape.source_crs, reprojection.failure_policy)
        """
        super().__init__(config)
        self.logger = get_logger(__name__)
        self.policy = config.reprojection.failure_policy
        self.stats = {
            'features_in': 0,
            'features_out': 0,
            'features_failed': 0,
        }

    def resolve_source(self, projection_wkt: Optional[str]) -> Optional[CRS]:
        """
        Source CRS: the declared one if configured, else the projection file's WKT.

        Raises:
            TransformUnavailableError: If the CRS description cannot be parsed
        """
        if projection_wkt:
            self.logger.debug(f"Projection file WKT: {projection_wkt}")

        declared = self.config.shape.source_crs
        try:
            if declared:
                return CRS.from_user_input(declared)
            if projection_wkt:
                return CRS.from_wkt(projection_wkt)
        except CRSError as e:
            raise TransformUnavailableError(f"Cannot resolve source CRS: {e}") from e
        return None

    def transformer(self, source: CRS) -> Transformer:
        """
        Transform from ``source`` to WGS84, longitude first.

        Raises:
            TransformUnavailableError: If no transformation can be computed
        """
        try:
            return Transformer.from_crs(source, DESTINATION, always_xy=True)
        except (CRSError, ProjError) as e:
            raise TransformUnavailableError(f"No transformation from {source.name} to WGS84: {e}") from e

    def reproject(self, geometry: BaseGeometry, transformer: Transformer) -> BaseGeometry:
        """
        Reproject a single geometry.

        Raises:
            TransformUnavailableError: If pyproj fails or produces non-finite coordinates
        """
        def project(*coords):
            return transformer.transform(*coords, errcheck=True)

        try:
            result = transform(project, geometry)
        except (ProjError, ValueError) as e:
            raise TransformUnavailableError(str(e)) from e
        if not np.all(np.isfinite(shapely.get_coordinates(result))):
            raise TransformUnavailableError("transformation produced non-finite coordinates")
        return result

    def execute(self, features: List[GeoFeature], projection_wkt: Optional[str] = None) -> ReprojectionResult:
        """
        Bring features into WGS84.

        Args:
            features: Decoded features in source coordinates
            projection_wkt: Contents of the archive's projection file, if any

        Returns:
            ReprojectionResult; failures are reported in its validation, never raised
        """
        # counters describe the latest run only
        self.stats = {
            'features_in': len(features),
            'features_out': 0,
            'features_failed': 0,
        }
        validation = Validation()

        try:
            source = self.resolve_source(projection_wkt)
        except TransformUnavailableError as e:
            self.logger.error(str(e))
            validation.error(str(e))
            return ReprojectionResult(ReprojectionState.REPROJECTING, [], validation)

        if source is None or is_destination(source):
            self.logger.info(f"Reprojection state: identity ({len(features)} features)")
            self.stats['features_out'] = len(features)
            return ReprojectionResult(ReprojectionState.IDENTITY, list(features), validation)

        self.logger.info(f"Reprojection state: reprojecting from {source.name} to WGS84")
        try:
            transformer = self.transformer(source)
        except TransformUnavailableError as e:
            self.logger.error(str(e))
            validation.error(str(e))
            return ReprojectionResult(ReprojectionState.REPROJECTING, [], validation)

        output = []
        for feature in features:
            try:
                geometry = self.reproject(feature.geometry, transformer)
            except TransformUnavailableError as e:
                self.stats['features_failed'] += 1
                message = f"Reprojection of feature {feature.feature_id} failed: {e}"
                self.logger.error(message)
                if self.policy == "fail_closed":
                    validation.error("%s; no features were produced", message)
                    self.stats['features_out'] = 0
                    return ReprojectionResult(ReprojectionState.REPROJECTING, [], validation)
                validation.warn(message)
                continue
            output.append(GeoFeature(feature.feature_id, geometry, feature.attributes))

        self.stats['features_out'] = len(output)
        return ReprojectionResult(ReprojectionState.REPROJECTING, output, validation)
