"""
Metadata triples for decoded inputs.

Time logs, their value channels and shapefile features are described as RDF
resources typed by the format vocabulary. Type URIs hang off the vocabulary
base (``<base>gps``, ``<base>gpsLog``); properties are ``<type>#<name>``.
"""

from typing import Dict, Iterable, List, Optional

from rdflib import RDF, RDFS, XSD, Graph, Literal, URIRef
from rdflib.namespace import DCTERMS, OWL

from fieldnorm.components.base import PipelineComponent
from fieldnorm.config import PipelineConfig
from fieldnorm.models import GeoFeature, TimeLog, ValueInfo
from fieldnorm.utils import OutputError, get_logger


def camel_case(text: str, upper: bool = False) -> str:
    """
    Collapse an identifier to camel case.

    Spaces start a new capitalized word, other non-alphanumerics are dropped::

        camel_case("number of satellites")  -> "numberOfSatellites"
        camel_case("log", upper=True)       -> "Log"
    """
    out = []
    for c in text:
        if c == " ":
            upper = True
        elif c.isascii() and c.isalnum():
            out.append(c.upper() if upper else c)
            upper = False
        else:
            upper = False
    return "".join(out)


class Vocabulary:
    """URI factory for format, type and property identifiers."""

    def __init__(self, base: str):
        self.base = base

    def format(self, identifier: str) -> URIRef:
        return URIRef(self.base + camel_case(identifier))

    def type(self, format_name: str, identifier: str) -> URIRef:
        """Type ``identifier`` of format ``format_name``, e.g. ``hacke``/``log`` -> ``hackeLog``."""
        return URIRef(self.format(format_name) + camel_case(identifier, upper=True))

    def base_type(self, identifier: str) -> URIRef:
        """Format independent type such as ``timelog`` or ``valueinfo``."""
        return URIRef(self.base + camel_case(identifier))

    def prop(self, type_uri: str, identifier: str) -> URIRef:
        return URIRef(f"{type_uri}#{camel_case(identifier)}")


class MetadataBuilder(PipelineComponent):
    """Accumulates the metadata graph of one run."""

    def __init__(self, config: PipelineConfig):
        """
        Initialize an empty metadata graph.

        Args:
            config: Pipeline configuration (metadata.vocabulary_uri, metadata.uri_prefix)
        """
        super().__init__(config)
        self.logger = get_logger(__name__)
        self.vocabulary = Vocabulary(config.metadata.vocabulary_uri)
        self.timelog_type = self.vocabulary.base_type("timelog")
        self.valueinfo_type = self.vocabulary.base_type("valueinfo")

        self.graph = Graph()
        self.graph.bind("rdf", RDF)
        self.graph.bind("rdfs", RDFS)
        self.graph.bind("owl", OWL)
        self.graph.bind("dcterms", DCTERMS)
        self.graph.bind("xsd", XSD)
        self.graph.bind("wkn", config.metadata.vocabulary_uri)

    def _props(self, type_uri: URIRef):
        def prop(name: str) -> URIRef:
            return self.vocabulary.prop(type_uri, name)
        return prop

    def add_timelog(self, timelog: TimeLog, format_name: str, label: Optional[str] = None) -> URIRef:
        """Describe a time log as a ``<format>Log`` resource."""
        res = URIRef(timelog.uri)
        prop = self._props(self.timelog_type)
        self.graph.add((res, RDF.type, self.vocabulary.type(format_name, "log")))
        self.graph.add((res, prop("name"), Literal(timelog.name)))
        self.graph.add((res, prop("from"), Literal(timelog.start, datatype=XSD.dateTime)))
        self.graph.add((res, prop("until"), Literal(timelog.end, datatype=XSD.dateTime)))
        self.graph.add((res, prop("count"), Literal(timelog.count)))
        if label:
            self.graph.add((res, RDFS.label, Literal(label)))
        return res

    def add_value_info(self, info: ValueInfo, format_name: str, type_name: str = "info",
                       label: Optional[str] = None) -> URIRef:
        """
        Describe a channel; defaults (offset 0, scale 1, no decimals, no unit) are omitted.

        Raises:
            OutputError: If the channel is not attached to any time log
        """
        if not info.timelogs:
            raise OutputError(f"There is no timelog set for value info {info.uri}")

        res = URIRef(info.uri)
        prop = self._props(self.valueinfo_type)
        self.graph.add((res, RDF.type, self.vocabulary.type(format_name, type_name)))
        if info.designator:
            self.graph.add((res, prop("designator"), Literal(info.designator)))
        if info.offset != 0:
            self.graph.add((res, prop("offset"), Literal(info.offset)))
        if info.scale != 1.0:
            self.graph.add((res, prop("scale"), Literal(info.scale)))
        if info.number_of_decimals != 0:
            self.graph.add((res, prop("numberOfDecimals"), Literal(info.number_of_decimals)))
        if info.unit:
            self.graph.add((res, prop("unit"), Literal(info.unit)))
        for timelog in info.timelogs:
            self.graph.add((res, DCTERMS.isPartOf, URIRef(timelog.uri)))
        if label:
            self.graph.add((res, RDFS.label, Literal(label)))
        return res

    def add_feature(self, feature: GeoFeature, format_name: str, uri: Optional[str] = None) -> URIRef:
        """
        Describe a geometry feature and its attributes.

        Each numeric or string attribute becomes an ``<format>Attr`` resource
        holding the attribute name and typed value; other values are left out.
        """
        geo_type = self.vocabulary.type(format_name, "geo")
        attr_type = self.vocabulary.type(format_name, "attr")
        res = URIRef(uri or self.random_uri())
        self.graph.add((res, RDF.type, geo_type))

        for name, value in feature.attributes.items():
            if isinstance(value, bool) or not isinstance(value, (int, float, str)):
                continue
            attr = URIRef(self.random_uri())
            self.graph.add((attr, RDF.type, attr_type))
            self.graph.add((attr, self.vocabulary.prop(attr_type, "name"), Literal(name)))
            self.graph.add((attr, self.vocabulary.prop(attr_type, "value"), Literal(value)))
            self.graph.add((res, self.vocabulary.prop(geo_type, "attr"), attr))
        return res

    def add_channels(self, timelog: TimeLog, channels: Iterable[ValueInfo], format_name: str,
                     type_names: Optional[Dict[str, str]] = None, labelled: bool = False) -> List[URIRef]:
        """Describe a time log together with its channels."""
        type_names = type_names or {}
        resources = [self.add_timelog(timelog, format_name, timelog.name if labelled else None)]
        for info in channels:
            resources.append(self.add_value_info(
                info, format_name,
                type_names.get(info.uri, "info"),
                info.designator if labelled else None,
            ))
        self.logger.debug(f"Described time log {timelog.uri} with {len(resources) - 1} channels")
        return resources

    def execute(self) -> Graph:
        """The accumulated metadata graph, with a prefix bound per vocabulary type."""
        base = self.vocabulary.base
        for predicate in set(self.graph.predicates()):
            name = str(predicate)
            hash_at = name.rfind("#")
            if name.startswith(base) and hash_at > len(base):
                self.graph.bind(name[len(base):hash_at], name[:hash_at + 1])
        return self.graph
