"""Ordered reading of XML measurement logs.

A measurement log lists the files, directories and symlinks measured on a
host, in the order in which their digests were extended into the cumulative
hash:

    <Measurement xmlns="lib:wml:measurements:1.0" Label="..." Uuid="..." DigestAlg="SHA384">
      <Dir Path="/opt/app/bin" Include=".*" Exclude="">...</Dir>
      <File Path="/opt/app/bin/run.sh">...</File>
      <Symlink Path="/opt/app/current">...</Symlink>
      <CumulativeHash>...</CumulativeHash>
    </Measurement>

The log is scanned as a stream of tokens (tags, text runs, comments,
processing instructions and CDATA sections) rather than loaded into a
mapping keyed by tag name, which would lose the relative order of the File,
Dir and Symlink entries.
"""

import enum
import uuid
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple, Union
from xml.parsers import expat

from mlintegrity import mlintegrity_logging
from mlintegrity.common.exception import MeasurementLogInvalid

logger = mlintegrity_logging.init_logging("measurement")

XmlData = Union[str, bytes]

_CHUNK_SIZE = 65536


class MeasurementType(str, enum.Enum):
    FILE = "File"
    DIR = "Dir"
    SYMLINK = "Symlink"

    @staticmethod
    def is_measurement_tag(tag: str) -> bool:
        return tag in _MEASUREMENT_TAGS


_MEASUREMENT_TAGS = frozenset(t.value for t in MeasurementType)


@dataclass(frozen=True)
class MeasurementEntry:
    path: str
    measurement_type: MeasurementType
    hash_hex: str


def _local_name(tag: str) -> str:
    # Prefixes are not resolved, "wml:File" is a File
    return tag.rsplit(":", 1)[-1]


def _chunks(measurement_xml: XmlData) -> Iterator[XmlData]:
    for i in range(0, len(measurement_xml), _CHUNK_SIZE):
        yield measurement_xml[i : i + _CHUNK_SIZE]


def _is_empty(measurement_xml: XmlData) -> bool:
    return not measurement_xml.strip()


class _MeasurementScanner:
    """Token scanner collecting the measurement entries in document order.

    After the start tag of a File, Dir or Symlink element the scanner waits
    for the next token. If it is a text token, that text is the measurement;
    any other token (a tag, a comment, a processing instruction) means the
    element carries no measurement.

    expat may report one text run in several pieces, so the pieces are
    joined and the text token is complete when the next markup is reached.
    A CDATA section is a text token of its own.
    """

    def __init__(self) -> None:
        self.entries: List[MeasurementEntry] = []
        self.root_attributes: Optional[Dict[str, str]] = None
        self.cumulative_hash: Optional[str] = None

        self._awaiting: Optional[Tuple[MeasurementType, str]] = None
        self._text: List[str] = []
        self._summary: Optional[List[str]] = None
        self._depth = 0

        self._parser = expat.ParserCreate()
        self._parser.buffer_text = False
        self._parser.StartElementHandler = self._start_element
        self._parser.EndElementHandler = self._end_element
        self._parser.CharacterDataHandler = self._character_data
        self._parser.StartCdataSectionHandler = self._start_cdata
        self._parser.EndCdataSectionHandler = self._end_cdata
        self._parser.CommentHandler = self._markup
        self._parser.ProcessingInstructionHandler = self._markup

    def feed(self, data: XmlData, final: bool = False) -> None:
        self._parser.Parse(data, final)
        if final:
            self._text_token()

    def _text_token(self, cdata: bool = False) -> None:
        if not self._text and not cdata:
            return

        text = "".join(self._text)
        self._text = []
        if self._awaiting is not None:
            measurement_type, path = self._awaiting
            self.entries.append(MeasurementEntry(path=path, measurement_type=measurement_type, hash_hex=text))
            self._awaiting = None

    def _markup(self, *_args: str) -> None:
        self._text_token()
        self._awaiting = None

    def _start_element(self, name: str, attributes: Dict[str, str]) -> None:
        self._markup()
        tag = _local_name(name)

        if self.root_attributes is None:
            self.root_attributes = attributes
        elif self._depth == 1 and tag == "CumulativeHash" and self.cumulative_hash is None:
            self._summary = []

        if MeasurementType.is_measurement_tag(tag):
            self._awaiting = (MeasurementType(tag), attributes.get("Path", ""))
        self._depth += 1

    def _end_element(self, _name: str) -> None:
        self._markup()
        self._depth -= 1
        if self._summary is not None and self._depth == 1:
            self.cumulative_hash = "".join(self._summary).strip()
            self._summary = None

    def _character_data(self, data: str) -> None:
        self._text.append(data)
        if self._summary is not None:
            self._summary.append(data)

    def _start_cdata(self) -> None:
        self._text_token()

    def _end_cdata(self) -> None:
        self._text_token(cdata=True)


def _scan(measurement_xml: XmlData) -> _MeasurementScanner:
    scanner = _MeasurementScanner()
    if _is_empty(measurement_xml):
        return scanner

    try:
        for chunk in _chunks(measurement_xml):
            scanner.feed(chunk)
        scanner.feed(measurement_xml[:0], final=True)
    except expat.ExpatError as e:
        raise MeasurementLogInvalid(reason=str(e)) from e

    logger.debug("Found %d measurements in the xml measurement log", len(scanner.entries))
    return scanner


def get_ordered_entries(measurement_xml: XmlData) -> List[MeasurementEntry]:
    """Return the File, Dir and Symlink entries of the log in document order

    @raise MeasurementLogInvalid: the log is not well-formed XML
    """
    return _scan(measurement_xml).entries


def get_ordered_measurements(measurement_xml: XmlData) -> List[str]:
    """Return the hex-encoded measurements of the log in document order

    @raise MeasurementLogInvalid: the log is not well-formed XML
    """
    return [entry.hash_hex for entry in get_ordered_entries(measurement_xml)]


@dataclass(frozen=True)
class MeasurementLog:
    """A parsed XML measurement log as reported by a host"""

    label: str
    uuid: str
    digest_alg: str
    cumulative_hash: Optional[str]
    entries: Tuple[MeasurementEntry, ...]
    raw: XmlData

    @classmethod
    def parse(cls, measurement_xml: XmlData) -> "MeasurementLog":
        scanner = _scan(measurement_xml)
        root = scanner.root_attributes
        if root is None:
            raise MeasurementLogInvalid(reason="the document is empty")

        return cls(
            label=root.get("Label", ""),
            uuid=root.get("Uuid", ""),
            digest_alg=root.get("DigestAlg", ""),
            cumulative_hash=scanner.cumulative_hash,
            entries=tuple(scanner.entries),
            raw=measurement_xml,
        )

    def flavor_id(self) -> Optional[uuid.UUID]:
        """The flavor this log was measured for, None if the log does not say

        @raise MeasurementLogInvalid: the Uuid attribute is not a valid UUID
        """
        if not self.uuid:
            return None
        try:
            return uuid.UUID(self.uuid)
        except ValueError as e:
            raise MeasurementLogInvalid(reason=f"invalid Uuid '{self.uuid}'") from e
