"""Host manifest: the evidence collected from an attested host."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from mlintegrity.common.algorithms import DigestAlgorithm
from mlintegrity.common.exception import PcrEventLogNotFound

PCR_COUNT = 24
PCR15 = 15


@dataclass(frozen=True)
class EventLogEntry:
    pcr_index: int
    digest_algorithm: DigestAlgorithm
    label: str
    value: str


EventLogKey = Tuple[DigestAlgorithm, int]


def _pcr_index(pcr: Any) -> int:
    try:
        pcr_index = int(pcr)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid PCR index {pcr!r}") from e
    if not 0 <= pcr_index < PCR_COUNT:
        raise ValueError(f"Invalid PCR index {pcr!r}")
    return pcr_index


def _event_log_entry(pcr_index: int, hash_alg: DigestAlgorithm, event: Any) -> EventLogEntry:
    if not isinstance(event, Mapping):
        raise ValueError(f"Invalid event in the event log of PCR {pcr_index}: {event!r}")
    return EventLogEntry(
        pcr_index=pcr_index,
        digest_algorithm=hash_alg,
        label=str(event.get("label", "")),
        value=str(event.get("value", "")),
    )


class PcrManifest:
    """PCR event logs of a host, per (bank, PCR index)"""

    _event_logs: Dict[EventLogKey, Tuple[EventLogEntry, ...]]

    def __init__(self, event_logs: Optional[Mapping[EventLogKey, Sequence[EventLogEntry]]] = None):
        self._event_logs = {}
        for (hash_alg, pcr), entries in (event_logs or {}).items():
            self._event_logs[(DigestAlgorithm.from_name(hash_alg), int(pcr))] = tuple(entries)

    def get_pcr_event_log(self, hash_alg: Union[str, DigestAlgorithm], pcr: int) -> Tuple[EventLogEntry, ...]:
        """Return the event log entries extended into the given PCR, in order

        @raise PcrEventLogNotFound: the manifest has no event log for this PCR bank and index
        """
        bank = DigestAlgorithm.from_name(hash_alg)
        entries = self._event_logs.get((bank, int(pcr)))
        if entries is None:
            raise PcrEventLogNotFound(algorithm=str(bank), pcr=int(pcr))
        return entries

    def has_pcr_event_log(self, hash_alg: Union[str, DigestAlgorithm], pcr: int) -> bool:
        if not DigestAlgorithm.is_recognized(hash_alg):
            return False
        return (DigestAlgorithm.from_name(hash_alg), int(pcr)) in self._event_logs

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PcrManifest":
        """Build the PCR manifest from {"sha256": {"15": [{"label": ..., "value": ...}, ...]}}

        @raise UnsupportedAlgorithm: a bank is not a supported digest algorithm
        @raise ValueError: the data does not have this shape
        """
        if not isinstance(data, Mapping):
            raise ValueError("PCR event logs must map digest algorithms to PCRs")

        event_logs: Dict[EventLogKey, List[EventLogEntry]] = {}
        for alg_name, pcrs in data.items():
            hash_alg = DigestAlgorithm.from_name(alg_name)
            if not isinstance(pcrs, Mapping):
                raise ValueError(f"PCR event logs of the {alg_name} bank must map PCR indexes to events")
            for pcr, entries in pcrs.items():
                pcr_index = _pcr_index(pcr)
                if not isinstance(entries, (list, tuple)):
                    raise ValueError(f"Event log of PCR {pcr} must be a list of events")
                event_logs[(hash_alg, pcr_index)] = [_event_log_entry(pcr_index, hash_alg, entry) for entry in entries]
        return cls(event_logs)

    def to_dict(self) -> Dict[str, Dict[str, List[Dict[str, str]]]]:
        data: Dict[str, Dict[str, List[Dict[str, str]]]] = {}
        for (hash_alg, pcr), entries in self._event_logs.items():
            data.setdefault(hash_alg.value, {})[str(pcr)] = [{"label": e.label, "value": e.value} for e in entries]
        return data


@dataclass(frozen=True)
class HostManifest:
    measurement_xmls: Tuple[Union[str, bytes], ...] = ()
    pcr_manifest: PcrManifest = field(default_factory=PcrManifest)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HostManifest":
        """Build the manifest from {"measurement_xmls": [...], "pcr_event_logs": {...}}

        @raise UnsupportedAlgorithm: a PCR bank is not a supported digest algorithm
        @raise ValueError: the data does not have this shape
        """
        measurement_xmls = data.get("measurement_xmls") or ()
        if not isinstance(measurement_xmls, (list, tuple)) or not all(
            isinstance(xml, (str, bytes)) for xml in measurement_xmls
        ):
            raise ValueError("measurement_xmls must be a list of XML documents")

        return cls(
            measurement_xmls=tuple(measurement_xmls),
            pcr_manifest=PcrManifest.from_dict(data.get("pcr_event_logs") or {}),
        )
