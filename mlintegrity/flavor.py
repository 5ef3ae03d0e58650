import enum
import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Union

from mlintegrity.common.algorithms import DigestAlgorithm
from mlintegrity.measurement import replay, xml_log


class FlavorPart(str, enum.Enum):
    PLATFORM = "PLATFORM"
    OS = "OS"
    HOST_UNIQUE = "HOST_UNIQUE"
    SOFTWARE = "SOFTWARE"
    ASSET_TAG = "ASSET_TAG"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Flavor:
    """Trust baseline for the software measured on a host"""

    flavor_id: uuid.UUID
    label: str
    expected_cumulative_hash: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Flavor":
        return cls(
            flavor_id=uuid.UUID(str(data["flavor_id"])),
            label=str(data["label"]),
            expected_cumulative_hash=str(data["expected_cumulative_hash"]),
        )

    @classmethod
    def from_measurement_log(
        cls, measurement_xml: Union[str, bytes], hash_alg: DigestAlgorithm = DigestAlgorithm.SHA384
    ) -> "Flavor":
        """Derive a flavor from a reference measurement log

        The expected cumulative hash is the replay of the reference log, the
        identity is taken from its Label and Uuid attributes.
        """
        log = xml_log.MeasurementLog.parse(measurement_xml)
        flavor_id = log.flavor_id()
        if flavor_id is None:
            raise ValueError("The reference measurement log has no Uuid")

        return cls(
            flavor_id=flavor_id,
            label=log.label,
            expected_cumulative_hash=replay.replay(measurement_xml, hash_alg),
        )

    def to_dict(self) -> dict:
        return {
            "flavor_id": str(self.flavor_id),
            "label": self.label,
            "expected_cumulative_hash": self.expected_cumulative_hash,
        }
