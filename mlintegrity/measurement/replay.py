import binascii
from typing import Iterable

from mlintegrity.common.algorithms import DigestAlgorithm
from mlintegrity.common.exception import MeasurementValueInvalid
from mlintegrity.measurement import xml_log


def replay_measurements(measurements: Iterable[str], hash_alg: DigestAlgorithm) -> str:
    """Fold the measurements into a cumulative hash the way a PCR is extended

    Starts from the all-zero digest of hash_alg and extends it with the raw
    bytes of each hex-encoded measurement, in the given order. Returns the
    hex-encoded result.

    @raise MeasurementValueInvalid: a measurement is not a valid hex string
    """
    cumulative_hash = hash_alg.get_start_hash()
    for measurement in measurements:
        try:
            measurement_bytes = binascii.unhexlify(measurement)
        except (binascii.Error, ValueError) as e:
            raise MeasurementValueInvalid(measurement) from e

        cumulative_hash = hash_alg.extend(cumulative_hash, measurement_bytes)

    return cumulative_hash.hex()


def replay(measurement_xml: xml_log.XmlData, hash_alg: DigestAlgorithm) -> str:
    """Calculate the cumulative hash of an XML measurement log

    @raise MeasurementLogInvalid: the log is not well-formed XML
    @raise MeasurementValueInvalid: the log contains a non-hex measurement
    """
    return replay_measurements(xml_log.get_ordered_measurements(measurement_xml), hash_alg)
