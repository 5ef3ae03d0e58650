import uuid
from typing import Optional, Union

from mlintegrity import config, mlintegrity_logging
from mlintegrity.common.algorithms import DigestAlgorithm
from mlintegrity.common.exception import MeasurementLogError, MeasurementLogInvalid, PcrEventLogNotFound, ReplayError
from mlintegrity.flavor import Flavor, FlavorPart
from mlintegrity.manifest import PCR15, HostManifest
from mlintegrity.measurement import replay
from mlintegrity.measurement.xml_log import MeasurementLog
from mlintegrity.verifier import faults
from mlintegrity.verifier.faults import Fault, RuleInfo, RuleResult
from mlintegrity.verifier.rules.rule import Rule

logger = mlintegrity_logging.init_logging("verifier")

RULE_NAME = "com.intel.mtwilson.core.verifier.policy.rule.XmlMeasurementLogIntegrity"


def _hex_equal(a: Optional[str], b: Optional[str]) -> bool:
    if a is None or b is None:
        return False
    return a.lower() == b.lower()


class XmlMeasurementLogIntegrity(Rule):
    """Verify the XML measurement log of a software flavor

    The host's measurement log for the flavor is replayed and the resulting
    cumulative hash is compared with:
      - the cumulative hash the host reports in the log itself,
      - the expected cumulative hash of the flavor,
      - the event that was extended into PCR 15 (SHA-256 bank) for the
        flavor while the host measured the files, which holds the SHA-256
        digest of the SHA-384 cumulative hash.

    Faults are reported in the following cases:
      - the manifest has no XML measurement logs: XmlMeasurementLogMissing
      - a measurement log cannot be parsed: XmlMeasurementLogInvalid
      - no measurement log belongs to the flavor: XmlMeasurementLogMissing
      - the replay differs from the host or flavor value: XmlMeasurementValueMismatch
      - the manifest has no event log for PCR 15: PcrEventLogMissing
      - the PCR event log has no event for the flavor, or its value differs
        from the replay: XmlMeasurementValueMismatch

    A measurement that is not valid hex makes the replay impossible; it is
    raised as ReplayError rather than reported as a fault.
    """

    _flavor_id: uuid.UUID
    _flavor_label: str
    _expected_cumulative_hash: str
    _hash_alg: DigestAlgorithm
    _pcr_hash_alg: DigestAlgorithm
    _pcr_index: int

    def __init__(
        self,
        flavor_id: uuid.UUID,
        flavor_label: str,
        expected_cumulative_hash: str,
        hash_alg: Union[str, DigestAlgorithm] = DigestAlgorithm.SHA384,
        pcr_hash_alg: Union[str, DigestAlgorithm] = DigestAlgorithm.SHA256,
        pcr_index: int = PCR15,
    ):
        self._flavor_id = flavor_id
        self._flavor_label = flavor_label
        self._expected_cumulative_hash = expected_cumulative_hash
        self._hash_alg = DigestAlgorithm.from_name(hash_alg)
        self._pcr_hash_alg = DigestAlgorithm.from_name(pcr_hash_alg)
        self._pcr_index = int(pcr_index)

    @classmethod
    def from_flavor(cls, flavor: Flavor) -> "XmlMeasurementLogIntegrity":
        return cls(flavor.flavor_id, flavor.label, flavor.expected_cumulative_hash)

    @classmethod
    def from_config(cls, flavor: Flavor) -> "XmlMeasurementLogIntegrity":
        """Build the rule with the algorithms and PCR set in the verifier configuration

        @raise UnsupportedAlgorithm: a configured algorithm is not supported
        """
        return cls(
            flavor.flavor_id,
            flavor.label,
            flavor.expected_cumulative_hash,
            hash_alg=config.get("verifier", "measurement_log_hash_alg", fallback="sha384"),
            pcr_hash_alg=config.get("verifier", "pcr_event_log_hash_alg", fallback="sha256"),
            pcr_index=config.getint("verifier", "pcr_event_log_index", fallback=PCR15),
        )

    @property
    def flavor_id(self) -> uuid.UUID:
        return self._flavor_id

    @property
    def flavor_label(self) -> str:
        return self._flavor_label

    @property
    def expected_cumulative_hash(self) -> str:
        return self._expected_cumulative_hash

    @property
    def pcr_event_label(self) -> str:
        """Label of the PCR event extended for this flavor, e.g. 'Default_Application_Flavor-339a7ac6-...'"""
        return f"{self._flavor_label}-{self._flavor_id}"

    def _rule_info(self) -> RuleInfo:
        return RuleInfo(
            name=RULE_NAME,
            flavor_id=self._flavor_id,
            flavor_name=self._flavor_label,
            expected_value=self._expected_cumulative_hash,
            markers=(FlavorPart.SOFTWARE,),
        )

    def _add_fault(self, result: RuleResult, fault: Fault) -> None:
        logger.warning(
            "XML measurement log integrity check failed for flavor %s (%s): %s",
            self._flavor_label,
            self._flavor_id,
            fault.description,
        )
        result.add_fault(fault)

    def _find_measurement_log(self, host_manifest: HostManifest) -> Optional[MeasurementLog]:
        """Return the measurement log that belongs to the flavor, None if there is none

        @raise MeasurementLogInvalid: one of the logs cannot be parsed
        """
        for measurement_xml in host_manifest.measurement_xmls:
            measurement_log = MeasurementLog.parse(measurement_xml)
            if measurement_log.flavor_id() == self._flavor_id:
                return measurement_log
        return None

    def apply(self, host_manifest: HostManifest) -> RuleResult:
        result = RuleResult(rule=self._rule_info())

        if not host_manifest.measurement_xmls:
            self._add_fault(result, faults.log_missing_fault(self._flavor_id))
            return result

        try:
            measurement_log = self._find_measurement_log(host_manifest)
        except MeasurementLogInvalid as e:
            logger.debug("Could not parse XML measurement log: %s", e)
            self._add_fault(result, faults.log_invalid_fault())
            return result

        if measurement_log is None:
            self._add_fault(result, faults.log_missing_fault(self._flavor_id))
            return result

        try:
            calculated_hash = replay.replay_measurements(
                (entry.hash_hex for entry in measurement_log.entries), self._hash_alg
            )
        except MeasurementLogError as e:
            logger.error("Replay of the XML measurement log for flavor %s failed: %s", self._flavor_id, e)
            raise ReplayError() from e

        actual_hash = measurement_log.cumulative_hash or ""
        if not _hex_equal(calculated_hash, actual_hash):
            self._add_fault(
                result,
                faults.value_mismatch_fault(
                    actual_hash,
                    calculated_hash,
                    f"Host XML measurement log replay with value '{calculated_hash}' does not match the cumulative hash '{actual_hash}' reported by the host",
                ),
            )
            return result

        if not _hex_equal(calculated_hash, self._expected_cumulative_hash):
            self._add_fault(result, faults.value_mismatch_fault(self._expected_cumulative_hash, calculated_hash))
            return result

        try:
            pcr_event_log = host_manifest.pcr_manifest.get_pcr_event_log(self._pcr_hash_alg, self._pcr_index)
        except PcrEventLogNotFound:
            self._add_fault(result, faults.pcr_event_log_missing_fault(self._pcr_index))
            return result

        label = self.pcr_event_label
        event = next((e for e in pcr_event_log if e.label == label), None)
        if event is None:
            self._add_fault(
                result,
                faults.value_mismatch_fault(
                    "",
                    calculated_hash,
                    f"The pcr event log did not contain a measurement with label '{label}'",
                ),
            )
            return result

        # The cumulative hash is extended into the PCR bank as the digest of its raw bytes
        pcr_measurement = self._pcr_hash_alg.hash(bytes.fromhex(calculated_hash)).hex()
        if not _hex_equal(pcr_measurement, event.value):
            self._add_fault(
                result,
                faults.value_mismatch_fault(
                    event.value,
                    pcr_measurement,
                    f"Host XML measurement log final hash with value '{calculated_hash}' ({self._pcr_hash_alg}: '{pcr_measurement}') does not match the pcr event log measurement '{event.value}'",
                ),
            )
            return result

        logger.debug("XML measurement log of flavor %s (%s) is trusted", self._flavor_label, self._flavor_id)
        return result
