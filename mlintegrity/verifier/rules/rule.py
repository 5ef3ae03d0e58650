import abc

from mlintegrity.manifest import HostManifest
from mlintegrity.verifier.faults import RuleResult


class Rule(metaclass=abc.ABCMeta):
    """A single trust check applied to a host manifest

    Rules are immutable once built and can be applied to any number of
    manifests, concurrently.
    """

    @abc.abstractmethod
    def apply(self, host_manifest: HostManifest) -> RuleResult:
        """Evaluate the manifest and return the result with its faults

        Raises if the rule could not be evaluated, which is different from a
        result that is not trusted.
        """
        raise NotImplementedError
