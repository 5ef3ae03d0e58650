#!/usr/bin/env python3

"""
Utility to replay XML measurement logs and verify them against a flavor.
"""

import argparse
import sys
from typing import Any, Dict, Optional

import yaml

try:
    from yaml import CSafeLoader as SafeLoader
except ImportError:
    from yaml import SafeLoader

from mlintegrity import mlintegrity_logging
from mlintegrity.common.algorithms import DigestAlgorithm
from mlintegrity.common.exception import MlIntegrityException
from mlintegrity.flavor import Flavor
from mlintegrity.manifest import HostManifest
from mlintegrity.measurement import replay
from mlintegrity.verifier.rules.xml_measurement_log_integrity import XmlMeasurementLogIntegrity

logger = mlintegrity_logging.init_logging("measurement_log")

EXIT_TRUSTED = 0
EXIT_UNTRUSTED = 1
EXIT_ERROR = 2


def _load_document(stream: Any) -> Dict[str, Any]:
    """Load a YAML (or JSON) mapping from an open file"""
    data = yaml.load(stream, Loader=SafeLoader)
    if not isinstance(data, dict):
        raise ValueError(f"{getattr(stream, 'name', 'input')} does not contain a mapping")
    return data


def replay_log(args: argparse.Namespace) -> int:
    """Print the cumulative hash of a measurement log."""
    try:
        hash_alg = DigestAlgorithm.from_name(args.algorithm)
        cumulative_hash = replay.replay(args.log_file.read(), hash_alg)
    except MlIntegrityException as e:
        logger.error("Replay of %s failed: %s", args.log_file.name, e)
        return EXIT_ERROR

    print(cumulative_hash, file=args.output)
    return EXIT_TRUSTED


def verify(args: argparse.Namespace) -> int:
    """Apply the XML measurement log integrity rule and print the result as JSON."""
    try:
        host_manifest = HostManifest.from_dict(_load_document(args.manifest))
        flavor = Flavor.from_dict(_load_document(args.flavor))
    except (yaml.YAMLError, KeyError, ValueError) as e:
        logger.error("Could not load the host manifest or the flavor: %s", e)
        return EXIT_ERROR

    try:
        rule = XmlMeasurementLogIntegrity.from_config(flavor)
        result = rule.apply(host_manifest)
    except MlIntegrityException as e:
        logger.error("The rule could not be evaluated: %s", e)
        return EXIT_ERROR

    print(result.to_json(indent=4), file=args.output)
    return EXIT_TRUSTED if result.trusted else EXIT_UNTRUSTED


def get_arg_parser() -> argparse.ArgumentParser:
    main_parser = argparse.ArgumentParser(description=__doc__)
    action_subparsers = main_parser.add_subparsers(title="actions")

    replay_p = action_subparsers.add_parser("replay", help="calculate the cumulative hash of a measurement log")
    replay_p.add_argument(
        "-l",
        "--log-file",
        type=argparse.FileType("rb"),
        required=True,
        help="XML measurement log",
    )
    replay_p.add_argument(
        "-a",
        "--algorithm",
        default=DigestAlgorithm.SHA384.value,
        help="Digest algorithm used to extend the measurements (default: %(default)s)",
    )
    replay_p.add_argument(
        "-o",
        "--output",
        type=argparse.FileType("w"),
        default=sys.stdout,
        help="Output path for the cumulative hash",
    )
    replay_p.set_defaults(func=replay_log)

    verify_p = action_subparsers.add_parser("verify", help="verify a host manifest against a software flavor")
    verify_p.add_argument(
        "-m",
        "--manifest",
        type=argparse.FileType("r"),
        required=True,
        help="Host manifest (YAML or JSON) with 'measurement_xmls' and 'pcr_event_logs'",
    )
    verify_p.add_argument(
        "-f",
        "--flavor",
        type=argparse.FileType("r"),
        required=True,
        help="Flavor (YAML or JSON) with 'flavor_id', 'label' and 'expected_cumulative_hash'",
    )
    verify_p.add_argument(
        "-o",
        "--output",
        type=argparse.FileType("w"),
        default=sys.stdout,
        help="Output path for the rule result",
    )
    verify_p.set_defaults(func=verify)

    return main_parser


def main(argv: Optional[list] = None) -> None:
    """mlintegrity-measurement-log entry point."""
    parser = get_arg_parser()
    args = parser.parse_args(argv)
    if "func" not in args:
        parser.print_help()
        parser.exit()

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
