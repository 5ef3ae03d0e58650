import unittest
import uuid

from mlintegrity import json as mlintegrity_json
from mlintegrity.common.algorithms import DigestAlgorithm
from mlintegrity.verifier.faults import FaultKind


class JSON_Test(unittest.TestCase):
    def test_dumps(self):
        flavor_id = uuid.UUID("339a7ac6-b8be-4356-ab34-be6e3bdfa1ed")
        fixtures = [
            {"input": {}, "expected": "{}"},
            {"input": {"foo": "bar"}, "expected": '{"foo": "bar"}'},
            {"input": {"foo": b"bar"}, "expected": '{"foo": "bar"}'},
            {
                "input": {"foo": {"foo": {"foo": b"bar"}}},
                "expected": '{"foo": {"foo": {"foo": "bar"}}}',
            },
            {"input": (), "expected": "[]"},
            {"input": [b"a", b"b", 1, 2.0], "expected": '["a", "b", 1, 2.0]'},
            {"input": {"flavorId": flavor_id}, "expected": f'{{"flavorId": "{flavor_id}"}}'},
            {"input": [FaultKind.LOG_MISSING], "expected": '["XmlMeasurementLogMissing"]'},
            {"input": {"alg": DigestAlgorithm.SHA384}, "expected": '{"alg": "sha384"}'},
            {"input": {"pcrs": {15, 14}}, "expected": '{"pcrs": [14, 15]}'},
        ]
        for f in fixtures:
            self.assertEqual(mlintegrity_json.dumps(f["input"]), f["expected"])

    def test_dumps_unsupported(self):
        self.assertRaises(TypeError, mlintegrity_json.dumps, {"foo": object()})

    def test_loads(self):
        self.assertEqual(mlintegrity_json.loads(b'{"trusted": true}'), {"trusted": True})


if __name__ == "__main__":
    unittest.main()
