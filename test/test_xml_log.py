import unittest
import uuid

from mlintegrity.common.exception import MeasurementLogInvalid
from mlintegrity.measurement.xml_log import (
    MeasurementEntry,
    MeasurementLog,
    MeasurementType,
    get_ordered_entries,
    get_ordered_measurements,
)

FLAVOR_ID = "339a7ac6-b8be-4356-ab34-be6e3bdfa1ed"

H1 = "11" * 48
H2 = "22" * 48
H3 = "33" * 48

MEASUREMENT_XML = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<Measurement xmlns="lib:wml:measurements:1.0" Label="Default_Application_Flavor" Uuid="{FLAVOR_ID}" DigestAlg="SHA384">
    <Dir Exclude="" FilterType="regex" Include=".*" Path="/opt/app/bin">{H1}</Dir>
    <File Path="/opt/app/bin/run.sh">{H2}</File>
    <Symlink Path="/opt/app/current">{H3}</Symlink>
    <CumulativeHash>{"ab" * 48}</CumulativeHash>
</Measurement>
"""


class TestOrderedMeasurements(unittest.TestCase):
    def test_document_order(self):
        self.assertEqual(get_ordered_measurements(MEASUREMENT_XML), [H1, H2, H3])

    def test_document_order_is_kept_across_tag_names(self):
        xml = f"<Measurement><File>{H1}</File><Dir>{H2}</Dir><File>{H3}</File><Symlink>{H1}</Symlink></Measurement>"
        self.assertEqual(get_ordered_measurements(xml), [H1, H2, H3, H1])

    def test_bytes_input(self):
        self.assertEqual(get_ordered_measurements(MEASUREMENT_XML.encode("utf-8")), [H1, H2, H3])

    def test_entries(self):
        self.assertEqual(
            get_ordered_entries(MEASUREMENT_XML),
            [
                MeasurementEntry("/opt/app/bin", MeasurementType.DIR, H1),
                MeasurementEntry("/opt/app/bin/run.sh", MeasurementType.FILE, H2),
                MeasurementEntry("/opt/app/current", MeasurementType.SYMLINK, H3),
            ],
        )

    def test_other_tags_are_not_captured(self):
        xml = f"<Measurement><Other>{H1}</Other><CumulativeHash>{H2}</CumulativeHash><File>{H3}</File></Measurement>"
        self.assertEqual(get_ordered_measurements(xml), [H3])

    def test_only_text_right_after_the_start_tag(self):
        # A child element before the text means the File carries no measurement
        xml = f"<Measurement><File><Nested>{H1}</Nested>{H2}</File><Dir>{H3}</Dir></Measurement>"
        self.assertEqual(get_ordered_measurements(xml), [H3])

    def test_empty_element(self):
        xml = f"<Measurement><File Path='/a'></File><File Path='/b'/><File Path='/c'>{H1}</File></Measurement>"
        self.assertEqual(get_ordered_measurements(xml), [H1])

    def test_whitespace_is_kept(self):
        xml = f"<Measurement><File>\n  {H1}\n</File></Measurement>"
        self.assertEqual(get_ordered_measurements(xml), [f"\n  {H1}\n"])

    def test_comment_before_text(self):
        xml = f"<Measurement><File><!-- generated -->{H1}</File><Dir>{H2}</Dir></Measurement>"
        self.assertEqual(get_ordered_measurements(xml), [H2])

    def test_comment_splits_text(self):
        xml = f"<Measurement><File>{H1}<!-- generated -->{H2}</File></Measurement>"
        self.assertEqual(get_ordered_measurements(xml), [H1])

    def test_processing_instruction_before_text(self):
        xml = f"<Measurement><File><?tool step=1?>{H1}</File><Symlink>{H3}</Symlink></Measurement>"
        self.assertEqual(get_ordered_measurements(xml), [H3])

    def test_cdata_is_a_separate_text_token(self):
        xml = f"<Measurement><File>{H1}<![CDATA[{H2}]]></File></Measurement>"
        self.assertEqual(get_ordered_measurements(xml), [H1])

        xml = f"<Measurement><File><![CDATA[{H2}]]>{H1}</File></Measurement>"
        self.assertEqual(get_ordered_measurements(xml), [H2])

    def test_entities_stay_in_one_text_token(self):
        # expat reports the text around a character reference in pieces
        xml = f"<Measurement><File>{H1[:10]}&#x31;{H1[11:]}</File></Measurement>"
        self.assertEqual(get_ordered_measurements(xml), [H1])

    def test_prefixed_tags(self):
        xml = f'<wml:Measurement xmlns:wml="lib:wml:measurements:1.0"><wml:File>{H1}</wml:File></wml:Measurement>'
        self.assertEqual(get_ordered_measurements(xml), [H1])

    def test_no_measurements(self):
        self.assertEqual(get_ordered_measurements("<Measurement></Measurement>"), [])

    def test_empty_document(self):
        self.assertEqual(get_ordered_measurements(""), [])
        self.assertEqual(get_ordered_measurements(b"  \n"), [])

    def test_malformed(self):
        for xml in [
            "<Measurement><File>",
            f"<Measurement><File>{H1}</Dir></Measurement>",
            "not xml at all",
            f"<Measurement><File>{H1}</File></Measurement><Measurement/>",
        ]:
            with self.assertRaises(MeasurementLogInvalid):
                get_ordered_measurements(xml)

    def test_large_log(self):
        hashes = [f"{i:096x}" for i in range(5000)]
        xml = "<Measurement>" + "".join(f"<File Path='/f{i}'>{h}</File>" for i, h in enumerate(hashes)) + "</Measurement>"
        self.assertEqual(get_ordered_measurements(xml), hashes)


class TestMeasurementLog(unittest.TestCase):
    def test_parse(self):
        log = MeasurementLog.parse(MEASUREMENT_XML)
        self.assertEqual(log.label, "Default_Application_Flavor")
        self.assertEqual(log.uuid, FLAVOR_ID)
        self.assertEqual(log.digest_alg, "SHA384")
        self.assertEqual(log.cumulative_hash, "ab" * 48)
        self.assertEqual([e.hash_hex for e in log.entries], [H1, H2, H3])
        self.assertEqual(log.raw, MEASUREMENT_XML)
        self.assertEqual(log.flavor_id(), uuid.UUID(FLAVOR_ID))

    def test_parse_without_cumulative_hash(self):
        log = MeasurementLog.parse(f"<Measurement Uuid='{FLAVOR_ID.upper()}'><File>{H1}</File></Measurement>")
        self.assertIsNone(log.cumulative_hash)
        self.assertEqual(log.flavor_id(), uuid.UUID(FLAVOR_ID))

    def test_parse_cumulative_hash_with_comment(self):
        log = MeasurementLog.parse(
            f"<Measurement><File>{H1}</File><CumulativeHash>\n  {H2[:48]}<!-- split -->{H2[48:]}\n</CumulativeHash></Measurement>"
        )
        self.assertEqual(log.cumulative_hash, H2)

    def test_parse_without_uuid(self):
        log = MeasurementLog.parse("<Measurement/>")
        self.assertIsNone(log.flavor_id())

    def test_invalid_uuid(self):
        log = MeasurementLog.parse("<Measurement Uuid='not-a-uuid'/>")
        self.assertRaises(MeasurementLogInvalid, log.flavor_id)

    def test_parse_empty(self):
        self.assertRaises(MeasurementLogInvalid, MeasurementLog.parse, "")

    def test_parse_malformed(self):
        self.assertRaises(MeasurementLogInvalid, MeasurementLog.parse, "<Measurement>")


if __name__ == "__main__":
    unittest.main()
