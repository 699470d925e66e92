"""Tests for power issue detection and the reporting workflow."""

import sys
from pathlib import Path
import unittest

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from sitehealth.config import DetectorConfig, DEFAULT_AREA_LABELS
from sitehealth.detection import (
    IssueType, IssueSeverity, IssueStatus, IssueFilter, IssueLedger, PowerIssue,
    PowerIssueDetector, group_into_areas, classify_area, issue_info
)
from sitehealth.exceptions import DetectionError
from sitehealth.models import EquipmentStatus

from site_factories import BASE_TIME, make_equipment, make_site


def clock():
    return BASE_TIME


def make_issue(issue_type=IssueType.NO_POWER, severity=IssueSeverity.CRITICAL, impact=0.0, area="North Wing"):
    return PowerIssue(
        site_id="site-1",
        site_name="Guindy Works",
        area=area,
        issue_type=issue_type,
        severity=severity,
        detected_at=BASE_TIME,
        affected_equipment=["Main Transformer"],
        estimated_impact=impact
    )


class TestClassifyArea(unittest.TestCase):
    """Classification priority and impact formulas."""

    def test_offline_unit_means_no_power(self):
        members = [make_equipment(90.0, EquipmentStatus.OFFLINE), make_equipment(92.0)]
        result = classify_area(members)
        self.assertEqual(result.issue_type, IssueType.NO_POWER)
        self.assertEqual(result.severity, IssueSeverity.CRITICAL)
        self.assertEqual(result.estimated_impact, 0)

    def test_offline_wins_over_low_efficiency(self):
        members = [make_equipment(40.0, EquipmentStatus.OFFLINE), make_equipment(30.0)]
        self.assertEqual(classify_area(members).issue_type, IssueType.NO_POWER)

    def test_single_unit_at_55_is_high_voltage(self):
        result = classify_area([make_equipment(55.0)])
        self.assertEqual(result.issue_type, IssueType.HIGH_VOLTAGE)
        self.assertEqual(result.severity, IssueSeverity.CRITICAL)
        self.assertAlmostEqual(result.estimated_impact, 90.0)

    def test_two_critical_units_are_unstable(self):
        result = classify_area([make_equipment(65.0), make_equipment(65.0)])
        self.assertEqual(result.issue_type, IssueType.UNSTABLE)
        self.assertEqual(result.severity, IssueSeverity.WARNING)
        self.assertAlmostEqual(result.estimated_impact, 70.0)

    def test_low_efficiency_without_critical_is_low_voltage(self):
        # Warning status lagging behind a drop in efficiency
        result = classify_area([make_equipment(65.0, EquipmentStatus.WARNING)])
        self.assertEqual(result.issue_type, IssueType.LOW_VOLTAGE)
        self.assertAlmostEqual(result.estimated_impact, 10.0)

    def test_healthy_area_has_no_issue(self):
        self.assertIsNone(classify_area([make_equipment(90.0), make_equipment(60.0)]))
        self.assertIsNone(classify_area([]))


class TestGroupIntoAreas(unittest.TestCase):

    def setUp(self):
        self.units = [make_equipment(80.0, name=f"Unit {i}") for i in range(10)]

    def test_same_seed_same_grouping(self):
        first = group_into_areas(self.units, 42)
        second = group_into_areas(self.units, 42)
        self.assertEqual(
            {k: [u.name for u in v] for k, v in first.items()},
            {k: [u.name for u in v] for k, v in second.items()}
        )

    def test_membership_is_capped(self):
        areas = group_into_areas(self.units, 5)
        for label, members in areas.items():
            self.assertIn(label, DEFAULT_AREA_LABELS)
            self.assertTrue(1 <= len(members) <= 3)

    def test_certain_membership_takes_first_units(self):
        areas = group_into_areas(self.units, 0, membership_probability=1.0)
        self.assertEqual(list(areas), DEFAULT_AREA_LABELS)
        for members in areas.values():
            self.assertEqual([u.name for u in members], ["Unit 0", "Unit 1", "Unit 2"])

    def test_no_equipment_no_areas(self):
        self.assertEqual(group_into_areas([], 1), {})


class TestPowerIssueDetector(unittest.TestCase):

    def setUp(self):
        config = DetectorConfig(membership_probability=1.0, random_seed=9)
        self.detector = PowerIssueDetector(config, clock)

    def test_offline_site_reports_every_area(self):
        site = make_site(equipment=[make_equipment(80.0, EquipmentStatus.OFFLINE)])

        issues = self.detector.detect(site)

        self.assertEqual(len(issues), len(DEFAULT_AREA_LABELS))
        for issue in issues:
            self.assertEqual(issue.issue_type, IssueType.NO_POWER)
            self.assertEqual(issue.status, IssueStatus.DETECTED)
            self.assertEqual(issue.site_id, site.id)
            self.assertEqual(issue.detected_at, BASE_TIME)

    def test_healthy_site_has_no_issues(self):
        site = make_site(equipment=[make_equipment(95.0), make_equipment(90.0)])
        self.assertEqual(self.detector.detect(site), [])

    def test_site_without_equipment(self):
        self.assertEqual(self.detector.detect(make_site(equipment=[])), [])

    def test_seeded_detect_all_is_reproducible(self):
        detector = PowerIssueDetector(DetectorConfig(), clock)
        sites = [
            make_site("A", equipment=[make_equipment(50.0), make_equipment(55.0), make_equipment(65.0)]),
            make_site("B", equipment=[make_equipment(60.0), make_equipment(62.0)]),
        ]

        def signature(issues):
            return [(i.site_name, i.area, i.issue_type, i.affected_equipment) for i in issues]

        self.assertEqual(
            signature(detector.detect_all(sites, seed=4)),
            signature(detector.detect_all(sites, seed=4))
        )


class TestIssueLedger(unittest.TestCase):

    def setUp(self):
        self.no_power = make_issue()
        self.surge = make_issue(IssueType.HIGH_VOLTAGE, impact=90.0, area="Substation A")
        self.sag = make_issue(IssueType.LOW_VOLTAGE, IssueSeverity.WARNING, 10.0, "East Wing")
        self.ledger = IssueLedger([self.no_power, self.surge, self.sag])

    def test_report_moves_forward_once(self):
        self.assertTrue(self.ledger.report(self.no_power.id))
        self.assertEqual(self.no_power.status, IssueStatus.REPORTED)
        self.assertTrue(self.no_power.reported_to_grid)
        self.assertFalse(self.ledger.report(self.no_power.id))

    def test_resolve_is_idempotent(self):
        self.assertTrue(self.ledger.resolve(self.surge.id))
        self.assertFalse(self.ledger.resolve(self.surge.id))
        self.assertEqual(self.surge.status, IssueStatus.RESOLVED)

    def test_no_backward_transition(self):
        self.ledger.resolve(self.sag.id)
        self.assertFalse(self.ledger.report(self.sag.id))
        self.assertEqual(self.sag.status, IssueStatus.RESOLVED)

    def test_report_all_critical(self):
        self.assertEqual(self.ledger.report_all_critical(), 2)
        self.assertEqual(self.sag.status, IssueStatus.DETECTED)
        self.assertEqual(self.ledger.report_all_critical(), 0)

    def test_unknown_issue(self):
        with self.assertRaises(DetectionError):
            self.ledger.resolve("issue-missing")

    def test_filters(self):
        self.ledger.resolve(self.surge.id)
        self.assertEqual(len(self.ledger.filter(IssueFilter.ALL)), 3)
        self.assertEqual(self.ledger.filter("no_power"), [self.no_power])
        self.assertEqual(self.ledger.filter(IssueFilter.VOLTAGE_ISSUES), [self.surge, self.sag])
        self.assertEqual(self.ledger.filter(IssueFilter.CRITICAL), [self.no_power, self.surge])
        self.assertEqual(self.ledger.filter(IssueFilter.UNRESOLVED), [self.no_power, self.sag])

    def test_counts_and_impact(self):
        self.ledger.report(self.no_power.id)
        by_type = self.ledger.counts_by_type()
        by_status = self.ledger.counts_by_status()

        self.assertEqual(by_type[IssueType.UNSTABLE], 0)
        self.assertEqual(by_type[IssueType.HIGH_VOLTAGE], 1)
        self.assertEqual(by_status[IssueStatus.DETECTED], 2)
        self.assertEqual(by_status[IssueStatus.REPORTED], 1)
        self.assertAlmostEqual(self.ledger.total_energy_impact(), 100.0)

    def test_alarming(self):
        self.assertTrue(self.no_power.is_alarming)
        self.assertFalse(self.sag.is_alarming)
        self.ledger.report(self.no_power.id)
        self.assertFalse(self.no_power.is_alarming)
        self.assertEqual(self.ledger.alarming(), [self.surge])
        self.assertEqual(self.ledger.unresolved_critical(), [self.no_power, self.surge])

    def test_issue_info(self):
        self.assertEqual(issue_info("no_power").label, "No Power")
        self.assertEqual(issue_info(IssueType.UNSTABLE).color, "#FF9551")
        self.assertEqual(self.surge.info.label, "High Voltage")

    def test_dataframe(self):
        df = self.ledger.to_dataframe()
        self.assertEqual(len(df), 3)
        self.assertEqual(list(df["issue_type"]), ["no_power", "high_voltage", "low_voltage"])


if __name__ == '__main__':
    unittest.main()
