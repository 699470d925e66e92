"""
Power issue detection.

Equipment of a site is grouped into facility areas, each area is classified
into at most one power issue, and the resulting incidents move through a
detected -> reported -> resolved workflow kept by an ``IssueLedger``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence, Union, Callable, Iterable
import logging

import numpy as np
import pandas as pd

from .config import DetectorConfig, DEFAULT_AREA_LABELS
from .exceptions import DetectionError
from .health import CRITICAL_EFFICIENCY, OPTIMAL_EFFICIENCY, site_efficiency
from .models import Equipment, EquipmentStatus, Site, new_id

# Below this average area efficiency a critical area is read as overvoltage
HIGH_VOLTAGE_EFFICIENCY = 60.0

RandomSource = Union[None, int, np.random.RandomState]


class IssueType(str, Enum):
    """Kinds of power supply incident."""
    NO_POWER = "no_power"
    HIGH_VOLTAGE = "high_voltage"
    LOW_VOLTAGE = "low_voltage"
    UNSTABLE = "unstable"


class IssueSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class IssueStatus(str, Enum):
    """Reporting workflow state; transitions only move forward."""
    DETECTED = "detected"
    REPORTED = "reported"
    RESOLVED = "resolved"


class IssueFilter(str, Enum):
    ALL = "all"
    NO_POWER = "no_power"
    VOLTAGE_ISSUES = "voltage_issues"
    CRITICAL = "critical"
    UNRESOLVED = "unresolved"


@dataclass
class IssueInfo:
    """Display attributes of an issue type."""
    label: str
    icon: str
    color: str


ISSUE_INFO = {
    IssueType.NO_POWER: IssueInfo("No Power", "⚠️", "#FBBD23"),
    IssueType.HIGH_VOLTAGE: IssueInfo("High Voltage", "⚡", "#F87272"),
    IssueType.LOW_VOLTAGE: IssueInfo("Low Voltage", "↓", "#3ABFF8"),
    IssueType.UNSTABLE: IssueInfo("Unstable", "↕️", "#FF9551"),
}

_STATUS_ORDER = {
    IssueStatus.DETECTED: 0,
    IssueStatus.REPORTED: 1,
    IssueStatus.RESOLVED: 2,
}


@dataclass
class PowerIssue:
    """Power supply incident affecting one area of a site."""
    site_id: str
    site_name: str
    area: str
    issue_type: IssueType
    severity: IssueSeverity
    detected_at: datetime
    affected_equipment: List[str]
    estimated_impact: float  # kWh
    status: IssueStatus = IssueStatus.DETECTED
    reported_to_grid: bool = False
    id: str = field(default_factory=lambda: f"issue-{new_id()[:8]}")

    @property
    def is_alarming(self) -> bool:
        """Critical issues nobody has reported yet."""
        return self.severity == IssueSeverity.CRITICAL and self.status == IssueStatus.DETECTED

    @property
    def info(self) -> IssueInfo:
        return ISSUE_INFO[self.issue_type]

    def to_dict(self) -> Dict[str, object]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "site_id": self.site_id,
            "site_name": self.site_name,
            "area": self.area,
            "issue_type": self.issue_type.value,
            "severity": self.severity.value,
            "detected_at": self.detected_at.isoformat(),
            "affected_equipment": list(self.affected_equipment),
            "estimated_impact": self.estimated_impact,
            "status": self.status.value,
            "reported_to_grid": self.reported_to_grid
        }


@dataclass
class AreaClassification:
    """Outcome of classifying one area's equipment."""
    issue_type: IssueType
    severity: IssueSeverity
    estimated_impact: float


def as_random_state(source: RandomSource) -> np.random.RandomState:
    """Turn a seed, an existing RandomState or None into a RandomState."""
    if isinstance(source, np.random.RandomState):
        return source
    return np.random.RandomState(source)


def group_into_areas(
    equipment: Sequence[Equipment],
    rng: RandomSource = None,
    labels: Optional[Sequence[str]] = None,
    membership_probability: float = 0.3,
    max_members: int = 3
) -> Dict[str, List[Equipment]]:
    """
    Assign equipment to facility areas.

    Every label draws its members independently, so a unit may appear in
    several areas or in none. The result is fully determined by the seed.

    Args:
        equipment: Units of one site
        rng: Seed or RandomState driving membership
        labels: Area labels, defaults to the standard facility areas
        membership_probability: Chance a unit joins a given area
        max_members: Cap on members per area, in list order

    Returns:
        Mapping of area label to members; areas without members are omitted
    """
    rng = as_random_state(rng)
    labels = DEFAULT_AREA_LABELS if labels is None else labels

    areas = {}
    for label in labels:
        members = [eq for eq in equipment if rng.random_sample() < membership_probability]
        members = members[:max_members]
        if members:
            areas[label] = members
    return areas


def classify_area(members: Sequence[Equipment]) -> Optional[AreaClassification]:
    """Classify an area's equipment, or return None when it is healthy."""
    if not members:
        return None

    offline = sum(1 for eq in members if eq.status == EquipmentStatus.OFFLINE)
    critical = sum(1 for eq in members if eq.status == EquipmentStatus.CRITICAL)
    avg_efficiency = site_efficiency(members)

    if not (offline > 0 or critical > 1 or avg_efficiency < CRITICAL_EFFICIENCY):
        return None

    if offline > 0:
        # Nothing draws power in a dead area
        return AreaClassification(IssueType.NO_POWER, IssueSeverity.CRITICAL, 0.0)

    if avg_efficiency < HIGH_VOLTAGE_EFFICIENCY:
        impact = sum((100.0 - eq.energy_efficiency) * 2 for eq in members)
        return AreaClassification(IssueType.HIGH_VOLTAGE, IssueSeverity.CRITICAL, impact)

    if critical > 0:
        impact = sum(100.0 - eq.energy_efficiency for eq in members)
        return AreaClassification(IssueType.UNSTABLE, IssueSeverity.WARNING, impact)

    impact = sum((OPTIMAL_EFFICIENCY - eq.energy_efficiency) / 2 for eq in members)
    return AreaClassification(IssueType.LOW_VOLTAGE, IssueSeverity.WARNING, impact)


class PowerIssueDetector:
    """Derives power issues from site equipment."""

    def __init__(
        self,
        config: Optional[DetectorConfig] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.config = config or DetectorConfig()
        self.rng = np.random.RandomState(self.config.random_seed)
        self._clock = clock or datetime.now
        self.logger = logging.getLogger("sitehealth.detection")

    def detect(self, site: Site, rng: RandomSource = None) -> List[PowerIssue]:
        """Detect area-level issues of a single site."""
        if not site.equipment:
            return []

        rng = self.rng if rng is None else as_random_state(rng)
        areas = group_into_areas(
            site.equipment,
            rng,
            labels=self.config.area_labels,
            membership_probability=self.config.membership_probability,
            max_members=self.config.max_members_per_area
        )

        now = self._clock()
        issues = []
        for area, members in areas.items():
            classification = classify_area(members)
            if classification is None:
                continue
            issues.append(PowerIssue(
                site_id=site.id,
                site_name=site.name,
                area=area,
                issue_type=classification.issue_type,
                severity=classification.severity,
                detected_at=now,
                affected_equipment=[eq.name for eq in members],
                estimated_impact=classification.estimated_impact
            ))

        if issues:
            self.logger.debug(f"{site.name}: {len(issues)} power issues in {len(areas)} areas")
        return issues

    def detect_all(self, sites: Iterable[Site], seed: RandomSource = None) -> List[PowerIssue]:
        """
        Detect issues across sites.

        With a seed the whole pass is reproducible, which keeps repeated
        redraws of the same state identical.
        """
        rng = self.rng if seed is None else as_random_state(seed)
        issues = []
        for site in sites:
            issues.extend(self.detect(site, rng))

        self.logger.info(f"Detected {len(issues)} power issues")
        return issues


class IssueLedger:
    """Keeps detected issues and drives their reporting workflow."""

    def __init__(self, issues: Optional[Iterable[PowerIssue]] = None):
        self._issues: Dict[str, PowerIssue] = {}
        self.logger = logging.getLogger("sitehealth.detection.ledger")
        if issues is not None:
            self.load(issues)

    def load(self, issues: Iterable[PowerIssue]) -> None:
        """Replace the ledger contents with a fresh detection pass."""
        self._issues = {issue.id: issue for issue in issues}

    @property
    def issues(self) -> List[PowerIssue]:
        return list(self._issues.values())

    def get_issue(self, issue_id: str) -> PowerIssue:
        """Get an issue by id."""
        if issue_id not in self._issues:
            raise DetectionError(f"Issue {issue_id} not found")
        return self._issues[issue_id]

    def report(self, issue_id: str) -> bool:
        """Report a detected issue to the grid operator."""
        issue = self.get_issue(issue_id)
        if not self._advance(issue, IssueStatus.REPORTED):
            return False
        issue.reported_to_grid = True
        self.logger.info(f"Reported {issue.issue_type.value} issue at {issue.site_name}/{issue.area}")
        return True

    def resolve(self, issue_id: str) -> bool:
        """Mark a detected or reported issue as resolved."""
        issue = self.get_issue(issue_id)
        if not self._advance(issue, IssueStatus.RESOLVED):
            return False
        self.logger.info(f"Resolved {issue.issue_type.value} issue at {issue.site_name}/{issue.area}")
        return True

    def report_all_critical(self) -> int:
        """Report every critical issue still in detected state."""
        pending = [issue for issue in self._issues.values() if issue.is_alarming]
        for issue in pending:
            self.report(issue.id)
        return len(pending)

    def _advance(self, issue: PowerIssue, target: IssueStatus) -> bool:
        if _STATUS_ORDER[target] <= _STATUS_ORDER[issue.status]:
            self.logger.warning(
                f"Ignoring transition {issue.status.value} -> {target.value} for {issue.id}"
            )
            return False
        issue.status = target
        return True

    def filter(self, issue_filter: Union[IssueFilter, str] = IssueFilter.ALL) -> List[PowerIssue]:
        """Select issues for display."""
        issue_filter = IssueFilter(issue_filter)
        predicates = {
            IssueFilter.ALL: lambda i: True,
            IssueFilter.NO_POWER: lambda i: i.issue_type == IssueType.NO_POWER,
            IssueFilter.VOLTAGE_ISSUES: lambda i: i.issue_type in (
                IssueType.HIGH_VOLTAGE, IssueType.LOW_VOLTAGE
            ),
            IssueFilter.CRITICAL: lambda i: i.severity == IssueSeverity.CRITICAL,
            IssueFilter.UNRESOLVED: lambda i: i.status != IssueStatus.RESOLVED,
        }
        predicate = predicates[issue_filter]
        return [issue for issue in self._issues.values() if predicate(issue)]

    def counts_by_type(self) -> Dict[IssueType, int]:
        counts = {issue_type: 0 for issue_type in IssueType}
        for issue in self._issues.values():
            counts[issue.issue_type] += 1
        return counts

    def counts_by_status(self) -> Dict[IssueStatus, int]:
        counts = {status: 0 for status in IssueStatus}
        for issue in self._issues.values():
            counts[issue.status] += 1
        return counts

    def total_energy_impact(self) -> float:
        """Sum of estimated impact over all issues (kWh)."""
        return sum(issue.estimated_impact for issue in self._issues.values())

    def alarming(self) -> List[PowerIssue]:
        return [issue for issue in self._issues.values() if issue.is_alarming]

    def unresolved_critical(self) -> List[PowerIssue]:
        """Critical issues that still need attention."""
        return [
            issue for issue in self._issues.values()
            if issue.severity == IssueSeverity.CRITICAL and issue.status != IssueStatus.RESOLVED
        ]

    def to_dataframe(self) -> pd.DataFrame:
        """Tabular view of the ledger, one row per issue."""
        columns = [
            "id", "site_id", "site_name", "area", "issue_type", "severity",
            "detected_at", "affected_equipment", "estimated_impact", "status",
            "reported_to_grid"
        ]
        return pd.DataFrame([issue.to_dict() for issue in self._issues.values()], columns=columns)

    def __len__(self) -> int:
        return len(self._issues)


def issue_info(issue_type: Union[IssueType, str]) -> IssueInfo:
    """Display attributes of an issue type."""
    return ISSUE_INFO[IssueType(issue_type)]
