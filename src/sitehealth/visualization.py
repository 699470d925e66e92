"""
Geospatial visualization of site health.

Overlay geometry is computed as plain data (``OverlaySet``) so it can be
compared, tested and handed to any rendering surface. ``MapView`` owns the
display state and the versioned redraw cycle; ``MatplotlibMapRenderer``
draws an overlay set onto a matplotlib figure.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import logging
import math

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.colors import LinearSegmentedColormap
from matplotlib.patches import Circle
import seaborn as sns
from scipy.spatial import cKDTree
from scipy.stats import gaussian_kde

from .config import VisualizationConfig
from .detection import IssueLedger, IssueType, PowerIssue, PowerIssueDetector, ISSUE_INFO
from .events import StoreEvent
from .exceptions import VisualizationError
from .health import (
    CRITICAL_EFFICIENCY,
    OPTIMAL_EFFICIENCY,
    GREEN,
    RED,
    YELLOW,
    efficiency_color,
    status_color,
)
from .models import EquipmentStatus, Site

LatLng = Tuple[float, float]

METERS_PER_DEGREE = 111320.0

# Anomaly popups flag sites below this efficiency as possibly damaged
DAMAGE_EFFICIENCY = 75.0


class DisplayMode(str, Enum):
    """Mutually exclusive map display modes."""
    HEAT = "heat"
    THREE_D = "3d"
    MACHINE_PARTS = "machine_parts"
    POWER_ISSUES = "power_issues"


class BaseLayer(str, Enum):
    """Background tile layers."""
    STREET = "street"
    SATELLITE = "satellite"
    TOPO = "topo"
    DARK = "dark"

    @property
    def tile_url(self) -> str:
        return TILE_URLS[self]


TILE_URLS = {
    BaseLayer.STREET: "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png",
    BaseLayer.SATELLITE: (
        "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}"
    ),
    BaseLayer.TOPO: "https://{s}.tile.opentopomap.org/{z}/{x}/{y}.png",
    BaseLayer.DARK: "https://tiles.stadiamaps.com/tiles/alidade_smooth_dark/{z}/{x}/{y}{r}.png",
}

HEAT_GRADIENT = {0.0: "blue", 0.4: "cyan", 0.7: "lime", 1.0: "yellow"}
ANOMALY_HEAT_GRADIENT = {0.0: "blue", 0.4: "cyan", 0.6: "lime", 0.8: "yellow", 1.0: "red"}

CONSUMPTION_RANGES = [
    ("0-50 kWh", "Optimal"),
    ("50-150 kWh", "Normal"),
    ("150-250 kWh", "High"),
    ("250-350 kWh", "Very High"),
    ("350+ kWh", "Critical"),
]

POWER_GRID_LEGEND = ["Broken Connection", "Voltage Surge", "Stable Connection"]

# Marker kinds that take part in clustering
CLUSTERED_KINDS = ("site", "issue")

# Most severe issue type decides a site's impact circle and connections
_ISSUE_PRIORITY = [
    IssueType.NO_POWER,
    IssueType.HIGH_VOLTAGE,
    IssueType.UNSTABLE,
    IssueType.LOW_VOLTAGE,
]


@dataclass
class Marker:
    """Point marker."""
    position: LatLng
    color: str
    size: float
    kind: str  # site, equipment, radar, issue, break
    health: str = "normal"  # normal, warning, critical
    label: str = ""
    ref_id: Optional[str] = None
    site_id: Optional[str] = None
    popup: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CircleOverlay:
    """Circle with a radius in meters."""
    center: LatLng
    radius_m: float
    color: str
    fill_opacity: float
    stroke: bool = True
    weight: float = 2.0
    kind: str = ""


@dataclass
class Polyline:
    points: List[LatLng]
    color: str
    weight: float
    opacity: float
    dash: Optional[str] = None  # e.g. "5, 10"
    kind: str = ""


@dataclass
class TravelingParticle:
    """Animated cue moving along a surge line."""
    start: LatLng
    end: LatLng
    delay_s: float
    color: str = RED


@dataclass
class HeatPoint:
    lat: float
    lng: float
    weight: float


@dataclass
class Cluster:
    """Group of nearby markers shown as one badge."""
    center: LatLng
    count: int
    size: str  # small, medium, large
    health_class: str  # critical, warning, normal
    member_indices: List[int] = field(default_factory=list)


@dataclass
class DisasterSummary:
    affected_sites: int
    power_anomalies: int
    recovery_hours: int


@dataclass
class Legend:
    """Legend panel contents."""
    consumption_ranges: List[Tuple[str, str]]
    total_consumption: float
    site_count: int
    disaster: Optional[DisasterSummary] = None
    power_grid: List[str] = field(default_factory=list)


@dataclass
class OverlaySet:
    """Everything drawn on the map for one display state."""
    mode: DisplayMode
    anomaly_mode: bool
    heat_points: List[HeatPoint] = field(default_factory=list)
    heat_gradient: Dict[float, str] = field(default_factory=dict)
    markers: List[Marker] = field(default_factory=list)
    circles: List[CircleOverlay] = field(default_factory=list)
    lines: List[Polyline] = field(default_factory=list)
    particles: List[TravelingParticle] = field(default_factory=list)
    clusters: List[Cluster] = field(default_factory=list)
    legend: Optional[Legend] = None

    @property
    def is_empty(self) -> bool:
        return not (self.heat_points or self.markers or self.circles or self.lines)

    def unclustered_markers(self) -> List[Marker]:
        """Markers drawn individually rather than inside a cluster badge."""
        clustered = {i for cluster in self.clusters for i in cluster.member_indices}
        return [m for i, m in enumerate(self.markers) if i not in clustered]


def health_class(efficiency: float) -> str:
    """Map efficiency to a marker health class."""
    if efficiency < CRITICAL_EFFICIENCY:
        return "critical"
    if efficiency < OPTIMAL_EFFICIENCY:
        return "warning"
    return "normal"


def offset_position(center: LatLng, index: int, count: int, distance: float) -> LatLng:
    """Position of item ``index`` of ``count`` on a ring around center."""
    angle = 2 * math.pi * index / count
    return (center[0] + math.sin(angle) * distance, center[1] + math.cos(angle) * distance)


def nearest_sites(sites: Sequence[Site], index: int, k: int) -> List[Site]:
    """The k sites closest to ``sites[index]`` in coordinate space, nearest first."""
    if len(sites) < 2 or k <= 0:
        return []

    coords = np.array([[s.location.lat, s.location.lng] for s in sites])
    tree = cKDTree(coords)
    _, found = tree.query(coords[index], k=min(k + 1, len(sites)))
    found = np.atleast_1d(found)

    return [sites[int(i)] for i in found if int(i) != index][:k]


def cluster_markers(
    markers: Sequence[Marker],
    radius_deg: float,
    kinds: Sequence[str] = CLUSTERED_KINDS
) -> List[Cluster]:
    """
    Grid-cluster markers.

    Markers of the given kinds falling into the same ``radius_deg`` grid
    cell form a cluster; lone markers are left alone.
    """
    cells: "OrderedDict[Tuple[int, int], List[int]]" = OrderedDict()
    for index, marker in enumerate(markers):
        if marker.kind not in kinds:
            continue
        key = (
            int(math.floor(marker.position[0] / radius_deg)),
            int(math.floor(marker.position[1] / radius_deg))
        )
        cells.setdefault(key, []).append(index)

    clusters = []
    for members in cells.values():
        if len(members) < 2:
            continue
        count = len(members)
        healths = {markers[i].health for i in members}
        if "critical" in healths:
            klass = "critical"
        elif "warning" in healths:
            klass = "warning"
        else:
            klass = "normal"
        clusters.append(Cluster(
            center=(
                float(np.mean([markers[i].position[0] for i in members])),
                float(np.mean([markers[i].position[1] for i in members]))
            ),
            count=count,
            size="small" if count < 10 else "medium" if count < 50 else "large",
            health_class=klass,
            member_indices=list(members)
        ))
    return clusters


def build_legend(sites: Sequence[Site], anomaly_mode: bool, lines_drawn: bool) -> Legend:
    """Legend with consumption ranges, totals and mode-specific panels."""
    with_data = [site for site in sites if site.energy_data]
    legend = Legend(
        consumption_ranges=list(CONSUMPTION_RANGES),
        total_consumption=sum(site.latest_reading.consumption for site in with_data),
        site_count=len(with_data)
    )

    if anomaly_mode:
        affected = sum(1 for site in sites if site.count_status(EquipmentStatus.CRITICAL) > 0)
        legend.disaster = DisasterSummary(
            affected_sites=affected,
            power_anomalies=int(math.floor(affected * 1.5)),
            recovery_hours=affected * 2
        )

    if lines_drawn:
        legend.power_grid = list(POWER_GRID_LEGEND)

    return legend


class OverlayBuilder:
    """Computes overlay geometry for each display mode."""

    def __init__(
        self,
        config: Optional[VisualizationConfig] = None,
        detector: Optional[PowerIssueDetector] = None
    ):
        self.config = config or VisualizationConfig()
        self.detector = detector or PowerIssueDetector()
        self.logger = logging.getLogger("sitehealth.visualization")

    def build(
        self,
        sites: Sequence[Site],
        mode: DisplayMode = DisplayMode.HEAT,
        anomaly_mode: bool = False,
        show_clusters: bool = True
    ) -> OverlaySet:
        """Build the full overlay set for a display state."""
        overlays = OverlaySet(mode=mode, anomaly_mode=anomaly_mode)

        if mode == DisplayMode.HEAT:
            self._add_heat(overlays, sites)
        elif mode == DisplayMode.THREE_D:
            self._add_stacks(overlays, sites)
        elif mode == DisplayMode.MACHINE_PARTS:
            self._add_machine_parts(overlays, sites)
        elif mode == DisplayMode.POWER_ISSUES:
            self._add_power_issues(overlays, sites)
        else:
            raise VisualizationError(f"Unknown display mode: {mode}")

        if show_clusters:
            overlays.clusters = cluster_markers(overlays.markers, self.config.cluster_radius_deg)

        overlays.legend = build_legend(sites, anomaly_mode, lines_drawn=bool(overlays.lines))
        return overlays

    def _site_marker(self, site: Site, anomaly_mode: bool, size: float) -> Marker:
        latest = site.latest_reading
        return Marker(
            position=(site.location.lat, site.location.lng),
            color=efficiency_color(latest.efficiency),
            size=size,
            kind="site",
            health=health_class(latest.efficiency),
            label=site.name,
            ref_id=site.id,
            site_id=site.id,
            popup={
                "name": site.name,
                "category": site.category.value,
                "status": site.status.value,
                "efficiency": round(latest.efficiency, 1),
                "consumption": round(latest.consumption, 2),
                "potential_damage": anomaly_mode and latest.efficiency < DAMAGE_EFFICIENCY
            }
        )

    def _add_heat(self, overlays: OverlaySet, sites: Sequence[Site]) -> None:
        overlays.heat_gradient = dict(
            ANOMALY_HEAT_GRADIENT if overlays.anomaly_mode else HEAT_GRADIENT
        )
        for site in sites:
            if not site.energy_data:
                continue
            latest = site.latest_reading
            weight = latest.consumption
            if overlays.anomaly_mode:
                weight = latest.consumption * (100.0 - latest.efficiency) / 100.0
            overlays.heat_points.append(
                HeatPoint(site.location.lat, site.location.lng, weight / self.config.heat_scale)
            )
            overlays.markers.append(self._site_marker(site, overlays.anomaly_mode, 10))

    def _add_stacks(self, overlays: OverlaySet, sites: Sequence[Site]) -> None:
        for site in sites:
            if not site.energy_data:
                continue
            latest = site.latest_reading
            center = (site.location.lat, site.location.lng)
            max_size = max(50.0, latest.consumption / 2)
            color = efficiency_color(latest.efficiency)

            for i in range(self.config.stack_layers):
                overlays.circles.append(CircleOverlay(
                    center=center,
                    radius_m=max_size * (1 - i * 0.15),
                    color=color,
                    fill_opacity=0.8 - i * 0.15,
                    stroke=i == 0,
                    weight=1.0 if i == 0 else 0.0,
                    kind="stack"
                ))
            overlays.markers.append(self._site_marker(site, overlays.anomaly_mode, 8))

    def _add_machine_parts(self, overlays: OverlaySet, sites: Sequence[Site]) -> None:
        offset = self.config.equipment_offset_deg
        for site in sites:
            problems = site.problem_equipment()
            if not problems:
                continue

            center = (site.location.lat, site.location.lng)
            count = len(problems)
            positions = [offset_position(center, i, count, offset) for i in range(count)]

            overlays.circles.append(CircleOverlay(
                center=center,
                radius_m=self.config.problem_ring_radius_m,
                color=RED,
                fill_opacity=0.1,
                weight=2.0,
                kind="problem_ring"
            ))

            for i in range(count - 1):
                for j in range(i + 1, count):
                    both_critical = (
                        problems[i].status == EquipmentStatus.CRITICAL
                        and problems[j].status == EquipmentStatus.CRITICAL
                    )
                    if both_critical:
                        line = Polyline([positions[i], positions[j]], RED, 1.5, 0.6, "5, 10", "critical_flow")
                    else:
                        line = Polyline([positions[i], positions[j]], YELLOW, 1.0, 0.4, "3, 7", "warning_flow")
                    overlays.lines.append(line)

            if any(eq.status == EquipmentStatus.CRITICAL for eq in problems):
                overlays.markers.append(Marker(
                    position=center, color=RED, size=300, kind="radar",
                    health="critical", site_id=site.id, ref_id=site.id
                ))

            for equipment, position in zip(problems, positions):
                heat = (equipment.temperature / 100) * (100 - equipment.energy_efficiency) / 100
                critical = equipment.status == EquipmentStatus.CRITICAL
                overlays.markers.append(Marker(
                    position=position,
                    color=status_color(equipment.status),
                    size=12 + heat * 5 if critical else 8 + heat * 3,
                    kind="equipment",
                    health="critical" if critical else "warning",
                    label=equipment.name,
                    ref_id=equipment.id,
                    site_id=site.id,
                    popup={
                        "name": equipment.name,
                        "site": site.name,
                        "status": equipment.status.value,
                        "temperature": round(equipment.temperature, 1),
                        "efficiency": round(equipment.energy_efficiency, 1),
                        "vibration": round(equipment.vibration, 1)
                    }
                ))

    def _add_power_issues(self, overlays: OverlaySet, sites: Sequence[Site]) -> None:
        # Fixed seed keeps repeated visits to this mode identical
        issues = self.detector.detect_all(sites, seed=self.config.area_seed)

        by_site: "OrderedDict[str, List[PowerIssue]]" = OrderedDict()
        for issue in issues:
            by_site.setdefault(issue.site_id, []).append(issue)

        index_of = {site.id: i for i, site in enumerate(sites)}
        offset = self.config.equipment_offset_deg

        for site_id, site_issues in by_site.items():
            index = index_of[site_id]
            site = sites[index]
            center = (site.location.lat, site.location.lng)

            for i, issue in enumerate(site_issues):
                info = ISSUE_INFO[issue.issue_type]
                overlays.markers.append(Marker(
                    position=offset_position(center, i, len(site_issues), offset),
                    color=info.color,
                    size=14,
                    kind="issue",
                    health=issue.severity.value if issue.severity.value != "info" else "normal",
                    label=f"{info.label} - {issue.area}",
                    ref_id=site.id,
                    site_id=site.id,
                    popup={
                        "site": site.name,
                        "area": issue.area,
                        "issue_type": issue.issue_type.value,
                        "severity": issue.severity.value,
                        "affected_equipment": list(issue.affected_equipment),
                        "estimated_impact": round(issue.estimated_impact, 2)
                    }
                ))

            dominant = min(
                (issue.issue_type for issue in site_issues), key=_ISSUE_PRIORITY.index
            )
            color = ISSUE_INFO[dominant].color
            overlays.circles.append(CircleOverlay(
                center=center,
                radius_m=500.0 if dominant == IssueType.NO_POWER else 300.0,
                color=color,
                fill_opacity=0.2,
                weight=2.0,
                kind="impact"
            ))

            if dominant == IssueType.NO_POWER:
                self._add_broken_line(overlays, sites, index, color)
            elif dominant == IssueType.HIGH_VOLTAGE:
                self._add_surge_lines(overlays, sites, index)

        self.logger.debug(f"Power issue overlays for {len(by_site)} sites")

    def _add_broken_line(self, overlays: OverlaySet, sites: Sequence[Site], index: int, color: str) -> None:
        nearest = nearest_sites(sites, index, 1)
        if not nearest:
            return

        site, other = sites[index], nearest[0]
        mid = (
            (site.location.lat + other.location.lat) / 2,
            (site.location.lng + other.location.lng) / 2
        )
        gap = self.config.break_gap_deg

        overlays.lines.append(Polyline(
            [(site.location.lat, site.location.lng), (mid[0] - gap, mid[1] - gap)],
            color, 3.0, 0.8, "5, 10", "broken"
        ))
        overlays.lines.append(Polyline(
            [(mid[0] + gap, mid[1] + gap), (other.location.lat, other.location.lng)],
            color, 3.0, 0.8, "5, 10", "broken"
        ))
        overlays.markers.append(Marker(
            position=mid, color=color, size=30, kind="break", health="critical",
            label="Power line break detected", site_id=site.id, ref_id=other.id,
            popup={"between": [site.name, other.name]}
        ))

    def _add_surge_lines(self, overlays: OverlaySet, sites: Sequence[Site], index: int) -> None:
        site = sites[index]
        start = (site.location.lat, site.location.lng)

        for other in nearest_sites(sites, index, self.config.surge_connections):
            end = (other.location.lat, other.location.lng)
            overlays.lines.append(Polyline([start, end], RED, 2.0, 0.7, None, "surge"))
            for i in range(self.config.particles_per_line):
                overlays.particles.append(TravelingParticle(start, end, float(i)))


class MapView:
    """
    Interactive map state.

    Holds the display mode, the orthogonal anomaly flag and base layer, and
    the currently committed overlays. Every redraw takes a ticket; results
    committed with a stale ticket are discarded.
    """

    def __init__(
        self,
        sites_source: Callable[[], Sequence[Site]],
        builder: Optional[OverlayBuilder] = None,
        config: Optional[VisualizationConfig] = None,
        renderer: Optional["MatplotlibMapRenderer"] = None
    ):
        self.config = config or (builder.config if builder else VisualizationConfig())
        self.builder = builder or OverlayBuilder(self.config)
        self.renderer = renderer
        self._sites_source = sites_source

        self.mode = DisplayMode.HEAT
        self.anomaly_mode = False
        self.base_layer = BaseLayer(self.config.default_base_layer)
        self.show_clusters = self.config.show_clusters

        self.overlays: Optional[OverlaySet] = None
        self.hover_lines: List[Polyline] = []
        self._latest_ticket = 0
        self._committed_ticket = 0
        self.logger = logging.getLogger("sitehealth.visualization.map")

    @property
    def committed_version(self) -> int:
        return self._committed_ticket

    def begin_redraw(self) -> int:
        """Issue a ticket for a new redraw."""
        self._latest_ticket += 1
        return self._latest_ticket

    def commit(self, ticket: int, overlays: OverlaySet) -> bool:
        """
        Install overlays computed under ``ticket``.

        Returns:
            False if a newer redraw was started meanwhile and the result was dropped
        """
        if ticket < self._latest_ticket:
            self.logger.debug(f"Discarding stale redraw {ticket} (latest {self._latest_ticket})")
            return False

        # Clear every layer before drawing the new state
        self.overlays = None
        self.hover_lines = []

        self.overlays = overlays
        self._committed_ticket = ticket
        if self.renderer is not None and self.renderer.is_active:
            self.renderer.draw(overlays, self.base_layer)
        return True

    def redraw(self) -> OverlaySet:
        """Recompute overlays for the current state and commit them."""
        ticket = self.begin_redraw()
        overlays = self.builder.build(
            list(self._sites_source()),
            mode=self.mode,
            anomaly_mode=self.anomaly_mode,
            show_clusters=self.show_clusters
        )
        self.commit(ticket, overlays)
        return overlays

    def on_store_event(self, event: StoreEvent) -> None:
        """Store subscriber: redraw on any change."""
        self.logger.debug(f"Redraw for {event.type.value} v{event.version}")
        self.redraw()

    def set_mode(self, mode: DisplayMode) -> OverlaySet:
        self.mode = DisplayMode(mode)
        self.logger.info(f"Display mode: {self.mode.value}")
        return self.redraw()

    def _toggle(self, mode: DisplayMode) -> OverlaySet:
        return self.set_mode(DisplayMode.HEAT if self.mode == mode else mode)

    def toggle_machine_parts(self) -> OverlaySet:
        return self._toggle(DisplayMode.MACHINE_PARTS)

    def toggle_power_issues(self) -> OverlaySet:
        return self._toggle(DisplayMode.POWER_ISSUES)

    def toggle_3d(self) -> OverlaySet:
        return self._toggle(DisplayMode.THREE_D)

    def toggle_anomaly_mode(self) -> OverlaySet:
        self.anomaly_mode = not self.anomaly_mode
        return self.redraw()

    def toggle_clusters(self) -> OverlaySet:
        self.show_clusters = not self.show_clusters
        return self.redraw()

    def set_base_layer(self, layer: BaseLayer) -> None:
        """Switch the background; overlays are kept as they are."""
        self.base_layer = BaseLayer(layer)
        if self.renderer is not None and self.renderer.is_active and self.overlays is not None:
            self.renderer.draw(self.overlays, self.base_layer)

    def hover_equipment(self, equipment_id: str) -> List[Polyline]:
        """Show transient lines from a hovered equipment marker to its siblings."""
        self.unhover()
        if self.overlays is None or self.mode != DisplayMode.MACHINE_PARTS:
            return []

        equipment_markers = [m for m in self.overlays.markers if m.kind == "equipment"]
        hovered = next((m for m in equipment_markers if m.ref_id == equipment_id), None)
        if hovered is None:
            return []

        for sibling in equipment_markers:
            if sibling.site_id != hovered.site_id or sibling is hovered:
                continue
            self.hover_lines.append(Polyline(
                [hovered.position, sibling.position], hovered.color, 2.0, 0.7, "3, 3", "hover"
            ))
        return list(self.hover_lines)

    def unhover(self) -> None:
        self.hover_lines = []


def _dash_style(dash: Optional[str]):
    if not dash:
        return "-"
    pattern = tuple(float(part) for part in dash.split(","))
    return (0, pattern)


class MatplotlibMapRenderer:
    """Draws overlay sets onto a matplotlib figure."""

    BACKGROUNDS = {
        BaseLayer.STREET: "#F2EFE9",
        BaseLayer.SATELLITE: "#1B2631",
        BaseLayer.TOPO: "#E8E4D8",
        BaseLayer.DARK: "#242424",
    }

    def __init__(self, figsize: Tuple[int, int] = (10, 8), heat_resolution: int = 100):
        self.figsize = figsize
        self.heat_resolution = heat_resolution
        self.fig: Optional[plt.Figure] = None
        self.ax = None
        self.logger = logging.getLogger("sitehealth.visualization.renderer")

    @property
    def is_active(self) -> bool:
        return self.fig is not None

    def create(self) -> plt.Figure:
        """Create the drawing surface."""
        if self.fig is None:
            self.fig, self.ax = plt.subplots(figsize=self.figsize)
        return self.fig

    def destroy(self) -> None:
        """Release the drawing surface."""
        if self.fig is not None:
            plt.close(self.fig)
        self.fig = None
        self.ax = None

    def draw(self, overlays: OverlaySet, base_layer: BaseLayer = BaseLayer.STREET) -> plt.Figure:
        """Clear the surface and draw overlays."""
        if self.fig is None:
            raise VisualizationError("Renderer surface has not been created")

        ax = self.ax
        ax.clear()
        ax.set_facecolor(self.BACKGROUNDS[BaseLayer(base_layer)])

        if overlays.heat_points:
            self._draw_heat(ax, overlays)

        for circle in overlays.circles:
            ax.add_patch(Circle(
                (circle.center[1], circle.center[0]),
                circle.radius_m / METERS_PER_DEGREE,
                facecolor=circle.color,
                alpha=max(circle.fill_opacity, 0.0),
                edgecolor="white" if circle.stroke else "none",
                linewidth=circle.weight
            ))

        for line in overlays.lines:
            lats, lngs = zip(*line.points)
            ax.plot(lngs, lats, color=line.color, linewidth=line.weight,
                    alpha=line.opacity, linestyle=_dash_style(line.dash))

        for marker in overlays.unclustered_markers():
            if marker.kind == "radar":
                continue
            ax.scatter(marker.position[1], marker.position[0], s=marker.size ** 2 / 4,
                       c=marker.color, edgecolors="white", zorder=3)

        for cluster in overlays.clusters:
            color = {"critical": RED, "warning": YELLOW}.get(cluster.health_class, GREEN)
            size = {"small": 400, "medium": 700}.get(cluster.size, 1000)
            ax.scatter(cluster.center[1], cluster.center[0], s=size, c=color, alpha=0.8, zorder=4)
            ax.annotate(str(cluster.count), (cluster.center[1], cluster.center[0]),
                        ha="center", va="center", zorder=5)

        ax.set_xlabel("Longitude")
        ax.set_ylabel("Latitude")
        ax.set_title(f"Site Health - {overlays.mode.value}")
        ax.set_aspect("equal", adjustable="datalim")
        self.fig.tight_layout()
        return self.fig

    def _draw_heat(self, ax, overlays: OverlaySet) -> None:
        lats = np.array([p.lat for p in overlays.heat_points])
        lngs = np.array([p.lng for p in overlays.heat_points])
        weights = np.array([p.weight for p in overlays.heat_points])
        stops = sorted(overlays.heat_gradient.items())
        cmap = LinearSegmentedColormap.from_list("heat", stops)

        if len(lats) < 3 or weights.sum() <= 0:
            ax.scatter(lngs, lats, s=np.maximum(weights, 1) * 20, c=weights, cmap=cmap, alpha=0.6)
            return

        try:
            kde = gaussian_kde(np.vstack([lngs, lats]), weights=weights)
        except np.linalg.LinAlgError:
            # Collinear points have no 2D density
            ax.scatter(lngs, lats, s=np.maximum(weights, 1) * 20, c=weights, cmap=cmap, alpha=0.6)
            return

        pad = 0.02
        xx, yy = np.meshgrid(
            np.linspace(lngs.min() - pad, lngs.max() + pad, self.heat_resolution),
            np.linspace(lats.min() - pad, lats.max() + pad, self.heat_resolution)
        )
        density = kde(np.vstack([xx.ravel(), yy.ravel()])).reshape(xx.shape)
        ax.contourf(xx, yy, density, levels=12, cmap=cmap, alpha=0.6)


class IssuePlotter:
    """Summary charts for the power issue ledger."""

    def plot_issue_summary(self, ledger: IssueLedger, figsize: Tuple[int, int] = (12, 5)) -> plt.Figure:
        """Bar charts of issue counts by type and by status."""
        by_type = pd.DataFrame([
            {"type": ISSUE_INFO[issue_type].label, "count": count}
            for issue_type, count in ledger.counts_by_type().items()
        ])
        by_status = pd.DataFrame([
            {"status": status.value.title(), "count": count}
            for status, count in ledger.counts_by_status().items()
        ])

        fig, (ax1, ax2) = plt.subplots(1, 2, figsize=figsize)

        sns.barplot(data=by_type, x="type", y="count", ax=ax1, hue="type", legend=False,
                    palette=[ISSUE_INFO[t].color for t in IssueType])
        ax1.set_title("Issues by Type")
        ax1.set_xlabel("")

        sns.barplot(data=by_status, x="status", y="count", ax=ax2)
        ax2.set_title("Issues by Status")
        ax2.set_xlabel("")

        fig.suptitle(f"Total energy impact: {ledger.total_energy_impact():.1f} kWh")
        plt.tight_layout()
        return fig
