"""
Disaster drill example for the site health engine.
This example demonstrates:
- Configuring the engine and generating a site population
- Watching store changes
- Simulating a disaster and reviewing the damage
- Working through detected power issues
- Partial recovery and map rendering
"""

from pathlib import Path

import matplotlib
matplotlib.use("Agg")

from sitehealth import SiteHealthEngine
from sitehealth.config import EngineConfig, GeneratorConfig, MonitoringConfig, SimulatorConfig
from sitehealth.detection import IssueFilter
from sitehealth.events import StoreEvent
from sitehealth.visualization import BaseLayer, DisplayMode, IssuePlotter, MatplotlibMapRenderer


def print_event(event: StoreEvent) -> None:
    """Print store change notifications."""
    print(f"\nStore event: {event.type.value} (version {event.version})")
    if event.details:
        print("Details:", event.details)


def main():
    output_dir = Path("drill_output")
    output_dir.mkdir(exist_ok=True)

    config = EngineConfig(
        name="Chennai Disaster Drill",
        generator=GeneratorConfig(site_count=10, random_seed=42),
        simulator=SimulatorConfig(random_seed=7),
        monitoring=MonitoringConfig(log_level="INFO", log_file=str(output_dir / "drill.log"))
    )

    renderer = MatplotlibMapRenderer()
    renderer.create()
    engine = SiteHealthEngine(config, renderer=renderer)
    engine.store.subscribe(print_event)

    print("Fetching sites...")
    engine.fetch_sites()
    if engine.error:
        print(f"Fetch failed: {engine.error}")
        return

    summary = engine.fleet_summary()
    print(f"\nSites: {summary.site_count}")
    print(f"Total consumption: {summary.total_consumption:.1f} kWh")
    print(f"Average efficiency: {summary.average_efficiency:.1f}%")
    renderer.fig.savefig(output_dir / "before.png")

    print("\nSimulating disaster...")
    engine.map_view.set_base_layer(BaseLayer.DARK)
    anomaly_mode = engine.toggle_disaster_mode()
    print(f"Anomaly mode: {anomaly_mode}")
    renderer.fig.savefig(output_dir / "disaster_heat.png")

    comparison = engine.disaster_comparison()
    print("\nBefore/after:")
    print(comparison[["name", "before_consumption", "after_consumption", "consumption_change_pct"]]
          .round(1).to_string(index=False))

    print("\nWorst sites:")
    print(engine.analyzer.health_table(engine.sites).head(3).to_string(index=False))

    engine.map_view.set_mode(DisplayMode.MACHINE_PARTS)
    renderer.fig.savefig(output_dir / "machine_parts.png")

    issues = engine.detect_power_issues()
    print(f"\nDetected {len(issues)} power issues")
    for issue in engine.ledger.filter(IssueFilter.CRITICAL)[:5]:
        print(f"  {issue.info.icon} {issue.site_name} / {issue.area}: {issue.info.label}")

    reported = engine.ledger.report_all_critical()
    print(f"Reported {reported} critical issues to the grid")
    print(f"Estimated energy impact: {engine.ledger.total_energy_impact():.1f} kWh")

    engine.map_view.set_mode(DisplayMode.POWER_ISSUES)
    renderer.fig.savefig(output_dir / "power_issues.png")
    IssuePlotter().plot_issue_summary(engine.ledger).savefig(output_dir / "issues.png")

    print("\nEasing back to normal...")
    for _ in range(3):
        report = engine.reset_to_normal()
        if report is None or not report.changed:
            break
        print(f"Eased {report.eased_equipment} units and {report.eased_readings} readings")
    engine.toggle_disaster_mode()

    engine.save()
    engine.close()
    print(f"\nFigures written to {output_dir}")


if __name__ == "__main__":
    main()
