#!/usr/bin/env python3
"""
Schedule Analysis Runner.

Schedules a project file with CPM, checks schedule quality, traces logic
chains, or runs a Monte Carlo risk simulation, printing a report and
optionally writing CSV outputs.

Usage:
    python scripts/scheduling/analyze/run_analysis.py schedule PROJECT.json [--output DIR] [--float-paths N]
    python scripts/scheduling/analyze/run_analysis.py check PROJECT.json [--strict]
    python scripts/scheduling/analyze/run_analysis.py simulate PROJECT.json [--iterations N] [--seed S] [--mitigated]
    python scripts/scheduling/analyze/run_analysis.py trace PROJECT.json ACTIVITY [--direction both]
"""

import argparse
import sys
from pathlib import Path

from pydantic import ValidationError
from tqdm import tqdm

# Add project root to path
project_root = Path(__file__).parent.parent.parent.parent
sys.path.insert(0, str(project_root))

from src.config.settings import Settings
from src.utils.logger import configure_logging
from scripts.scheduling.analyze.analysis.checker import (
    Severity,
    check,
    summarize_findings,
)
from scripts.scheduling.analyze.analysis.critical_path import (
    analyze_critical_path,
    print_critical_path_report,
)
from scripts.scheduling.analyze.analysis.float_paths import (
    multiple_float_paths,
    print_float_paths,
)
from scripts.scheduling.analyze.analysis.monte_carlo import simulate
from scripts.scheduling.analyze.cpm.engine import schedule
from scripts.scheduling.analyze.cpm.errors import ScheduleAnalysisError
from scripts.scheduling.analyze.cpm.network import TRACE_DIRECTIONS, trace_chain
from scripts.scheduling.analyze.data_loader import (
    export_findings,
    export_float_paths,
    export_schedule,
    export_simulation,
    load_project,
)

logger = configure_logging('scripts.scheduling')


def run_schedule(project, args):
    """Schedule the project and print the critical path report."""
    result = schedule(
        project.activities, project.links, project.calendars, project.start,
        status_date=project.status_date, target_finish=project.target_finish,
        critical_tolerance=args.critical_tolerance,
    )
    report = analyze_critical_path(result, near_critical_days=args.near_critical)
    if not args.quiet:
        print_critical_path_report(report)
    if args.output:
        path = export_schedule(result, Path(args.output))
        logger.info(f"Wrote {path}")

    if args.float_paths:
        paths = multiple_float_paths(result, end_activity_id=args.end_activity,
                                     mode=args.float_mode, max_paths=args.float_paths)
        if not args.quiet:
            print_float_paths(paths)
        if args.output:
            path = export_float_paths(paths, Path(args.output))
            logger.info(f"Wrote {path}")
    return result


def cmd_schedule(project, args) -> int:
    run_schedule(project, args)
    return 0


def cmd_check(project, args) -> int:
    """Schedule, then run the quality checks."""
    result = schedule(
        project.activities, project.links, project.calendars, project.start,
        status_date=project.status_date, target_finish=project.target_finish,
        critical_tolerance=args.critical_tolerance,
    )
    findings = check(result, project.thresholds)

    if not args.quiet:
        print("=" * 80)
        print("SCHEDULE QUALITY CHECK")
        print("=" * 80)
        print(f"\nActivities: {len(result.activities)}   Findings: {len(findings)}\n")
        for kind, count in summarize_findings(findings).items():
            print(f"  {kind.value:30s}: {count:5d}")
        if findings:
            print("\n--- Findings (first 30) ---")
            for f in findings[:30]:
                print(f"  [{f.severity.value:7s}] {f.activity_id:15s} {f.kind.value:28s} {f.message}")
            if len(findings) > 30:
                print(f"  ... and {len(findings) - 30} more findings")
        print("\n" + "=" * 80)

    if args.output:
        path = export_findings(findings, Path(args.output))
        logger.info(f"Wrote {path}")

    errors = sum(1 for f in findings if f.severity == Severity.ERROR)
    if args.strict and errors:
        logger.warning(f"{errors} error findings")
        return 1
    return 0


def cmd_simulate(project, args) -> int:
    """Schedule, then run the Monte Carlo simulation."""
    result = schedule(
        project.activities, project.links, project.calendars, project.start,
        status_date=project.status_date, target_finish=project.target_finish,
        critical_tolerance=args.critical_tolerance,
    )
    if not project.distributions and not project.risk_events:
        logger.warning("No duration distributions or risks in project; all iterations will match the deterministic schedule")

    with tqdm(total=args.iterations, desc="Simulating", disable=args.quiet) as bar:
        sim = simulate(result, project.distributions, iterations=args.iterations,
                       seed=args.seed, workers=args.workers, progress=bar.update,
                       confidence_levels=Settings.MC_CONFIDENCE_LEVELS,
                       risks=project.risk_events, use_mitigated=args.mitigated)

    if not args.quiet:
        print("=" * 80)
        print("MONTE CARLO SCHEDULE RISK")
        print("=" * 80)
        print(f"\nIterations: {sim.iterations} (seed {sim.seed})")
        print(f"Deterministic: {sim.deterministic_duration} days, finish {sim.deterministic_finish}")
        print(f"Mean: {sim.mean_duration} days   Std dev: {sim.std_duration} days")
        print("\n--- Confidence Levels ---")
        for p in sim.confidence_levels:
            print(f"  P{p:<3d}: {sim.percentile(p):5d} days   {sim.finish_date_percentile(p)}")
        print("\n--- Most Critical Activities ---")
        ranked = sorted(sim.criticality.items(), key=lambda item: -item[1])
        for aid, crit in ranked[:10]:
            print(f"  {aid:20s} {crit:5.1f}%")
        print("\n--- Sensitivity (tornado) ---")
        for aid, rho in sim.tornado(10):
            print(f"  {aid:20s} {rho:+.3f}")
        if sim.risk_occurrence:
            label = "mitigated" if sim.use_mitigated else "unmitigated"
            print(f"\n--- Risk Events ({label}) ---")
            for rid, pct in sim.risk_occurrence.items():
                print(f"  {rid:20s} {pct:5.1f}% of iterations")
        print("\n" + "=" * 80)

    if args.output:
        for path in export_simulation(sim, Path(args.output)):
            logger.info(f"Wrote {path}")
    return 0


def cmd_trace(project, args) -> int:
    """Print the logic chain through one activity."""
    chain = trace_chain(project.activities, project.links, args.activity, args.direction)
    if not chain:
        logger.error(f"Unknown activity {args.activity!r}")
        return 2

    if not args.quiet:
        print(f"\nLOGIC CHAIN ({args.direction}) THROUGH {args.activity}: {len(chain)} activities")
        print("-" * 40)
    for activity in project.activities:
        if activity.activity_id in chain:
            print(f"  {activity.activity_id:15s} {activity.name}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='CPM scheduling, schedule quality checks and Monte Carlo risk analysis',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_analysis.py schedule project.json               # Critical path report
  python run_analysis.py check project.json -o out/          # Write findings.csv
  python run_analysis.py simulate project.json --seed 42     # Reproducible simulation
  python run_analysis.py trace project.json B --direction backward
        """
    )
    parser.add_argument('--log-level', default=None, help='Log level (default: LOG_LEVEL setting)')

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('project', type=str, help='Project JSON file')
    common.add_argument('--output', '-o', type=str, nargs='?', default=None,
                        const=str(Settings.OUTPUT_DIR),
                        help='Directory for CSV outputs (default with no value: OUTPUT_DIR setting)')
    common.add_argument('--critical-tolerance', type=int, default=Settings.CRITICAL_TOLERANCE_DAYS,
                        help='Float (days) at or below which an activity is critical')
    common.add_argument('--quiet', '-q', action='store_true', help='Minimal output')

    sub = parser.add_subparsers(dest='command', required=True)

    p_schedule = sub.add_parser('schedule', parents=[common], help='Run CPM and report the critical path')
    p_schedule.add_argument('--near-critical', type=int, default=Settings.NEAR_CRITICAL_DAYS,
                            help='Float (days) up to which an activity is near-critical')
    p_schedule.add_argument('--float-paths', type=int, default=0, metavar='N',
                            help='Trace up to N numbered float paths')
    p_schedule.add_argument('--end-activity', default=None,
                            help='Activity the first float path ends at (default: latest finish)')
    p_schedule.add_argument('--float-mode', choices=['total_float', 'free_float'], default='total_float',
                            help='Float used to rank float paths')
    p_schedule.set_defaults(func=cmd_schedule)

    p_check = sub.add_parser('check', parents=[common], help='Run the schedule quality checks')
    p_check.add_argument('--strict', action='store_true',
                         help='Exit with status 1 when error findings exist')
    p_check.set_defaults(func=cmd_check)

    p_sim = sub.add_parser('simulate', parents=[common], help='Run a Monte Carlo risk simulation')
    p_sim.add_argument('--iterations', '-n', type=int, default=Settings.MC_ITERATIONS,
                       help='Number of iterations')
    p_sim.add_argument('--seed', type=int, default=Settings.MC_SEED, help='Random seed')
    p_sim.add_argument('--workers', type=int, default=Settings.MC_WORKERS, help='Worker threads')
    p_sim.add_argument('--mitigated', action='store_true',
                       help='Use mitigated probabilities and impacts of mitigated risks')
    p_sim.set_defaults(func=cmd_simulate)

    p_trace = sub.add_parser('trace', parents=[common], help='List the logic chain through an activity')
    p_trace.add_argument('activity', help='Activity id')
    p_trace.add_argument('--direction', choices=TRACE_DIRECTIONS, default='both',
                         help='forward (successors), backward (predecessors) or both')
    p_trace.set_defaults(func=cmd_trace)

    return parser


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.log_level:
        configure_logging('scripts.scheduling', args.log_level)

    problems = Settings.validate_required_settings()
    if problems:
        for problem in problems:
            logger.error(f"Invalid setting: {problem}")
        return 2

    try:
        project = load_project(args.project)
        return args.func(project, args)
    except FileNotFoundError as e:
        logger.error(str(e))
    except ValidationError as e:
        logger.error(f"Invalid project file {args.project}:\n{e}")
    except ScheduleAnalysisError as e:
        logger.error(str(e))
    except ValueError as e:
        logger.error(str(e))
    return 2


if __name__ == "__main__":
    sys.exit(main())
