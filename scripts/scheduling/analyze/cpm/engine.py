"""
CPM (Critical Path Method) Engine.

Implements forward and backward pass calculations with full calendar support.
"""

import logging
from copy import copy
from datetime import date, timedelta
from typing import Iterable, Mapping, Optional

from .calendar import WorkCalendar, resolve_default_calendar
from .errors import InvalidCalendar
from .models import Activity, ConstraintType, Dependency, ScheduledNetwork
from .network import ActivityNetwork

logger = logging.getLogger(__name__)

# Float (work days) at or below which an activity is critical; one calendar
# unit absorbs rounding between mixed calendars on the same path
DEFAULT_CRITICAL_TOLERANCE = 1


class CPMEngine:
    """
    CPM calculation engine.

    Performs forward pass (early dates), backward pass (late dates),
    float calculation, and critical path identification.

    The engine keeps the validated network and its topological order; each
    run works on fresh copies of the activities, so one engine can be run
    repeatedly (and from several threads) with different durations.
    """

    def __init__(self, network: ActivityNetwork, calendars: Mapping[str, WorkCalendar] = None,
                 critical_tolerance: int = DEFAULT_CRITICAL_TOLERANCE):
        """
        Initialize CPM engine.

        Args:
            network: Activity network to calculate
            calendars: Dict mapping calendar_id to WorkCalendar
            critical_tolerance: Float (work days) at or below which an activity is critical

        Raises:
            CircularDependency: If the network contains a cycle
            InvalidCalendar: If calendars are unusable or an activity references an unknown one
        """
        self.network = network
        self.calendars = dict(calendars or {})
        self.critical_tolerance = critical_tolerance

        default = resolve_default_calendar(self.calendars)
        if default is None:
            default = WorkCalendar.standard()
            self.calendars[default.calendar_id] = default
            logger.info("No calendars supplied, using standard Mon-Fri calendar")
        self.default_calendar_id = default.calendar_id

        for cal in self.calendars.values():
            issues = cal.validate()
            if issues:
                raise InvalidCalendar(cal.calendar_id, '; '.join(issues))
        for activity in network.activities:
            if activity.calendar_id and activity.calendar_id not in self.calendars:
                raise InvalidCalendar(
                    activity.calendar_id,
                    f"referenced by activity {activity.activity_id} but not defined",
                )

        self.order = network.topological_order()
        self._terminal = [i for i in self.order
                          if not network.activities[i].is_summary() and not network.successor_links(i)]

    def get_calendar(self, activity: Activity) -> WorkCalendar:
        """Get the calendar for an activity, falling back to the default."""
        return self.calendars[activity.calendar_id or self.default_calendar_id]

    @property
    def default_calendar(self) -> WorkCalendar:
        return self.calendars[self.default_calendar_id]

    def run(self, project_start: date, status_date: date = None, target_finish: date = None,
            durations: Mapping[str, int] = None,
            remaining: Mapping[str, int] = None) -> ScheduledNetwork:
        """
        Execute full CPM calculation.

        Args:
            project_start: Project start date
            status_date: Schedule status ("as of") date
            target_finish: Finish date seeding the backward pass (default: latest early finish)
            durations: Duration overrides by activity id (work days)
            remaining: Remaining duration overrides by activity id (work days)

        Returns:
            ScheduledNetwork with all calculated values
        """
        acts = [copy(a) for a in self.network.activities]
        for a in acts:
            a.reset_schedule()
            if durations and a.activity_id in durations:
                a.duration = durations[a.activity_id]
            if remaining and a.activity_id in remaining:
                a.remaining_duration = remaining[a.activity_id]

        self._forward_pass(acts, project_start, status_date)
        project_end = target_finish or self._project_end(acts, project_start)
        self._backward_pass(acts, project_end)
        self._calculate_float(acts)
        self._rollup_summaries(acts)

        order_ids = self.network.topological_sort()
        by_id = {a.activity_id: a for a in acts}
        critical_path = [aid for aid in order_ids
                         if by_id[aid].is_critical and not by_id[aid].is_summary()]
        project_finish = self._project_end(acts, project_start)

        return ScheduledNetwork(
            activities=by_id,
            order=order_ids,
            dependencies=list(self.network.dependencies),
            calendars=self.calendars,
            default_calendar_id=self.default_calendar_id,
            project_start=project_start,
            project_finish=project_finish,
            status_date=status_date,
            critical_path=critical_path,
            duration_days=self.default_calendar.work_days_between(project_start, project_finish),
            critical_tolerance=self.critical_tolerance,
            target_finish=target_finish,
        )

    # ------------------------------------------------------------------
    # Forward pass
    # ------------------------------------------------------------------

    def _forward_pass(self, acts: list[Activity], project_start: date,
                      status_date: Optional[date]) -> None:
        """
        Calculate early start and early finish in topological order.

        - Completed activities: actual dates, not repositioned
        - Started milestones: ES = EF = actual start
        - Manual activities: pinned start rolled to a work day, finish from duration
        - In progress: ES = actual start, remaining work from max(status date, logic)
        - Not started: ES = max(project start, status date, predecessor-driven dates)
        """
        for idx in self.order:
            a = acts[idx]
            if a.is_summary():
                continue
            calendar = self.get_calendar(a)
            driven = self._driven_early_start(acts, idx, calendar, project_start)

            if a.is_completed():
                if a.is_milestone():
                    a.early_start = a.early_finish = a.actual_finish or a.actual_start or driven
                    continue
                a.early_start = a.actual_start or driven
                if a.actual_finish:
                    # Finish dates are exclusive boundaries
                    a.early_finish = max(a.early_start, a.actual_finish + timedelta(days=1))
                else:
                    a.early_finish = self._finish(a, a.early_start, calendar)
                continue

            if a.is_milestone() and a.actual_start:
                # A started milestone has happened
                a.early_start = a.early_finish = a.actual_start
                continue

            if a.manual and a.manual_start:
                a.early_start = calendar.next_work_day(a.manual_start)
                a.early_finish = self._finish(a, a.early_start, calendar)
                continue

            if a.is_in_progress() and a.actual_start:
                a.early_start = a.actual_start
                resume = driven
                if status_date and status_date > resume:
                    resume = calendar.next_work_day(status_date)
                resume = calendar.next_work_day(max(resume, a.actual_start))
                a.early_finish = calendar.add_work_days(resume, a.get_effective_duration())
                continue

            early_start = driven
            if status_date and status_date > early_start:
                early_start = calendar.next_work_day(status_date)
            duration = a.get_effective_duration()
            early_start = self._apply_early_constraint(a, early_start, duration, calendar)

            a.early_start = early_start
            a.early_finish = calendar.add_work_days(early_start, duration) if duration else early_start

    def _finish(self, a: Activity, start: date, calendar: WorkCalendar) -> date:
        """Finish of the full duration from start (milestones finish where they start)."""
        if a.is_milestone() or not a.duration:
            return start
        return calendar.add_work_days(start, a.duration)

    def _driven_early_start(self, acts: list[Activity], idx: int, calendar: WorkCalendar,
                            project_start: date) -> date:
        """Latest start implied by the project start and all predecessor links."""
        early_start = calendar.next_work_day(project_start)
        a = acts[idx]
        duration = a.get_effective_duration()
        for link_idx in self.network.predecessor_links(idx):
            dep = self.network.dependencies[link_idx]
            pred = acts[self.network.index_of(dep.pred_id)]
            driven = driven_start(pred, dep, duration, calendar)
            if driven > early_start:
                early_start = driven
        return early_start

    def _apply_early_constraint(self, a: Activity, early_start: date, duration: int,
                                calendar: WorkCalendar) -> date:
        """Apply MSO/MFO overrides and SNET/FNET upward clamps to the raw early start."""
        ctype, cdate = a.constraint_type, a.constraint_date
        if cdate is None or ctype == ConstraintType.NONE:
            return early_start

        if ctype == ConstraintType.MSO:
            return calendar.next_work_day(cdate)
        if ctype == ConstraintType.MFO:
            return calendar.add_work_days(cdate, -duration) if duration else cdate
        if ctype == ConstraintType.SNET:
            return max(early_start, calendar.next_work_day(cdate))
        if ctype == ConstraintType.FNET:
            finish = calendar.add_work_days(early_start, duration) if duration else early_start
            if finish < cdate:
                return calendar.add_work_days(cdate, -duration) if duration else cdate
        return early_start

    # ------------------------------------------------------------------
    # Backward pass
    # ------------------------------------------------------------------

    def _project_end(self, acts: list[Activity], project_start: date) -> date:
        """Latest early finish across terminal activities."""
        finishes = [acts[i].early_finish for i in self._terminal if acts[i].early_finish]
        return max(finishes) if finishes else project_start

    def _backward_pass(self, acts: list[Activity], project_end: date) -> None:
        """
        Calculate late start and late finish in reverse topological order.

        Late start = late finish minus the activity's forward span (ES to EF),
        so in-progress and completed activities keep their recorded extent.
        """
        for idx in reversed(self.order):
            a = acts[idx]
            if a.is_summary():
                continue
            calendar = self.get_calendar(a)
            span = max(0, calendar.work_days_between(a.early_start, a.early_finish))

            late_finish = project_end
            for link_idx in self.network.successor_links(idx):
                dep = self.network.dependencies[link_idx]
                succ = acts[self.network.index_of(dep.succ_id)]
                driven = driven_late_finish(succ, dep, span, calendar)
                if driven < late_finish:
                    late_finish = driven

            late_finish = self._apply_late_constraint(a, late_finish, span, calendar)
            a.late_finish = late_finish
            a.late_start = calendar.add_work_days(late_finish, -span) if span else late_finish

    def _apply_late_constraint(self, a: Activity, late_finish: date, span: int,
                               calendar: WorkCalendar) -> date:
        """Apply SNLT/FNLT downward clamps and MSO/MFO pins to the late finish."""
        ctype, cdate = a.constraint_type, a.constraint_date
        if cdate is None or ctype == ConstraintType.NONE:
            return late_finish

        if ctype == ConstraintType.MSO:
            pinned = calendar.next_work_day(cdate)
            return calendar.add_work_days(pinned, span) if span else pinned
        if ctype == ConstraintType.MFO:
            return cdate
        if ctype == ConstraintType.FNLT:
            return min(late_finish, cdate)
        if ctype == ConstraintType.SNLT:
            # Latest work day on or before the constraint date
            latest = calendar.previous_work_day(cdate)
            late_start = calendar.add_work_days(late_finish, -span) if span else late_finish
            if late_start > latest:
                return calendar.add_work_days(latest, span) if span else latest
        return late_finish

    # ------------------------------------------------------------------
    # Float
    # ------------------------------------------------------------------

    def _calculate_float(self, acts: list[Activity]) -> None:
        """
        Calculate total float and free float for all non-summary activities.

        Total Float = work days from early start to late start (signed)
        Free Float = min relationship slack to successors, never negative
        """
        for idx in self.order:
            a = acts[idx]
            if a.is_summary():
                continue
            calendar = self.get_calendar(a)
            a.total_float = calendar.work_days_between(a.early_start, a.late_start)
            a.is_critical = a.total_float <= self.critical_tolerance

        for idx in self.order:
            a = acts[idx]
            if a.is_summary():
                continue
            successors = self.network.successor_links(idx)
            if not successors:
                a.free_float = max(0, a.total_float)
                continue
            slack = None
            for link_idx in successors:
                dep = self.network.dependencies[link_idx]
                succ = acts[self.network.index_of(dep.succ_id)]
                rf = relationship_float(a, succ, dep, self.get_calendar(succ))
                slack = rf if slack is None else min(slack, rf)
            a.free_float = max(0, slack)

    def _rollup_summaries(self, acts: list[Activity]) -> None:
        """
        Derive summary dates from the activities below them in outline order.

        Processed bottom-up so nested summaries resolve before their parents.
        """
        for i in range(len(acts) - 1, -1, -1):
            summary = acts[i]
            if not summary.is_summary():
                continue
            children = []
            for child in acts[i + 1:]:
                if child.outline_level <= summary.outline_level:
                    break
                if child.early_start is not None:
                    children.append(child)
            if not children:
                continue

            summary.early_start = min(c.early_start for c in children)
            summary.early_finish = max(c.early_finish for c in children)
            summary.late_start = min(c.late_start for c in children)
            summary.late_finish = max(c.late_finish for c in children)
            summary.total_float = min(c.total_float for c in children)
            summary.free_float = min(c.free_float for c in children)
            summary.is_critical = any(c.is_critical for c in children)
            calendar = self.get_calendar(summary)
            summary.duration = max(0, calendar.work_days_between(summary.early_start,
                                                                 summary.early_finish))


def driven_start(pred: Activity, dep: Dependency, duration: int,
                 calendar: WorkCalendar) -> date:
    """
    Early start of a successor implied by one predecessor link.

    Handles FS, SS, FF, SF relationship types with lag, in the successor's
    calendar. ``duration`` is the successor's remaining work.
    """
    anchor = pred.early_finish if dep.from_predecessor_finish() else pred.early_start
    target = calendar.add_work_days(anchor, dep.lag_days)
    if dep.drives_finish() and duration:
        # Finish-driven: successor finishes at target, so starts duration earlier
        return calendar.add_work_days(target, -duration)
    return target


def driven_late_finish(succ: Activity, dep: Dependency, span: int,
                       calendar: WorkCalendar) -> date:
    """
    Late finish of a predecessor implied by one successor link.

    This is the reverse of driven_start, in the predecessor's calendar.
    """
    anchor = succ.late_finish if dep.drives_finish() else succ.late_start
    target = calendar.add_work_days(anchor, -dep.lag_days)
    if dep.from_predecessor_finish() or not span:
        return target
    # Start-anchored on the predecessor: it may finish span after target
    return calendar.add_work_days(target, span)


def relationship_float(pred: Activity, succ: Activity, dep: Dependency,
                       calendar: WorkCalendar) -> int:
    """
    Slack in one link: work days between the implied and the scheduled successor date.

    Zero means the link is driving.
    """
    anchor = pred.early_finish if dep.from_predecessor_finish() else pred.early_start
    implied = calendar.add_work_days(anchor, dep.lag_days)
    actual = succ.early_finish if dep.drives_finish() else succ.early_start
    return calendar.work_days_between(implied, actual)


def schedule(activities: Iterable[Activity], links: Iterable[Dependency],
             calendars: Mapping[str, WorkCalendar], project_start: date,
             status_date: date = None, target_finish: date = None,
             critical_tolerance: int = DEFAULT_CRITICAL_TOLERANCE) -> ScheduledNetwork:
    """
    Schedule an activity network.

    Args:
        activities: Activities to schedule (not modified)
        links: Predecessor links between activities
        calendars: Dict mapping calendar_id to WorkCalendar
        project_start: Project start date
        status_date: Schedule status ("as of") date
        target_finish: Optional finish date seeding the backward pass
        critical_tolerance: Float (work days) at or below which an activity is critical

    Returns:
        ScheduledNetwork with early/late dates, float and critical flags

    Raises:
        CircularDependency, InvalidCalendar, DanglingPredecessor, InvalidActivity
    """
    network = ActivityNetwork.build(activities, links)
    engine = CPMEngine(network, calendars, critical_tolerance=critical_tolerance)
    result = engine.run(project_start, status_date=status_date, target_finish=target_finish)
    logger.debug(f"Scheduled {len(network)} activities: {result.project_start} -> "
                 f"{result.project_finish}, {len(result.critical_path)} critical")
    return result
