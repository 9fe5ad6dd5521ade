"""Prometheus collector that renders the cached snapshot as gauges.

Scrapes never talk to GitLab: each scrape reads the cache once and formats
whatever snapshot was last published.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional

from prometheus_client.core import GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from .cache import SnapshotCache
from .models import MergeOutcome, MergeRequest, Snapshot, changed_files

logger = logging.getLogger(__name__)

MR_LABELS = ["merge_request_id", "project_id"]


def _timestamp(value: Optional[datetime]) -> float:
    if value is None:
        return 0.0
    return float(int(value.timestamp()))


class MergeRequestCollector(Collector):
    """Exposes ``gitlab_*`` metrics for the snapshot held in a :class:`SnapshotCache`."""

    def __init__(self, cache: SnapshotCache, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._cache = cache
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def describe(self) -> List[Metric]:
        return list(self._families())

    def collect(self) -> Iterator[Metric]:
        entry = self._cache.read()
        logger.debug("Running scrape", extra={"up": entry.up})

        families = self._families()
        families[0].add_metric([], 1.0 if entry.up else 0.0)
        self._fill(families, entry.snapshot)
        return iter(families)

    def _families(self) -> List[GaugeMetricFamily]:
        return [
            GaugeMetricFamily("gitlab_extra_up", "Whether Gitlab scrap was successful"),
            GaugeMetricFamily(
                "gitlab_project_info",
                "General information about projects",
                labels=["project_id", "project_name"],
            ),
            GaugeMetricFamily(
                "gitlab_merge_request_info",
                "General information about merge requests",
                labels=[
                    "merge_request_id",
                    "target_branch",
                    "state",
                    "merge_request_title",
                    "project_id",
                    "merge_request_internal_id",
                ],
            ),
            GaugeMetricFamily(
                "gitlab_merge_request_created",
                "Date of creating the merge request",
                labels=MR_LABELS,
            ),
            GaugeMetricFamily(
                "gitlab_merge_request_updated",
                "Time since last update on the merge requests that are open",
                labels=MR_LABELS,
            ),
            GaugeMetricFamily(
                "gitlab_merge_request_changed_files",
                "Amount of changed files within the merge request",
                labels=MR_LABELS,
            ),
            GaugeMetricFamily(
                "gitlab_merge_request_closed",
                "Date of closing the merge request",
                labels=MR_LABELS,
            ),
            GaugeMetricFamily(
                "gitlab_merge_request_merged",
                "Date of merging the merge request",
                labels=MR_LABELS,
            ),
            GaugeMetricFamily(
                "gitlab_merge_request_assignees",
                "Amount of assignees assigned to the MR",
                labels=MR_LABELS,
            ),
            GaugeMetricFamily(
                "gitlab_merge_request_duration",
                "Duration between creating and closing or merging a merge request",
                labels=MR_LABELS,
            ),
            GaugeMetricFamily(
                "gitlab_merge_request_approvals",
                "Amount of approvals left for approving MR",
                labels=MR_LABELS,
            ),
            GaugeMetricFamily(
                "gitlab_merge_request_changes",
                "Amount of additions and deletions within the merge request",
                labels=["merge_request_id", "project_id", "lines"],
            ),
        ]

    def _fill(self, families: List[GaugeMetricFamily], snapshot: Snapshot) -> None:
        (
            _up,
            project_info,
            merge_request_info,
            created,
            updated,
            changed,
            closed,
            merged,
            assignees,
            duration,
            approvals,
            changes,
        ) = families
        now = self._clock()

        for project in snapshot.projects:
            project_info.add_metric([project.id, project.path_with_namespace], 1.0)

        for mr in snapshot.merge_requests:
            merge_request_info.add_metric(
                [mr.id, mr.target_branch, mr.state, mr.title, mr.project_id, str(mr.iid)],
                1.0,
            )

        def add_common(mr: MergeRequest) -> None:
            labels = [mr.id, mr.project_id]
            created.add_metric(labels, _timestamp(mr.created_at))
            if mr.updated_at is not None:
                updated.add_metric(labels, float(math.floor((now - mr.updated_at).total_seconds() + 0.5)))
            else:
                updated.add_metric(labels, 0.0)
            changed.add_metric(labels, changed_files(mr.changes_count))
            assignees.add_metric(labels, float(mr.assignees))

        def add_outcome(outcome: MergeOutcome, family: GaugeMetricFamily) -> None:
            mr = outcome.merge_request
            add_common(mr)
            family.add_metric([mr.id, mr.project_id], _timestamp(outcome.outcome_at))
            duration.add_metric([mr.id, mr.project_id], outcome.duration_seconds)

        for mr in snapshot.opened:
            add_common(mr)
        for outcome in snapshot.closed:
            add_outcome(outcome, closed)
        for outcome in snapshot.merged:
            add_outcome(outcome, merged)

        for approval in snapshot.approvals:
            approvals.add_metric(
                [approval.merge_request_id, approval.project_id],
                float(approval.approvals_left),
            )

        for change in snapshot.changes:
            changes.add_metric([change.merge_request_id, change.project_id, "added"], float(change.additions))
            changes.add_metric([change.merge_request_id, change.project_id, "deleted"], float(change.deletions))
