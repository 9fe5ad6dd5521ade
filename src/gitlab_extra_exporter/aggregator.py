"""Fetch pass that turns GitLab API data into one metrics snapshot.

One call to :meth:`Aggregator.run` performs, in order:
- list every project and every merge request updated in the trailing window,
- partition merge requests into opened, merged and closed,
- enrich the three partitions concurrently with per-item detail fetches,
- fetch approvals and branch diff sizes for the opened partition.

Any failure aborts the pass and no snapshot is produced.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .errors import PartialCycleError
from .gitlab_client import GitLabClient, count_diff_lines
from .models import (
    CLOSED,
    MERGED,
    OPENED,
    Approval,
    ChangeSize,
    MergeOutcome,
    MergeRequest,
    Snapshot,
)

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = timedelta(days=7)


def partition_merge_requests(
    merge_requests: Sequence[MergeRequest],
) -> Tuple[List[MergeRequest], List[MergeRequest], List[MergeRequest]]:
    """Split merge requests by state into ``(opened, merged, closed)``.

    Merge requests in any other state (for example ``locked``) are dropped.
    """
    opened: List[MergeRequest] = []
    merged: List[MergeRequest] = []
    closed: List[MergeRequest] = []

    for merge_request in merge_requests:
        if merge_request.state == OPENED:
            opened.append(merge_request)
        elif merge_request.state == MERGED:
            merged.append(merge_request)
        elif merge_request.state == CLOSED:
            closed.append(merge_request)

    return opened, merged, closed


class Aggregator:
    """Builds a :class:`Snapshot` from the GitLab API."""

    def __init__(
        self,
        client: GitLabClient,
        target_branch: str = "master",
        window: timedelta = DEFAULT_WINDOW,
        include_archived: bool = False,
        collect_changes: bool = True,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._client = client
        self._target_branch = target_branch
        self._window = window
        self._include_archived = include_archived
        self._collect_changes = collect_changes
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def run(self) -> Snapshot:
        """Run one full fetch pass.

        Raises:
            UpstreamError: If listing projects or merge requests, or fetching
                approvals or branch comparisons fails.
            PartialCycleError: If any of the concurrent detail fetches fails.
        """
        now = self._clock()

        projects = self._client.list_projects(archived=self._include_archived)
        merge_requests = self._client.list_merge_requests(
            updated_after=now - self._window,
            target_branch=self._target_branch,
            scope="all",
            exclude_wip=True,
        )

        opened, merged, closed = self.fetch_details(merge_requests)

        approvals = self.fetch_approvals(opened)
        changes = self.fetch_changes(opened) if self._collect_changes else []

        return Snapshot(
            projects=tuple(projects),
            merge_requests=tuple(merge_requests),
            opened=tuple(opened),
            merged=tuple(merged),
            closed=tuple(closed),
            approvals=tuple(approvals),
            changes=tuple(changes),
            fetched_at=now,
        )

    def fetch_details(
        self,
        merge_requests: Sequence[MergeRequest],
    ) -> Tuple[List[MergeRequest], List[MergeOutcome], List[MergeOutcome]]:
        """Enrich each state partition concurrently.

        All three tasks are waited for. When some fail, the failure that
        completed first is raised as ``PartialCycleError`` and every result is
        discarded.
        """
        opened, merged, closed = partition_merge_requests(merge_requests)

        with ThreadPoolExecutor(max_workers=3, thread_name_prefix="mr-details") as executor:
            futures: Dict[Future, str] = {
                executor.submit(self._fetch_opened, opened): OPENED,
                executor.submit(self._fetch_outcomes, merged, MERGED): MERGED,
                executor.submit(self._fetch_outcomes, closed, CLOSED): CLOSED,
            }

            results: Dict[str, list] = {}
            first_error: Optional[BaseException] = None
            failed_partition: Optional[str] = None

            for future in as_completed(futures):
                partition = futures[future]
                error = future.exception()
                if error is None:
                    results[partition] = future.result()
                elif first_error is None:
                    first_error = error
                    failed_partition = partition

        if first_error is not None:
            logger.warning(
                "Fetching details of %s merge requests failed: %s",
                failed_partition,
                first_error,
                extra={"partition": failed_partition, "error": str(first_error)},
            )
            raise PartialCycleError(
                f"Fetching details of {failed_partition} merge requests failed: {first_error}",
                partition=failed_partition,
            ) from first_error

        return results[OPENED], results[MERGED], results[CLOSED]

    def _fetch_opened(self, merge_requests: Sequence[MergeRequest]) -> List[MergeRequest]:
        result: List[MergeRequest] = []
        for merge_request in merge_requests:
            detail = self._client.get_merge_request(merge_request.project_id, merge_request.iid)
            result.append(detail.merge_request)

        logger.info("Fetched %d open merge requests", len(result), extra={"count": len(result)})
        return result

    def _fetch_outcomes(self, merge_requests: Sequence[MergeRequest], state: str) -> List[MergeOutcome]:
        result: List[MergeOutcome] = []
        skipped = 0
        for merge_request in merge_requests:
            detail = self._client.get_merge_request(merge_request.project_id, merge_request.iid)
            if detail.merge_error:
                skipped += 1
                continue

            outcome_at = detail.merged_at if state == MERGED else detail.closed_at
            result.append(MergeOutcome(merge_request=detail.merge_request, outcome_at=outcome_at))

        logger.info(
            "Fetched %d %s merge requests, skipped %d with a merge error",
            len(result),
            state,
            skipped,
            extra={"count": len(result), "skipped_merge_error": skipped},
        )
        return result

    def fetch_approvals(self, merge_requests: Sequence[MergeRequest]) -> List[Approval]:
        """Fetch how many approvals each merge request still needs, one at a time."""
        approvals: List[Approval] = []
        for merge_request in merge_requests:
            approvals_left = self._client.get_approval_configuration(
                merge_request.project_id,
                merge_request.iid,
            )
            approvals.append(
                Approval(
                    merge_request_id=merge_request.id,
                    project_id=merge_request.project_id,
                    approvals_left=approvals_left,
                )
            )
        return approvals

    def fetch_changes(self, merge_requests: Sequence[MergeRequest]) -> List[ChangeSize]:
        """Diff each merge request's source branch against the target branch."""
        changes: List[ChangeSize] = []
        for merge_request in merge_requests:
            diffs = self._client.compare_branches(
                merge_request.project_id,
                self._target_branch,
                merge_request.source_branch,
            )
            additions, deletions = count_diff_lines(diffs)
            changes.append(
                ChangeSize(
                    merge_request_id=merge_request.id,
                    project_id=merge_request.project_id,
                    additions=additions,
                    deletions=deletions,
                )
            )
        return changes
