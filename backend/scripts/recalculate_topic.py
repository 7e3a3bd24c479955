"""Re-run the totals cascade and topic reschedule for one or more topics.

Use after a cascade stopped part-way: every step recomputes from the current
store contents, so running it again brings courses, learning paths and
enrollments back in line.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional

from training_scheduler.errors import SchedulerError
from training_scheduler.logging_config import configure_logging
from training_scheduler.schedule_service import ScheduleService
from training_scheduler.store import ScheduleStore, get_schedule_store

logger = logging.getLogger("recalculate_topic")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Recalculate schedules affected by topic edits.")
    parser.add_argument("topic_ids", nargs="+", help="Topic identifiers to recalculate.")
    parser.add_argument("--updated-by", default=None, help="Actor id recorded on writes and audit entries.")
    parser.add_argument(
        "--skip-reschedule",
        action="store_true",
        help="Only cascade totals; leave topic start/end dates untouched.",
    )
    return parser.parse_args(argv)


def recalculate(
    topic_ids: list[str],
    *,
    updated_by: Optional[str] = None,
    reschedule: bool = True,
    store: Optional[ScheduleStore] = None,
) -> list[dict]:
    service = ScheduleService(store or get_schedule_store())
    results: list[dict] = []
    for topic_id in topic_ids:
        if reschedule:
            report, outcomes = service.refresh_topic(topic_id, updated_by)
            scheduled = [outcome.course_id for outcome in outcomes if outcome.scheduled]
        else:
            report = service.recalculate_totals(topic_id, updated_by)
            scheduled = []
        results.append({**report.model_dump(), "rescheduled_course_ids": scheduled})
        logger.info(
            "Topic %s: %d course(s), %d learning path(s), %d enrollment(s) updated",
            topic_id,
            len(report.course_ids),
            len(report.learning_path_ids),
            len(report.enrollment_ids),
        )
    return results


def main(argv: Optional[list[str]] = None) -> int:
    configure_logging()
    args = parse_args(argv)
    try:
        results = recalculate(
            args.topic_ids,
            updated_by=args.updated_by,
            reschedule=not args.skip_reschedule,
        )
    except SchedulerError as exc:
        logger.error("Recalculation failed: %s", exc)
        print(json.dumps(exc.to_dict()))
        return 1
    print(json.dumps(results))
    return 0


if __name__ == "__main__":
    sys.exit(main())
