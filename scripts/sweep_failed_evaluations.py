"""Re-queue FAILED video assessments that are still under the retry ceiling.

Usage:
  python scripts/sweep_failed_evaluations.py

Meant to run from cron. Jobs at the ceiling are left for an operator's
force retry.
"""

import os
import sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from video_assessment import create_app
from video_assessment.jobs.evaluate import sweep_failed_evaluations


def main():
    app = create_app()
    with app.app_context():
        requeued = sweep_failed_evaluations()
        app.logger.info('Sweep re-queued %d video assessment(s)', len(requeued))
        for job_id in requeued:
            print(job_id)


if __name__ == '__main__':
    main()
