"""Print the judging leaderboard and judge progress for one hackathon.

Usage:
  python scripts/judging_report.py <hackathon_id>
"""
import os
import sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from hackhub import create_app
from hackhub.services.scoring import results


def main(argv=None):
    argv = argv if argv is not None else sys.argv[1:]
    if len(argv) != 1 or not argv[0].isdigit():
        print(__doc__)
        return 2
    hackathon_id = int(argv[0])
    app = create_app({"RQ_EAGER": True})
    with app.app_context():
        report = results(hackathon_id)
    print(f"rubrics: {report['rubric_count']}  teams evaluated: {report['total_teams_evaluated']}")
    print("\nleaderboard:")
    if not report["leaderboard"]:
        print("  (no complete evaluations)")
    for row in report["leaderboard"]:
        print(f"  {row['rank']:>3}. {row['team_name']:<30} {row['total_display']:>8}  by {row['judge_email']}")
    print("\njudges:")
    for j in report["judges"]:
        print(f"  {j['email']:<40} {j['evaluated_teams']}/{j['total_assigned']}")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
