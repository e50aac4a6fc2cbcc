"""League Constants Update CLI.

Usage:
    python -m scripts.update_constants --year 2025 --league central
    python -m scripts.update_constants --year 2025 --league central --dry-run
    python -m scripts.update_constants --year 2025 --league central --report
"""

import argparse
import json
import logging
import os
import sys

from dotenv import load_dotenv

# Setup
logging.basicConfig(level=logging.INFO, format='%(asctime)s %(message)s', datefmt='%H:%M:%S')
load_dotenv(os.path.join(os.path.dirname(__file__), '..', '.env'))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from src.pipeline.constants_update import run_constants_update
from src.quality.failopen import ConstantsInfo, FailOpenController


def parse_args():
    parser = argparse.ArgumentParser(description='League Constants Update')
    parser.add_argument('--year', type=int, required=True, help='Season year')
    parser.add_argument('--league', type=str, required=True, help='League key (e.g. central, pacific)')
    parser.add_argument('--dry-run', action='store_true', help='Compute only, do not publish')
    parser.add_argument('--report', action='store_true', help='Print markdown quality report')
    return parser.parse_args()


def main():
    args = parse_args()
    result = run_constants_update(args.year, args.league, dry_run=args.dry_run)

    print("\n" + "=" * 60)
    print(f"Result: {result['status']}")
    if result['status'] in ('success', 'dry_run') and result.get('version'):
        print(f"  Version: {result['version']}")
        print(f"  Coefficients: {result['summary']['total_coefficients']} "
              f"({result['summary']['changed_coefficients']} changed, "
              f"{result['summary']['guarded_coefficients']} guarded)")
    elif 'reason' in result:
        print(f"  Reason: {result['reason']}")
        print(f"  Pinned version: {result.get('pinned_version')}")
    tests = result['tests']
    print(f"  Invariants: {tests['passed']}/{tests['total']} passed (coverage {tests['coverage_pct']}%)")
    print("=" * 60)

    if args.dry_run and result.get('constants'):
        print(json.dumps(result['constants'], indent=2, ensure_ascii=False))

    if args.report:
        controller = FailOpenController()
        print(controller.generate_quality_report(
            tests,
            ConstantsInfo(baseline_version=result.get('version') or 'unknown', last_update=str(args.year)),
        ))

    if result['status'] == 'fatal':
        sys.exit(1)


if __name__ == '__main__':
    main()
