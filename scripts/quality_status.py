"""Quality Gate Status CLI.

Usage:
    python -m scripts.quality_status
    python -m scripts.quality_status --config   # invariant 설정 요약 포함
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

from src.quality.failopen import FailOpenController
from src.quality.invariants_config import InvariantsConfig


def parse_args():
    parser = argparse.ArgumentParser(description='Quality Gate Status')
    parser.add_argument('--config', action='store_true', help='Print invariant configuration summary')
    return parser.parse_args()


def main():
    args = parse_args()
    controller = FailOpenController()

    status = controller.get_quality_status()
    print(json.dumps(status, indent=2, ensure_ascii=False))

    print("\n" + "=" * 60)
    print(f"Fail-open mode: {'yes' if controller.is_fail_open_mode() else 'no'}")
    print(f"Pinned version: {controller.get_pinned_version()}")
    degraded = controller.last_degraded()
    if degraded:
        print(f"Last failure: {degraded.timestamp} ({degraded.reason})")
    print("=" * 60)

    if args.config:
        print(InvariantsConfig().get_config_summary())


if __name__ == '__main__':
    main()
