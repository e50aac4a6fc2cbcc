"""Fail-Open Quality Gate — quality gate 실패 시에도 서비스 중단 없이 pinned 버전 유지.

States:
    healthy  — 마지막 batch run 통과, 새 constants version이 live
    degraded — 마지막 run 실패, pinned (last good) version 유지

Pinned version 우선순위: CONSTANTS_PIN env → version log의 마지막 Healthy → None.
None은 유일한 fatal 결과 (성공한 run이 한 번도 없음).

Writer는 단일 batch job으로 직렬화되어야 한다 (locking 없음, last-write-wins).
"""
import json
import logging
import os
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from src.etl.constants_store import write_json_atomic
from src.quality.invariants import TestResults
from src.quality.version_log import Degraded, VersionLog, utc_now_iso

logger = logging.getLogger(__name__)

PIN_ENV_VAR = 'CONSTANTS_PIN'
RECENT_FAILURE_WINDOW = timedelta(hours=24)

ROOT_DIR = Path(__file__).parent.parent.parent


@dataclass(frozen=True)
class ConstantsInfo:
    baseline_version: str
    last_update: str


@dataclass(frozen=True)
class QualityVersion:
    version: str
    timestamp: str
    testResults: dict
    constants: dict


def _tests_dict(test_results) -> dict:
    if isinstance(test_results, TestResults):
        return test_results.to_dict()
    return dict(test_results)


def _parse_timestamp(value: str) -> datetime:
    ts = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class FailOpenController:
    """Quality gate 상태 관리 (.reports/, public/status/quality.json)."""

    def __init__(
        self,
        reports_dir: Path | str | None = None,
        public_status_path: Path | str | None = None,
    ):
        self.reports_dir = Path(reports_dir) if reports_dir else ROOT_DIR / '.reports'
        self.public_status_path = (
            Path(public_status_path) if public_status_path
            else ROOT_DIR / 'public' / 'status' / 'quality.json'
        )
        self.quality_status_path = self.reports_dir / 'quality_status.json'
        self.version_log = VersionLog(self.reports_dir / 'constants_versions.jsonl')

    # ─── Pinned version ───

    def get_pinned_version(self) -> Optional[str]:
        env_pin = os.environ.get(PIN_ENV_VAR)
        if env_pin:
            logger.warning(f"Using pinned constants version from environment: {env_pin}")
            return env_pin

        try:
            last = self.version_log.last_healthy()
        except OSError as e:
            logger.warning(f"Failed to read version log: {e}")
            return None
        if last:
            logger.info(f"  Last good version available: {last.version}")
            return last.version
        return None

    # ─── Transitions ───

    def record_successful_execution(
        self,
        version: str,
        test_results: TestResults | dict,
        constants: ConstantsInfo,
    ) -> QualityVersion:
        tests = _tests_dict(test_results)
        now = utc_now_iso()

        self.reports_dir.mkdir(parents=True, exist_ok=True)
        self.version_log.record_healthy(version)

        status = QualityVersion(
            version=version,
            timestamp=now,
            testResults=tests,
            constants=asdict(constants),
        )
        write_json_atomic(self.quality_status_path, asdict(status))
        write_json_atomic(self.public_status_path, {
            'status': 'healthy',
            'last_success': now,
            'version': version,
            'tests': tests,
            'pinned': bool(os.environ.get(PIN_ENV_VAR)),
        })

        logger.info(f"Quality gate success recorded: {version}")
        return status

    def handle_quality_failure(self, reason: str, test_results: TestResults | dict) -> Optional[str]:
        """Degraded 상태 기록 후 계속 서빙할 pinned version 반환 (없으면 None = fatal)."""
        pinned = self.get_pinned_version()
        tests = _tests_dict(test_results)

        try:
            self.version_log.record_degraded(reason, pinned)
            write_json_atomic(self.public_status_path, {
                'status': 'degraded',
                'last_failure': utc_now_iso(),
                'failure_reason': reason,
                'pinned_version': pinned,
                'tests': tests,
                'pinned': True,
            })
        except OSError as e:
            logger.error(f"Failed to record degraded status: {e}")

        if pinned:
            logger.warning(f"Quality gate failed: {reason}")
            logger.warning(f"Failing open with pinned version: {pinned}")
        else:
            logger.error("Quality gate failed and no fallback version available!")
            logger.error(f"Failure reason: {reason}")
        return pinned

    # ─── Status ───

    def _read_public_status(self) -> Optional[dict]:
        if not self.public_status_path.exists():
            return None
        try:
            with open(self.public_status_path, encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read quality status: {e}")
            return None

    def has_recent_failure(self, now: Optional[datetime] = None) -> bool:
        status = self._read_public_status()
        if not status or status.get('status') != 'degraded':
            return False
        try:
            last_failure = _parse_timestamp(status['last_failure'])
        except (KeyError, ValueError):
            return False
        now = now or datetime.now(timezone.utc)
        return now - last_failure < RECENT_FAILURE_WINDOW

    def is_fail_open_mode(self, now: Optional[datetime] = None) -> bool:
        return bool(os.environ.get(PIN_ENV_VAR)) or self.has_recent_failure(now)

    def get_quality_status(self) -> dict:
        status = self._read_public_status()
        if status is not None:
            return status
        return {
            'status': 'unknown',
            'message': 'Quality status not available',
            'tests': None,
        }

    def last_degraded(self) -> Optional[Degraded]:
        for entry in reversed(self.version_log.entries()):
            if isinstance(entry, Degraded):
                return entry
        return None

    def generate_quality_report(self, test_results: TestResults | dict, constants: ConstantsInfo) -> str:
        """CI용 markdown 요약."""
        tests = _tests_dict(test_results)
        pinned = self.is_fail_open_mode()
        pinned_version = self.get_pinned_version()
        total = tests.get('total', 0)
        success_rate = tests.get('passed', 0) / total * 100 if total else 0.0

        lines = [
            "## Quality Gate Report",
            "",
            f"**Generated**: {utc_now_iso()}  ",
            f"**Status**: {'FAIL-OPEN (Pinned)' if pinned else 'HEALTHY'}  ",
            f"**Version**: {pinned_version or constants.baseline_version}",
            "",
            "### Test Results",
            f"- **Total Tests**: {total}",
            f"- **Passed**: {tests.get('passed', 0)}",
            f"- **Failed**: {tests.get('failed', 0)}",
            f"- **Success Rate**: {success_rate:.1f}%",
            f"- **Coverage**: {float(tests.get('coverage_pct', 0.0)):.1f}%",
            "",
            "### Configuration",
            f"- **Constants Version**: {constants.baseline_version}",
            f"- **Last Update**: {constants.last_update}",
            f"- **Pinned Mode**: {'Yes' if pinned else 'No'}",
        ]
        if pinned:
            lines += [
                "",
                "### Fail-Open Mode Active",
                f"Service is running with pinned version `{pinned_version}` due to quality gate issues.",
                "Check batch logs and resolve underlying issues to restore normal operation.",
            ]
        return "\n".join(lines)
