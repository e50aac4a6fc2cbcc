"""Append-only version log 테스트."""
import pytest

from src.quality.version_log import Degraded, Healthy, VersionLog


@pytest.fixture
def log(tmp_path):
    return VersionLog(tmp_path / 'reports' / 'versions.jsonl')


class TestVersionLog:

    def test_empty(self, log):
        assert log.entries() == []
        assert log.tail() is None
        assert log.last_healthy() is None

    def test_append_and_read(self, log):
        log.record_healthy('2025.03.01')
        log.record_degraded('invariants failed', '2025.03.01')

        entries = log.entries()
        assert isinstance(entries[0], Healthy)
        assert isinstance(entries[1], Degraded)
        assert entries[1].pinned == '2025.03.01'
        assert log.tail() == entries[1]

    def test_last_healthy_skips_degraded(self, log):
        log.record_healthy('2025.03.01')
        log.record_healthy('2025.04.01')
        log.record_degraded('large coefficient change', '2025.04.01')
        assert log.last_healthy().version == '2025.04.01'

    def test_append_only(self, log):
        log.record_healthy('a')
        first_line = log.path.read_text(encoding='utf-8').splitlines()[0]
        log.record_healthy('b')
        assert log.path.read_text(encoding='utf-8').splitlines()[0] == first_line

    def test_degraded_without_pin(self, log):
        log.record_degraded('no data', None)
        assert log.tail().pinned is None

    def test_malformed_lines_skipped(self, log):
        log.record_healthy('2025.03.01')
        with open(log.path, 'a', encoding='utf-8') as f:
            f.write('{"kind": "healthy", "vers\n')
            f.write('{"kind": "mystery"}\n')
        assert [e.version for e in log.entries()] == ['2025.03.01']

    def test_truncated_multibyte_line_skipped(self, log):
        log.record_healthy('2025.03.01')
        partial = '{"kind": "degraded", "reason": "巨人'.encode('utf-8')[:-1]
        with open(log.path, 'ab') as f:
            f.write(partial + b'\n')
        assert log.last_healthy().version == '2025.03.01'
