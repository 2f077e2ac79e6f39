"""Tests for the health checker."""

from collections import namedtuple
from unittest.mock import Mock, patch

import pytest
import redis

from statement_ledger.monitoring.health_checker import HealthChecker

DiskUsage = namedtuple("DiskUsage", ["total", "used", "free", "percent"])


@pytest.fixture
def checker(sample_settings):
    return HealthChecker(sample_settings)


@pytest.fixture
def healthy_toolchain():
    """Patch every external collaborator into a healthy state."""
    redis_client = Mock()
    redis_client.info.return_value = {"redis_version": "7.2.0", "connected_clients": 2, "used_memory_human": "1M"}
    with patch('statement_ledger.monitoring.health_checker.pytesseract') as mock_tesseract, \
            patch('statement_ledger.monitoring.health_checker.shutil.which', side_effect=lambda name, path=None: f"/usr/bin/{name}"), \
            patch('statement_ledger.monitoring.health_checker.psutil.disk_usage', return_value=DiskUsage(100 * 1024**3, 40 * 1024**3, 60 * 1024**3, 40.0)), \
            patch('statement_ledger.monitoring.health_checker.redis.Redis.from_url', return_value=redis_client):
        mock_tesseract.get_tesseract_version.return_value = "5.3.0"
        mock_tesseract.get_languages.return_value = ["eng", "osd"]
        yield mock_tesseract


class TestHealthChecker:
    """Test cases for HealthChecker."""

    def test_all_healthy(self, checker, healthy_toolchain):
        """Every component healthy gives an overall healthy status."""
        health = checker.run_health_check()

        assert health['status'] == 'healthy'
        assert health['alerts'] == []
        assert set(health['components']) == {
            'tesseract', 'poppler', 'dependencies', 'disk_space', 'storage', 'redis', 'remote_service'
        }
        assert checker.is_healthy()

    def test_missing_language_is_degraded(self, checker, healthy_toolchain):
        """Test tesseract without the configured language."""
        healthy_toolchain.get_languages.return_value = ["osd"]

        result = checker.get_component_health('tesseract')

        assert result['status'] == 'degraded'
        assert "'eng' is not installed" in result['message']

    def test_missing_tesseract(self, checker, healthy_toolchain):
        """Test tesseract missing from PATH."""
        healthy_toolchain.TesseractNotFoundError = FileNotFoundError
        healthy_toolchain.TesseractError = RuntimeError
        healthy_toolchain.get_tesseract_version.side_effect = FileNotFoundError("tesseract")

        result = checker.get_component_health('tesseract')

        assert result['status'] == 'unhealthy'

    def test_missing_poppler(self, checker):
        """Test missing poppler binaries."""
        with patch('statement_ledger.monitoring.health_checker.shutil.which', return_value=None):
            result = checker.get_component_health('poppler')

        assert result['status'] == 'unhealthy'
        assert result['message'] == "Missing poppler tools: pdftoppm, pdfinfo"

    def test_poppler_path_is_searched(self, checker, sample_settings):
        """A configured poppler directory is used as the search path."""
        sample_settings.poppler_path = "/opt/poppler/bin"

        with patch('statement_ledger.monitoring.health_checker.shutil.which', return_value="/opt/poppler/bin/pdftoppm") as mock_which:
            checker.get_component_health('poppler')

        mock_which.assert_any_call('pdftoppm', path="/opt/poppler/bin")

    @pytest.mark.parametrize("percent, status", [(50.0, 'healthy'), (85.0, 'degraded'), (95.0, 'unhealthy')])
    def test_disk_space(self, checker, percent, status):
        """Test disk usage thresholds."""
        usage = DiskUsage(100 * 1024**3, int(percent) * 1024**3, int(100 - percent) * 1024**3, percent)

        with patch('statement_ledger.monitoring.health_checker.psutil.disk_usage', return_value=usage):
            assert checker.get_component_health('disk_space')['status'] == status

    def test_storage_paths(self, checker, sample_settings):
        """Missing storage directories are reported."""
        assert checker.get_component_health('storage')['status'] == 'healthy'

        sample_settings.previews_dir = sample_settings.previews_dir + "-missing"
        result = checker.get_component_health('storage')

        assert result['status'] == 'unhealthy'
        assert "does not exist" in result['message']

    def test_redis_unreachable(self, checker):
        """Test a broker that refuses connections."""
        client = Mock()
        client.ping.side_effect = redis.ConnectionError("refused")

        with patch('statement_ledger.monitoring.health_checker.redis.Redis.from_url', return_value=client):
            result = checker.get_component_health('redis')

        assert result == {'status': 'unhealthy', 'message': 'Cannot connect to Redis', 'timestamp': result['timestamp']}

    def test_remote_service_info(self, checker, sample_settings):
        """Remote delegation is informational only."""
        sample_settings.conversion_service_url = "https://convert.example.com"

        result = checker.get_component_health('remote_service')

        assert result['status'] == 'healthy'
        assert result['info']['enabled'] is True
        assert result['info']['authenticated'] is False

    def test_unknown_component(self, checker):
        """Test unknown component names."""
        assert checker.get_component_health('gpu')['status'] == 'error'

    def test_failing_check_is_contained(self, checker):
        """A crashing check is reported instead of raised."""
        with patch('statement_ledger.monitoring.health_checker.psutil.disk_usage', side_effect=PermissionError("denied")):
            result = checker.get_component_health('disk_space')

        assert result['status'] == 'error'
        assert 'denied' in result['message']

    def test_majority_failing_is_unhealthy(self, checker, healthy_toolchain):
        """More than half of the components failing is unhealthy; fewer is degraded."""
        with patch('statement_ledger.monitoring.health_checker.shutil.which', return_value=None):
            assert checker.run_health_check()['status'] == 'degraded'

        healthy_toolchain.get_languages.return_value = []
        with patch('statement_ledger.monitoring.health_checker.shutil.which', return_value=None), \
                patch('statement_ledger.monitoring.health_checker.psutil.disk_usage', side_effect=OSError("gone")), \
                patch('statement_ledger.monitoring.health_checker.redis.Redis.from_url', side_effect=redis.ConnectionError("refused")):
            assert checker.run_health_check()['status'] == 'unhealthy'

    def test_health_summary(self, checker, healthy_toolchain):
        """Test human-readable summary."""
        summary = checker.get_health_summary()

        assert summary.startswith("System Health: HEALTHY")
        assert "✓ tesseract: healthy" in summary
