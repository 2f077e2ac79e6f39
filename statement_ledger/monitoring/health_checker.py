"""Health checks for the OCR toolchain, storage and worker infrastructure."""

import importlib
import os
import shutil
import time
from datetime import datetime
from importlib import metadata
from typing import Any, Dict

import psutil
import pytesseract
import redis

from statement_ledger.config.settings import Settings
from statement_ledger.utils.logger import get_logger

POPPLER_BINARIES = ('pdftoppm', 'pdfinfo')

DEPENDENCIES = {
    'pdfplumber': 'pdfplumber',
    'PyPDF2': 'PyPDF2',
    'pdf2image': 'pdf2image',
    'pytesseract': 'pytesseract',
    'pandas': 'pandas',
    'openpyxl': 'openpyxl',
    'requests': 'requests',
    'pydantic': 'pydantic',
    'celery': 'celery',
    'redis': 'redis',
    'psutil': 'psutil',
}


def _now() -> str:
    return datetime.now().isoformat()


class HealthChecker:
    """Health checker for the conversion pipeline's external collaborators."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.logger = get_logger(self.__class__.__name__)

        self.components = {
            'tesseract': self._check_tesseract,
            'poppler': self._check_poppler,
            'dependencies': self._check_dependencies,
            'disk_space': self._check_disk_space,
            'storage': self._check_storage_paths,
            'redis': self._check_redis_health,
            'remote_service': self._check_remote_service,
        }

    def run_health_check(self) -> Dict[str, Any]:
        """Run every component check and roll the results up.

        The overall status is ``healthy`` when every component is, ``unhealthy``
        when more than half are not, and ``degraded`` otherwise.
        """
        started = time.time()
        components = {name: self.get_component_health(name) for name in self.components}
        failing = [name for name, result in components.items() if result['status'] != 'healthy']

        if not failing:
            status = 'healthy'
        elif len(failing) > len(self.components) // 2:
            status = 'unhealthy'
        else:
            status = 'degraded'

        return {
            'status': status,
            'timestamp': _now(),
            'version': self._get_version(),
            'components': components,
            'alerts': [
                f"Component {name}: {components[name].get('message', 'Unknown issue')}"
                for name in failing
            ],
            'check_duration': round(time.time() - started, 3),
        }

    def _check_tesseract(self) -> Dict[str, Any]:
        """Check that tesseract is callable and has the OCR language installed."""
        if self.settings.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.settings.tesseract_cmd
        try:
            version = str(pytesseract.get_tesseract_version())
            languages = pytesseract.get_languages(config='')
        except (pytesseract.TesseractNotFoundError, pytesseract.TesseractError, OSError) as e:
            return {
                'status': 'unhealthy',
                'message': f"tesseract unavailable: {e}",
                'timestamp': _now(),
            }

        status = 'healthy'
        message = None
        if self.settings.ocr_language not in languages:
            status = 'degraded'
            message = f"OCR language '{self.settings.ocr_language}' is not installed"

        result = {
            'status': status,
            'info': {'version': version, 'languages': languages},
            'timestamp': _now(),
        }
        if message:
            result['message'] = message
        return result

    def _check_poppler(self) -> Dict[str, Any]:
        """Check the poppler binaries pdf2image shells out to."""
        search_path = self.settings.poppler_path
        binaries = {name: shutil.which(name, path=search_path) for name in POPPLER_BINARIES}
        missing = [name for name, location in binaries.items() if location is None]

        result = {
            'status': 'unhealthy' if missing else 'healthy',
            'info': {'binaries': binaries},
            'timestamp': _now(),
        }
        if missing:
            result['message'] = f"Missing poppler tools: {', '.join(missing)}"
        return result

    def _check_dependencies(self) -> Dict[str, Any]:
        """Check that every Python dependency imports."""
        missing_deps = []
        version_info = {}

        for name, package in DEPENDENCIES.items():
            try:
                module = importlib.import_module(package)
            except ImportError:
                missing_deps.append(name)
                continue
            version_info[name] = getattr(module, '__version__', 'unknown')

        result = {
            'status': 'unhealthy' if missing_deps else 'healthy',
            'info': {
                'available': list(version_info.keys()),
                'missing': missing_deps,
                'versions': version_info,
            },
            'timestamp': _now(),
        }
        if missing_deps:
            result['message'] = f"Missing dependencies: {', '.join(missing_deps)}"
        return result

    def _check_disk_space(self) -> Dict[str, Any]:
        """Check free space on the volume holding the storage root."""
        path = self.settings.storage_dir
        while not os.path.exists(path):
            parent = os.path.dirname(path)
            if parent == path:
                break
            path = parent

        disk_usage = psutil.disk_usage(path)
        used_percent = disk_usage.percent

        status = 'healthy'
        if used_percent > 90:
            status = 'unhealthy'
        elif used_percent > 80:
            status = 'degraded'

        result = {
            'status': status,
            'info': {
                'path': path,
                'total_gb': round(disk_usage.total / (1024**3), 2),
                'free_gb': round(disk_usage.free / (1024**3), 2),
                'used_percent': round(used_percent, 2),
            },
            'timestamp': _now(),
        }
        if status != 'healthy':
            result['message'] = f"Disk usage at {round(used_percent, 1)}%"
        return result

    def _check_storage_paths(self) -> Dict[str, Any]:
        """Check that the storage directories exist and are writable."""
        paths = {
            'storage': self.settings.storage_dir,
            'converted': self.settings.converted_dir,
            'previews': self.settings.previews_dir,
            'temp': self.settings.temp_dir,
            'logs': self.settings.logs_dir,
        }

        issues = []
        path_status = {}
        for label, path in paths.items():
            exists = os.path.isdir(path)
            writable = exists and os.access(path, os.W_OK)
            path_status[label] = {'path': path, 'exists': exists, 'writable': writable}
            if not exists:
                issues.append(f"{path}: does not exist")
            elif not writable:
                issues.append(f"{path}: not writable")

        result = {
            'status': 'unhealthy' if issues else 'healthy',
            'info': {'paths': path_status, 'issues': issues},
            'timestamp': _now(),
        }
        if issues:
            result['message'] = '; '.join(issues)
        return result

    def _check_redis_health(self) -> Dict[str, Any]:
        """Check that the Celery broker answers a ping."""
        try:
            client = redis.Redis.from_url(
                self.settings.celery_broker_url,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            client.ping()
            info = client.info()
        except redis.ConnectionError:
            return {
                'status': 'unhealthy',
                'message': 'Cannot connect to Redis',
                'timestamp': _now(),
            }
        except redis.RedisError as e:
            return {
                'status': 'error',
                'message': f"Redis check failed: {e}",
                'timestamp': _now(),
            }

        return {
            'status': 'healthy',
            'info': {
                'version': info.get('redis_version'),
                'connected_clients': info.get('connected_clients'),
                'used_memory': info.get('used_memory_human'),
            },
            'timestamp': _now(),
        }

    def _check_remote_service(self) -> Dict[str, Any]:
        """Report whether conversions are delegated to a peer service."""
        enabled = self.settings.is_remote_enabled()
        return {
            'status': 'healthy',
            'info': {
                'enabled': enabled,
                'url': self.settings.conversion_service_url if enabled else None,
                'authenticated': bool(self.settings.conversion_service_token),
            },
            'timestamp': _now(),
        }

    def _get_version(self) -> str:
        try:
            return metadata.version("bank-statement-ledger")
        except metadata.PackageNotFoundError:
            return "unknown"

    def get_component_health(self, component_name: str) -> Dict[str, Any]:
        """Run one named check; unknown names and crashing checks report an error."""
        if component_name not in self.components:
            return {
                'status': 'error',
                'message': f'Unknown component: {component_name}',
            }

        try:
            return self.components[component_name]()
        except Exception as e:
            self.logger.error(f"Health check failed for {component_name}: {e}")
            return {
                'status': 'error',
                'message': f'Component check failed: {e}',
                'timestamp': _now(),
            }

    def is_healthy(self) -> bool:
        """True when every component reports healthy."""
        return self.run_health_check()['status'] == 'healthy'

    def get_health_summary(self) -> str:
        """Format a health check as plain text for the CLI."""
        health = self.run_health_check()
        lines = [
            f"System Health: {health['status'].upper()}",
            f"Version: {health['version']}",
            "",
        ]
        lines.extend(
            f"{'✓' if result['status'] == 'healthy' else '✗'} {name}: {result['status']}"
            for name, result in health['components'].items()
        )
        if health['alerts']:
            lines.append("")
            lines.append(f"Alerts ({len(health['alerts'])}):")
            lines.extend(f"  - {alert}" for alert in health['alerts'])
        return "\n".join(lines) + "\n"
