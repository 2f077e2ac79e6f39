"""Celery application and task definitions for statement conversion."""

import glob
import os
import shutil
import time
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from celery import Celery

from statement_ledger.config.settings import (
    CELERY_ACCEPT_CONTENT,
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CELERY_RESULT_SERIALIZER,
    CELERY_TASK_SERIALIZER,
    CELERY_TIMEZONE,
    MAX_RETRIES,
    RETRY_DELAY_SECONDS,
    Settings,
    ensure_directories,
)
from statement_ledger.conversion.models import ConversionResult
from statement_ledger.conversion.orchestrator import ConversionOrchestrator
from statement_ledger.conversion.storage import LocalFileStorage
from statement_ledger.utils.exceptions import ConversionError, ToolInvocationError
from statement_ledger.utils.logger import ProcessingLogger, setup_logger
from statement_ledger.utils.validators import validate_csv_file, validate_pdf_file

STALE_RENDER_AGE_SECONDS = 3600

# Ensure required directories exist
ensure_directories()

celery_app = Celery(
    "statement_ledger",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    task_serializer=CELERY_TASK_SERIALIZER,
    result_serializer=CELERY_RESULT_SERIALIZER,
    accept_content=CELERY_ACCEPT_CONTENT,
    timezone=CELERY_TIMEZONE,
)

celery_app.conf.update(
    task_routes={
        "convert_statement": {"queue": "statement_conversion"},
        "convert_csv_export": {"queue": "statement_conversion"},
    },
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    worker_max_tasks_per_child=1000,
)

logger = setup_logger("celery_tasks")


def store_result(
    result: ConversionResult,
    upload_id: str,
    storage: LocalFileStorage
) -> Dict[str, Optional[str]]:
    """Persist the ledger CSV and preview image; return their storage handles."""
    csv_handle = storage.store("converted", f"{upload_id}.csv", result.csv.encode("utf-8"))

    preview_handle = None
    if result.preview_path:
        with open(result.preview_path, "rb") as file:
            preview_handle = storage.store("previews", os.path.basename(result.preview_path), file.read())
        if storage.path_for(preview_handle) != os.path.abspath(result.preview_path):
            os.remove(result.preview_path)

    return {"csv": csv_handle, "preview": preview_handle}


def _failure(task, error: Exception, task_id: str) -> Dict[str, Any]:
    return {
        "success": False,
        "error": str(error),
        "task_id": task_id,
        "retries": task.request.retries,
    }


@celery_app.task(bind=True, name="convert_statement")
def convert_statement(
    self,
    pdf_path: str,
    bank_name: Optional[str] = None,
    max_pages: Optional[int] = None,
    upload_id: Optional[str] = None
) -> Dict[str, Any]:
    """Convert a statement PDF and store the ledger.

    Args:
        self: Celery task instance.
        pdf_path: Path to PDF file.
        bank_name: Optional bank name selecting an OCR correction profile.
        max_pages: Optional cap on the number of pages OCR'd.
        upload_id: Optional identifier for stored outputs; defaults to the task id.

    Returns:
        Dictionary with the conversion result and storage handles.
    """
    task_id = self.request.id or uuid.uuid4().hex
    upload_id = upload_id or task_id
    processing_logger = ProcessingLogger(task_id)
    settings = Settings.from_env()

    try:
        validate_pdf_file(pdf_path, settings.max_file_size_mb)
        processing_logger.log_start(pdf_path)

        orchestrator = ConversionOrchestrator(settings)
        result = orchestrator.convert(pdf_path, max_pages, bank_name, upload_id)
        processing_logger.log_progress(
            f"Converted {result.transactions} transactions via {result.qa_report.method}"
        )
        processing_logger.log_warnings(result.warnings)

        handles = store_result(result, upload_id, LocalFileStorage(settings.storage_dir))
        processing_logger.log_completion(handles["csv"])

        return {
            "success": True,
            "task_id": task_id,
            "upload_id": upload_id,
            "source_file": os.path.basename(pdf_path),
            "processing_date": datetime.now().isoformat(),
            "result": result.to_dict(),
            "handles": handles,
        }

    except ToolInvocationError as e:
        processing_logger.log_error(e, "External tool failed")

        if self.request.retries < MAX_RETRIES:
            processing_logger.log_progress(f"Retrying task (attempt {self.request.retries + 1}/{MAX_RETRIES})")
            raise self.retry(countdown=RETRY_DELAY_SECONDS, exc=e)

        return _failure(self, e, task_id)

    except ConversionError as e:
        processing_logger.log_error(e, "Statement conversion failed")
        return _failure(self, e, task_id)

    except OSError as e:
        processing_logger.log_error(e, "Unexpected I/O error during conversion")
        return _failure(self, e, task_id)


@celery_app.task(bind=True, name="convert_csv_export")
def convert_csv_export(self, csv_path: str, upload_id: Optional[str] = None) -> Dict[str, Any]:
    """Normalize a bank CSV export and store the ledger."""
    task_id = self.request.id or uuid.uuid4().hex
    upload_id = upload_id or task_id
    processing_logger = ProcessingLogger(task_id)
    settings = Settings.from_env()

    try:
        validate_csv_file(csv_path, settings.max_file_size_mb)
        processing_logger.log_start(csv_path)

        with open(csv_path, "r", encoding="utf-8-sig") as file:
            csv_text = file.read()

        result = ConversionOrchestrator(settings).convert_csv(csv_text)
        processing_logger.log_warnings(result.warnings)

        handles = store_result(result, upload_id, LocalFileStorage(settings.storage_dir))
        processing_logger.log_completion(handles["csv"])

        return {
            "success": True,
            "task_id": task_id,
            "upload_id": upload_id,
            "source_file": os.path.basename(csv_path),
            "processing_date": datetime.now().isoformat(),
            "result": result.to_dict(),
            "handles": handles,
        }

    except (ConversionError, OSError, UnicodeDecodeError) as e:
        processing_logger.log_error(e, "CSV conversion failed")
        return _failure(self, e, task_id)


@celery_app.task(name="cleanup_temp_files")
def cleanup_temp_files() -> Dict[str, Any]:
    """Remove render directories left behind by interrupted workers."""
    settings = Settings.from_env()
    cutoff = time.time() - STALE_RENDER_AGE_SECONDS
    pattern = os.path.join(settings.temp_dir, "render-*")

    cleaned_count = 0
    for path in glob.glob(pattern):
        try:
            if os.path.getmtime(path) < cutoff:
                shutil.rmtree(path)
                cleaned_count += 1
        except OSError as e:
            logger.warning(f"Could not remove {path}: {str(e)}")

    logger.info(f"Cleaned up {cleaned_count} stale render directories")
    return {
        "success": True,
        "cleaned_files": cleaned_count,
        "temp_directory": settings.temp_dir,
    }


celery_app.conf.beat_schedule = {
    "cleanup-temp-files": {
        "task": "cleanup_temp_files",
        "schedule": 3600.0,
    },
}


def get_task_status(task_id: str) -> Dict[str, Any]:
    """Get status of a Celery task.

    Args:
        task_id: ID of the task to check.

    Returns:
        Dictionary with task status information.
    """
    result = celery_app.AsyncResult(task_id)
    return {
        "task_id": task_id,
        "status": result.status,
        "result": result.result if result.ready() else None,
        "ready": result.ready(),
        "successful": result.successful(),
        "failed": result.failed(),
    }
