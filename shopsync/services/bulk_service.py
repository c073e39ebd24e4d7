"""Queue bulk create/update/delete/export runs for the RQ worker."""
import logging
import uuid

from flask import current_app

from shopsync import extensions
from shopsync.errors import LocalValidationError
from shopsync.extensions import db
from shopsync.models.bulk_operation import BulkOperation

logger = logging.getLogger(__name__)

JOB_PATH = "shopsync.workers.bulk_operations.run_bulk_operation"


def _validate_items(kind, items):
    errors = {}
    if kind not in BulkOperation.KINDS:
        errors["kind"] = "The kind must be one of: create, update, delete, export."
    max_items = current_app.config["BULK_MAX_ITEMS"]
    if not isinstance(items, list) or not items:
        errors["items"] = "The items field must be a non-empty list."
    elif len(items) > max_items:
        errors["items"] = f"At most {max_items} items can be processed at once."
    elif kind == "update":
        for index, item in enumerate(items):
            if not isinstance(item, dict) or "id" not in item:
                errors[f"items.{index}.id"] = "The id field is required."
    elif kind in ("delete", "export"):
        for index, item in enumerate(items):
            if isinstance(item, bool) or not isinstance(item, int):
                errors[f"items.{index}"] = "Each item must be a product id."
    if errors:
        raise LocalValidationError(errors)


def start_bulk_operation(kind, items, skip_errors=True, force_create=False):
    """Store a pending BulkOperation and enqueue it.

    Without Redis the DummyQueue drops the job and the row stays pending.
    """
    _validate_items(kind, items)
    operation = BulkOperation(
        id=f"bulk_{kind}_{uuid.uuid4().hex[:16]}",
        kind=kind,
        status="pending",
        payload={
            "items": items,
            "options": {"skip_errors": bool(skip_errors), "force_create": bool(force_create)},
        },
        total_items=len(items),
        errors=[],
        results={},
    )
    db.session.add(operation)
    db.session.commit()

    extensions.task_queue.enqueue(JOB_PATH, operation.id, job_timeout=1800)
    logger.info("Queued bulk %s operation %s (%d items)", kind, operation.id, len(items))
    return operation


def bulk_status(operation_id):
    operation = db.session.get(BulkOperation, operation_id)
    return operation.to_dict() if operation else None
