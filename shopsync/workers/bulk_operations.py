"""RQ worker job: run a queued bulk operation item by item."""
import logging
from datetime import datetime, timezone

from flask import current_app, has_app_context

from shopsync import create_app
from shopsync.errors import LocalValidationError, SyncError
from shopsync.extensions import db
from shopsync.models.bulk_operation import BulkOperation
from shopsync.services import product_service, sync_service

logger = logging.getLogger(__name__)

_worker_app = None


def _get_app():
    """Return an app instance for worker execution.

    Reuse the current app when already inside an app context (tests/CLI),
    otherwise lazily create the worker app once.
    """
    global _worker_app
    if has_app_context():
        return current_app._get_current_object()
    if _worker_app is None:
        _worker_app = create_app()
    return _worker_app


def _load_product(product_id):
    product = product_service.get_product(product_id)
    if product is None:
        raise LocalValidationError({"id": f"Product {product_id} not found."})
    return product


def _create(item, options):
    product = sync_service.create_product(item)
    return {"product_id": product.id, "remote_id": product.remote_id}


def _update(item, options):
    fields = dict(item)
    product = _load_product(fields.pop("id"))
    sync_service.update_product(product, fields)
    return {"product_id": product.id, "remote_id": product.remote_id}


def _delete(item, options):
    product = _load_product(item)
    sync_service.delete_product(product)
    return {"product_id": product.id, "deleted": True}


def _export(item, options):
    product = _load_product(item)
    result = sync_service.export_product(product, force_create=options.get("force_create", False))
    return {
        "product_id": product.id,
        "remote_id": result.remote_id,
        "gid": result.gid,
        "synced_variants": result.synced_variants,
    }


HANDLERS = {
    "create": _create,
    "update": _update,
    "delete": _delete,
    "export": _export,
}


def run_bulk_operation(operation_id):
    """Process every item of a BulkOperation through the sync orchestrator.

    Item failures are recorded on the row. With ``skip_errors`` false the run
    stops at the first failure and ends ``failed``.
    Idempotency: finished operations are skipped.
    """
    app = _get_app()
    with app.app_context():
        operation = db.session.get(BulkOperation, operation_id)
        if not operation:
            logger.error("Bulk operation %s not found", operation_id)
            return
        if operation.status in ("completed", "failed"):
            logger.info("Bulk operation %s already %s, skipping", operation_id, operation.status)
            return

        options = operation.payload.get("options") or {}
        skip_errors = options.get("skip_errors", True)
        handler = HANDLERS[operation.kind]

        operation.status = "running"
        db.session.commit()

        errors = list(operation.errors or [])
        results = dict(operation.results or {})
        stopped = False
        try:
            for index, item in enumerate(operation.payload.get("items") or []):
                try:
                    results[str(index)] = handler(item, options)
                    operation.processed_items += 1
                except SyncError as e:
                    db.session.rollback()
                    operation.failed_items += 1
                    errors.append({"index": index, "item": item, "message": e.message})
                    logger.warning(
                        "Bulk %s item %d failed in %s: %s",
                        operation.kind, index, operation_id, e.message,
                    )
                    if not skip_errors:
                        stopped = True
                operation.errors = list(errors)
                operation.results = dict(results)
                db.session.commit()
                if stopped:
                    break
        except Exception:
            logger.exception("Bulk operation %s crashed", operation_id)
            db.session.rollback()
            operation.status = "failed"
            operation.completed_at = datetime.now(timezone.utc)
            db.session.commit()
            raise  # let RQ record the failure

        all_failed = operation.failed_items and not operation.processed_items
        operation.status = "failed" if stopped or all_failed else "completed"
        operation.completed_at = datetime.now(timezone.utc)
        db.session.commit()
        logger.info(
            "Bulk operation %s %s: %d processed, %d failed",
            operation_id, operation.status, operation.processed_items, operation.failed_items,
        )
