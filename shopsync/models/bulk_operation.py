from datetime import datetime, timezone
from shopsync.extensions import db


class BulkOperation(db.Model):
    """A queued bulk create/update/delete/export run and its progress."""

    __tablename__ = "bulk_operations"

    id = db.Column(db.String(64), primary_key=True)  # "bulk_export_<hex>"
    kind = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    total_items = db.Column(db.Integer, nullable=False, default=0)
    processed_items = db.Column(db.Integer, nullable=False, default=0)
    failed_items = db.Column(db.Integer, nullable=False, default=0)
    errors = db.Column(db.JSON, default=list)
    results = db.Column(db.JSON, default=dict)
    started_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    completed_at = db.Column(db.DateTime(timezone=True))

    KINDS = {"create", "update", "delete", "export"}
    STATUSES = {"pending", "running", "completed", "failed"}

    @property
    def progress_percentage(self):
        if not self.total_items:
            return 0.0
        done = self.processed_items + self.failed_items
        return round(done / self.total_items * 100, 2)

    def to_dict(self):
        return {
            "operation_id": self.id,
            "kind": self.kind,
            "status": self.status,
            "total_items": self.total_items,
            "processed_items": self.processed_items,
            "failed_items": self.failed_items,
            "progress_percentage": self.progress_percentage,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "errors": self.errors or [],
            "results": self.results or {},
        }

    def __repr__(self):
        return f"<BulkOperation {self.id} [{self.status}]>"
