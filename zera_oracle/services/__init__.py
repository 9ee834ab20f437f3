# zera_oracle/services/__init__.py
from .store_service import store_service, StoreService
from .audit_service import audit_service, AuditService
from .write_pipeline import write_pipeline, WritePipeline, WriteResult

__all__ = [
    "store_service",
    "StoreService",
    "audit_service",
    "AuditService",
    "write_pipeline",
    "WritePipeline",
    "WriteResult",
]
