# errors.py — Remote store error taxonomy with BS-DOMAIN-NUMBER codes
from typing import Optional

# ============================================================
# ERROR CODE CATALOGUE
# BS-{DOMAIN}-{NUMBER}
# Domains: READ, WRITE
# ============================================================

ERROR_CATALOGUE = {
    "BS-READ-001": {"message": "Remote store unreachable during query", "severity": "error"},
    "BS-READ-002": {"message": "Query rejected by remote store", "severity": "warning"},
    "BS-WRITE-001": {"message": "Remote store unreachable during write", "severity": "error"},
    "BS-WRITE-002": {"message": "Write rejected by remote store", "severity": "warning"},
    "BS-WRITE-003": {"message": "Write matched no record", "severity": "warning"},
}


class RemoteStoreError(Exception):
    """A single remote call failed. Raised by RemoteStore, absorbed by SyncGateway."""

    default_code = "BS-READ-001"

    def __init__(
        self,
        message: str = "",
        *,
        code: Optional[str] = None,
        table: Optional[str] = None,
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code or self.default_code
        self.table = table
        self.operation = operation
        self.status_code = status_code
        super().__init__(message or ERROR_CATALOGUE[self.code]["message"])

    @property
    def severity(self) -> str:
        return ERROR_CATALOGUE[self.code]["severity"]

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": str(self),
            "table": self.table,
            "operation": self.operation,
            "status_code": self.status_code,
        }


class RemoteReadError(RemoteStoreError):
    default_code = "BS-READ-001"


class RemoteWriteError(RemoteStoreError):
    default_code = "BS-WRITE-001"
