# -*- coding: utf-8 -*-

"""
Data model of the bulk verification protocol.

Server payloads use camelCase keys; every ``from_dict`` raises
``MalformedResponseError`` when a payload is missing a required key or
breaks one of the model invariants.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional

from .errors import MalformedResponseError


class BatchStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (BatchStatus.COMPLETED, BatchStatus.ERROR)


def _require(data: dict, key: str, what: str):
    if not isinstance(data, dict):
        raise MalformedResponseError(f"Expected an object for {what}, got {type(data).__name__}")
    if key not in data:
        raise MalformedResponseError(f"Missing '{key}' in {what}")
    return data[key]


def _non_negative_int(data: dict, key: str, what: str) -> int:
    value = _require(data, key, what)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise MalformedResponseError(f"'{key}' in {what} must be a non-negative integer, got {value!r}")
    return value


@dataclass(frozen=True)
class ContactPreview:
    """One contact row of the uploaded CSV."""
    first_name: str
    last_name: str
    type: str
    email: str
    status: str
    original_row: int
    phone: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ContactPreview":
        what = "contact"
        return cls(
            first_name=_require(data, "firstName", what),
            last_name=_require(data, "lastName", what),
            type=data.get("type", ""),
            email=data.get("email", ""),
            status=data.get("status", ""),
            original_row=_require(data, "originalRow", what),
            phone=data.get("phone"),
        )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class UploadPreview:
    """Server analysis of an uploaded CSV; ``file_path`` is the reference passed to start."""
    file_name: str
    total_contacts: int
    cte_contacts: int
    file_path: str
    contacts: list[ContactPreview] = field(default_factory=list)
    cte_contacts_preview: list[ContactPreview] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "UploadPreview":
        what = "upload response"
        return cls(
            file_name=_require(data, "fileName", what),
            total_contacts=_non_negative_int(data, "totalContacts", what),
            cte_contacts=_non_negative_int(data, "cteContacts", what),
            file_path=_require(data, "filePath", what),
            contacts=[ContactPreview.from_dict(c) for c in data.get("contacts") or []],
            cte_contacts_preview=[
                ContactPreview.from_dict(c) for c in data.get("cteContactsPreview") or []
            ],
        )

    def contacts_to_verify(self, cte_only: bool) -> int:
        return self.cte_contacts if cte_only else self.total_contacts


@dataclass(frozen=True)
class BatchJob:
    """Read-only progress snapshot of one verification batch."""
    id: str
    status: BatchStatus
    total_contacts: int
    processed_contacts: int
    success_count: int
    error_count: int
    start_time: Optional[str] = None
    estimated_completion: Optional[str] = None
    current_contact: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "BatchJob":
        what = "batch progress"
        raw_status = _require(data, "status", what)
        try:
            status = BatchStatus(raw_status)
        except ValueError:
            raise MalformedResponseError(f"Unknown batch status: {raw_status!r}") from None

        job = cls(
            id=str(_require(data, "id", what)),
            status=status,
            total_contacts=_non_negative_int(data, "totalContacts", what),
            processed_contacts=_non_negative_int(data, "processedContacts", what),
            success_count=_non_negative_int(data, "successCount", what),
            error_count=_non_negative_int(data, "errorCount", what),
            start_time=data.get("startTime"),
            estimated_completion=data.get("estimatedCompletion"),
            current_contact=data.get("currentContact"),
        )
        if job.processed_contacts > job.total_contacts:
            raise MalformedResponseError(
                f"processedContacts ({job.processed_contacts}) exceeds totalContacts ({job.total_contacts})"
            )
        if job.success_count + job.error_count > job.processed_contacts:
            raise MalformedResponseError(
                "successCount + errorCount exceeds processedContacts"
            )
        return job

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def progress_percentage(self) -> int:
        if not self.total_contacts:
            return 0
        return round(self.processed_contacts / self.total_contacts * 100)


@dataclass(frozen=True)
class ExpirationAlert:
    certification: str
    expiration_date: str
    days_until_expiration: int
    severity: str

    SEVERITIES = ("critical", "warning", "notice")

    @classmethod
    def from_dict(cls, data: dict) -> "ExpirationAlert":
        what = "expiration alert"
        return cls(
            certification=_require(data, "certification", what),
            expiration_date=_require(data, "expirationDate", what),
            days_until_expiration=_require(data, "daysUntilExpiration", what),
            severity=_require(data, "severity", what),
        )


@dataclass(frozen=True)
class VerificationResult:
    """
    Outcome for one input contact.

    ``certifications`` and ``expiration_alerts`` are only populated when
    ``success`` is true; ``error`` only when it is false.
    """
    contact: ContactPreview
    success: bool
    certifications: Optional[list[dict]] = None
    expiration_alerts: Optional[list[ExpirationAlert]] = None
    sced_codes: Optional[list[str]] = None
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "VerificationResult":
        what = "verification result"
        contact = ContactPreview.from_dict(_require(data, "contact", what))
        success = bool(_require(data, "success", what))
        if success:
            return cls(
                contact=contact,
                success=True,
                certifications=list(data.get("certifications") or []),
                expiration_alerts=[
                    ExpirationAlert.from_dict(a) for a in data.get("expirationAlerts") or []
                ],
                sced_codes=data.get("scedCodes"),
            )
        return cls(
            contact=contact,
            success=False,
            error=data.get("error") or "Not found",
        )

    def certification_names(self) -> list[str]:
        return [str(c.get("name", "")) for c in self.certifications or [] if isinstance(c, dict)]

    def to_row(self) -> dict:
        """Flatten into a single tabular row."""
        alerts = self.expiration_alerts or []
        return {
            "original_row": self.contact.original_row,
            "first_name": self.contact.first_name,
            "last_name": self.contact.last_name,
            "type": self.contact.type,
            "email": self.contact.email,
            "phone": self.contact.phone or "",
            "success": self.success,
            "certifications": "; ".join(self.certification_names()),
            "sced_codes": "; ".join(self.sced_codes or []),
            "expiration_alerts": len(alerts),
            "critical_alerts": sum(1 for a in alerts if a.severity == "critical"),
            "error": self.error,
        }

    def to_dict(self) -> dict:
        return asdict(self)
