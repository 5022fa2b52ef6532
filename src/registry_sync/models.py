"""
Registry Sync Models

Registry types, typed entity variants produced by the normalizer,
and the statistics and audit records written by the orchestrator.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, ClassVar

_DATASET_URL = "https://data.gov.ua/dataset/1c7f3815-3259-45e0-bdf1-64dca07ddc10/resource"


@dataclass(frozen=True)
class RegistryDescriptor:
    """Static facts about one registry dataset."""

    registry_name: str
    title: str
    default_url: str
    xml_candidates: tuple[str, ...]
    table: str
    estimated_count: int


class RegistryType(str, Enum):
    """The three EDRPOU datasets, synchronized independently."""

    UO = "UO"  # legal entities
    FOP = "FOP"  # individual entrepreneurs
    FSU = "FSU"  # public associations

    @property
    def descriptor(self) -> RegistryDescriptor:
        return _DESCRIPTORS[self]

    @classmethod
    def parse_list(cls, value: str | None) -> list[RegistryType]:
        """
        Parse a comma-separated list of type codes.

        Args:
            value: e.g. "UO,FOP"; None or empty means all types

        Returns:
            Registry types in canonical order, deduplicated

        Raises:
            ValueError: If a code is not a known registry type
        """
        if not value:
            return list(cls)
        requested = {part.strip().upper() for part in value.split(",") if part.strip()}
        unknown = requested - {t.value for t in cls}
        if unknown:
            raise ValueError(f"Unknown registry type(s): {', '.join(sorted(unknown))}")
        return [t for t in cls if t.value in requested]


_DESCRIPTORS: dict[RegistryType, RegistryDescriptor] = {
    RegistryType.UO: RegistryDescriptor(
        registry_name="EDRPOU_UO",
        title="legal entities",
        default_url=f"{_DATASET_URL}/b2d3b3a3-8555-44e7-869f-f81042b97aa2/download/uo.zip",
        xml_candidates=("UO_FULL_out.xml", "UO.xml"),
        table="legal_entities",
        estimated_count=1_800_000,
    ),
    RegistryType.FOP: RegistryDescriptor(
        registry_name="EDRPOU_FOP",
        title="individual entrepreneurs",
        default_url=f"{_DATASET_URL}/e1c7d5b5-f0c5-4f5e-8e0a-7e65f7e48e9c/download/fop.zip",
        xml_candidates=("FOP_FULL_out.xml", "FOP.xml"),
        table="individual_entrepreneurs",
        estimated_count=2_000_000,
    ),
    RegistryType.FSU: RegistryDescriptor(
        registry_name="EDRPOU_FSU",
        title="public associations",
        default_url=f"{_DATASET_URL}/7db8eb53-4e2e-4e92-a504-0f9cf086d25a/download/fsu.zip",
        xml_candidates=("FSU_FULL_out.xml", "FSU.xml"),
        table="public_associations",
        estimated_count=100_000,
    ),
}


# =============================================================================
# Nested sub-records
# =============================================================================


@dataclass(frozen=True)
class Branch:
    code: str | None = None
    name: str | None = None
    signer: str | None = None
    create_date: str | None = None


@dataclass(frozen=True)
class RelatedEntity:
    """Predecessor or assignee of a legal entity."""

    name: str | None = None
    code: str | None = None


@dataclass(frozen=True)
class ExecutivePower:
    name: str | None = None
    code: str | None = None


@dataclass(frozen=True)
class TerminationStarted:
    op_date: str
    reason: str | None = None
    sbj_state: str | None = None
    signer_name: str | None = None
    creditor_req_end_date: str | None = None


@dataclass(frozen=True)
class Bankruptcy:
    op_date: str
    reason: str | None = None
    sbj_state: str | None = None
    head_name: str | None = None


@dataclass(frozen=True)
class TaxExchange:
    """One entry of the tax-authority exchange history."""

    tax_payer_type: str | None = None
    start_date: str | None = None
    start_num: str | None = None
    end_date: str | None = None
    end_num: str | None = None


# =============================================================================
# Entities
# =============================================================================


@dataclass(frozen=True, kw_only=True)
class RegistryEntity:
    """Fields shared by every registry entity."""

    registry_type: ClassVar[RegistryType]

    record: str
    name: str | None = None
    status: str | None = None
    registration: str | None = None
    terminated_info: str | None = None
    termination_cancel_info: str | None = None
    exchange_data: tuple[TaxExchange, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view used for content hashing and persistence."""
        return asdict(self)


@dataclass(frozen=True, kw_only=True)
class LegalEntity(RegistryEntity):
    registry_type: ClassVar[RegistryType] = RegistryType.UO

    edrpou: str | None = None
    short_name: str | None = None
    legal_form: str | None = None
    authorized_capital: str | None = None
    founding_document_num: str | None = None
    purpose: str | None = None
    superior_management: str | None = None
    statute: str | None = None
    managing_paper: str | None = None
    executive_power: ExecutivePower | None = None
    founders: tuple[str, ...] = ()
    beneficiaries: tuple[str, ...] = ()
    signers: tuple[str, ...] = ()
    members: tuple[str, ...] = ()
    branches: tuple[Branch, ...] = ()
    predecessors: tuple[RelatedEntity, ...] = ()
    assignees: tuple[RelatedEntity, ...] = ()
    termination_started: TerminationStarted | None = None
    bankruptcy: Bankruptcy | None = None


@dataclass(frozen=True, kw_only=True)
class Entrepreneur(RegistryEntity):
    registry_type: ClassVar[RegistryType] = RegistryType.FOP

    farmer: str | None = None
    estate_manager: str | None = None


@dataclass(frozen=True, kw_only=True)
class PublicAssociation(RegistryEntity):
    registry_type: ClassVar[RegistryType] = RegistryType.FSU

    edrpou: str | None = None
    short_name: str | None = None
    type_subject: str | None = None
    type_branch: str | None = None
    founding_document: str | None = None
    founders: tuple[str, ...] = ()
    beneficiaries: tuple[str, ...] = ()
    signers: tuple[str, ...] = ()
    predecessors: tuple[RelatedEntity, ...] = ()
    termination_started: TerminationStarted | None = None


ParsedEntity = LegalEntity | Entrepreneur | PublicAssociation


# =============================================================================
# Statistics and audit records
# =============================================================================


@dataclass
class ImportStats:
    """Import counters for one batch or one full run."""

    imported: int = 0
    skipped: int = 0
    errors: int = 0
    unchanged: int = 0

    def __add__(self, other: ImportStats) -> ImportStats:
        return ImportStats(
            imported=self.imported + other.imported,
            skipped=self.skipped + other.skipped,
            errors=self.errors + other.errors,
            unchanged=self.unchanged + other.unchanged,
        )

    @property
    def total(self) -> int:
        return self.imported + self.skipped + self.errors + self.unchanged


class ImportStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ImportLogEntry:
    """Audit row for one registry-type import."""

    id: int
    registry_name: str
    file_name: str
    status: ImportStatus = ImportStatus.IN_PROGRESS
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None
    records_imported: int = 0
    records_failed: int = 0
    error_message: str | None = None


@dataclass
class RegistryMetadataEntry:
    registry_name: str
    record_count: int
    last_update_date: date
