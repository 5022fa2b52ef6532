"""
Entity Normalizer

Converts RawRecords (generic nested mappings produced by the streaming
parser) into typed registry entities. Repeated child elements always become
tuples, whether the XML held zero, one or many of them, and optional groups
are omitted entirely unless their discriminating field is present.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from src.registry_sync.errors import TransformationError
from src.registry_sync.models import (
    Bankruptcy,
    Branch,
    Entrepreneur,
    ExecutivePower,
    LegalEntity,
    ParsedEntity,
    PublicAssociation,
    RegistryType,
    RelatedEntity,
    TaxExchange,
    TerminationStarted,
)

RawRecord = dict[str, Any]


def _clean(value: Any) -> str | None:
    """Strip text; empty strings and non-text nodes become None."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _text(raw: RawRecord, tag: str) -> str | None:
    return _clean(raw.get(tag))


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _children(raw: RawRecord, container: str, item: str) -> list[Any]:
    """Items of a repeated element, e.g. FOUNDERS/FOUNDER."""
    group = raw.get(container)
    if not isinstance(group, dict):
        return []
    return _as_list(group.get(item))


def _group(raw: RawRecord, tag: str) -> RawRecord | None:
    group = raw.get(tag)
    return group if isinstance(group, dict) else None


def _text_items(raw: RawRecord, container: str, item: str) -> tuple[str, ...]:
    return tuple(t for t in (_clean(v) for v in _children(raw, container, item)) if t)


def _branches(raw: RawRecord) -> tuple[Branch, ...]:
    return tuple(
        Branch(
            code=_text(item, "CODE"),
            name=_text(item, "NAME"),
            signer=_text(item, "SIGNER"),
            create_date=_text(item, "CREATE_DATE"),
        )
        for item in _children(raw, "BRANCHES", "BRANCH")
        if isinstance(item, dict)
    )


def _related(raw: RawRecord, container: str, item: str) -> tuple[RelatedEntity, ...]:
    return tuple(
        RelatedEntity(name=_text(entry, "NAME"), code=_text(entry, "CODE"))
        for entry in _children(raw, container, item)
        if isinstance(entry, dict)
    )


def _exchange_data(raw: RawRecord) -> tuple[TaxExchange, ...]:
    return tuple(
        TaxExchange(
            tax_payer_type=_text(item, "TAX_PAYER_TYPE"),
            start_date=_text(item, "START_DATE"),
            start_num=_text(item, "START_NUM"),
            end_date=_text(item, "END_DATE"),
            end_num=_text(item, "END_NUM"),
        )
        for item in _children(raw, "EXCHANGE_DATA", "EXCHANGE_ANSWER")
        if isinstance(item, dict)
    )


def _executive_power(raw: RawRecord) -> ExecutivePower | None:
    group = _group(raw, "EXECUTIVE_POWER")
    if group is None:
        return None
    name, code = _text(group, "NAME"), _text(group, "CODE")
    if name is None and code is None:
        return None
    return ExecutivePower(name=name, code=code)


def _termination_started(raw: RawRecord) -> TerminationStarted | None:
    group = _group(raw, "TERMINATION_STARTED_INFO")
    op_date = _text(group, "OP_DATE") if group else None
    if op_date is None:
        return None
    return TerminationStarted(
        op_date=op_date,
        reason=_text(group, "REASON"),
        sbj_state=_text(group, "SBJ_STATE"),
        signer_name=_text(group, "SIGNER_NAME"),
        creditor_req_end_date=_text(group, "CREDITOR_REQ_END_DATE"),
    )


def _bankruptcy(raw: RawRecord) -> Bankruptcy | None:
    group = _group(raw, "BANKRUPTCY_READJUSTMENT_INFO")
    op_date = _text(group, "OP_DATE") if group else None
    if op_date is None:
        return None
    return Bankruptcy(
        op_date=op_date,
        reason=_text(group, "REASON"),
        sbj_state=_text(group, "SBJ_STATE"),
        head_name=_text(group, "BANKRUPTCY_READJUSTMENT_HEAD_NAME"),
    )


def _require_record(raw: RawRecord, registry_type: RegistryType) -> str:
    record = _text(raw, "RECORD")
    if record is None:
        raise TransformationError(
            f"{registry_type.value} record without RECORD (name={_text(raw, 'NAME')!r})",
            source=registry_type.value,
            field="RECORD",
        )
    return record


def _common(raw: RawRecord, registry_type: RegistryType) -> dict[str, Any]:
    return {
        "record": _require_record(raw, registry_type),
        "name": _text(raw, "NAME"),
        "status": _text(raw, "STAN"),
        "registration": _text(raw, "REGISTRATION"),
        "terminated_info": _text(raw, "TERMINATED_INFO"),
        "termination_cancel_info": _text(raw, "TERMINATION_CANCEL_INFO"),
        "exchange_data": _exchange_data(raw),
    }


def normalize_legal_entity(raw: RawRecord) -> LegalEntity:
    return LegalEntity(
        **_common(raw, RegistryType.UO),
        edrpou=_text(raw, "EDRPOU"),
        short_name=_text(raw, "SHORT_NAME"),
        legal_form=_text(raw, "OPF"),
        authorized_capital=_text(raw, "AUTHORIZED_CAPITAL"),
        founding_document_num=_text(raw, "FOUNDING_DOCUMENT_NUM"),
        purpose=_text(raw, "PURPOSE"),
        superior_management=_text(raw, "SUPERIOR_MANAGEMENT"),
        statute=_text(raw, "STATUTE"),
        managing_paper=_text(raw, "MANAGING_PAPER"),
        executive_power=_executive_power(raw),
        founders=_text_items(raw, "FOUNDERS", "FOUNDER"),
        beneficiaries=_text_items(raw, "BENEFICIARIES", "BENEFICIARY"),
        signers=_text_items(raw, "SIGNERS", "SIGNER"),
        members=_text_items(raw, "MEMBERS", "MEMBER"),
        branches=_branches(raw),
        predecessors=_related(raw, "PREDECESSORS", "PREDECESSOR"),
        assignees=_related(raw, "ASSIGNEES", "ASSIGNEE"),
        termination_started=_termination_started(raw),
        bankruptcy=_bankruptcy(raw),
    )


def normalize_entrepreneur(raw: RawRecord) -> Entrepreneur:
    return Entrepreneur(
        **_common(raw, RegistryType.FOP),
        farmer=_text(raw, "FARMER"),
        estate_manager=_text(raw, "ESTATE_MANAGER"),
    )


def normalize_public_association(raw: RawRecord) -> PublicAssociation:
    return PublicAssociation(
        **_common(raw, RegistryType.FSU),
        edrpou=_text(raw, "EDRPOU"),
        short_name=_text(raw, "SHORT_NAME"),
        type_subject=_text(raw, "TYPE_SUBJECT"),
        type_branch=_text(raw, "TYPE_BRANCH"),
        founding_document=_text(raw, "FOUNDING_DOCUMENT"),
        founders=_text_items(raw, "FOUNDERS", "FOUNDER"),
        beneficiaries=_text_items(raw, "BENEFICIARIES", "BENEFICIARY"),
        signers=_text_items(raw, "SIGNERS", "SIGNER"),
        predecessors=_related(raw, "PREDECESSORS", "PREDECESSOR"),
        termination_started=_termination_started(raw),
    )


_NORMALIZERS: dict[RegistryType, Callable[[RawRecord], ParsedEntity]] = {
    RegistryType.UO: normalize_legal_entity,
    RegistryType.FOP: normalize_entrepreneur,
    RegistryType.FSU: normalize_public_association,
}


def normalize(registry_type: RegistryType, raw: RawRecord) -> ParsedEntity:
    """
    Convert a raw XML record into the typed entity for its registry.

    Args:
        registry_type: Registry the record was read from
        raw: Generic nested mapping for one SUBJECT element

    Returns:
        LegalEntity, Entrepreneur or PublicAssociation

    Raises:
        TransformationError: If the record has no RECORD identifier
    """
    return _NORMALIZERS[registry_type](raw)
