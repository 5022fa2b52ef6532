"""
Tests for converting raw XML records into typed entities.
"""

from __future__ import annotations

import pytest

from src.registry_sync.errors import TransformationError
from src.registry_sync.models import (
    Branch,
    Entrepreneur,
    LegalEntity,
    PublicAssociation,
    RegistryType,
    RelatedEntity,
)
from src.registry_sync.normalizer import (
    normalize,
    normalize_entrepreneur,
    normalize_legal_entity,
    normalize_public_association,
)


class TestRepeatedElements:
    """Repeated children are always tuples."""

    def test_zero_items(self):
        entity = normalize_legal_entity({"RECORD": "1", "NAME": "ТОВ"})
        assert entity.founders == ()
        assert entity.branches == ()
        assert entity.exchange_data == ()

    def test_empty_container(self):
        entity = normalize_legal_entity({"RECORD": "1", "FOUNDERS": None, "BRANCHES": None})
        assert entity.founders == ()
        assert entity.branches == ()

    def test_single_item(self):
        entity = normalize_legal_entity(
            {
                "RECORD": "1",
                "FOUNDERS": {"FOUNDER": "ІВАНЕНКО"},
                "BRANCHES": {"BRANCH": {"CODE": "87654321", "NAME": "ФІЛІЯ"}},
            }
        )
        assert entity.founders == ("ІВАНЕНКО",)
        assert entity.branches == (Branch(code="87654321", name="ФІЛІЯ"),)

    def test_many_items_keep_document_order(self):
        entity = normalize_legal_entity(
            {
                "RECORD": "1",
                "FOUNDERS": {"FOUNDER": ["А", "Б", "В"]},
                "PREDECESSORS": {
                    "PREDECESSOR": [{"NAME": "СТАРЕ", "CODE": "11111111"}, {"NAME": "ДРУГЕ"}]
                },
            }
        )
        assert entity.founders == ("А", "Б", "В")
        assert entity.predecessors == (
            RelatedEntity(name="СТАРЕ", code="11111111"),
            RelatedEntity(name="ДРУГЕ"),
        )

    def test_blank_items_are_dropped(self):
        entity = normalize_legal_entity({"RECORD": "1", "SIGNERS": {"SIGNER": ["А", None, "  "]}})
        assert entity.signers == ("А",)

    def test_exchange_data(self):
        entity = normalize_entrepreneur(
            {
                "RECORD": "7",
                "EXCHANGE_DATA": {
                    "EXCHANGE_ANSWER": {
                        "TAX_PAYER_TYPE": "платник єдиного податку",
                        "START_DATE": "01.01.2020",
                        "START_NUM": "123",
                    }
                },
            }
        )
        assert len(entity.exchange_data) == 1
        assert entity.exchange_data[0].start_date == "01.01.2020"
        assert entity.exchange_data[0].end_date is None


class TestOptionalGroups:
    """Optional groups exist only when their discriminating field does."""

    def test_termination_without_op_date_is_omitted(self):
        entity = normalize_legal_entity(
            {"RECORD": "1", "TERMINATION_STARTED_INFO": {"REASON": "рішення засновників"}}
        )
        assert entity.termination_started is None

    def test_termination_with_op_date(self):
        entity = normalize_legal_entity(
            {
                "RECORD": "1",
                "TERMINATION_STARTED_INFO": {
                    "OP_DATE": "10.10.2023",
                    "REASON": "рішення засновників",
                    "CREDITOR_REQ_END_DATE": "10.12.2023",
                },
            }
        )
        assert entity.termination_started is not None
        assert entity.termination_started.op_date == "10.10.2023"
        assert entity.termination_started.creditor_req_end_date == "10.12.2023"

    def test_bankruptcy_head_name(self):
        entity = normalize_legal_entity(
            {
                "RECORD": "1",
                "BANKRUPTCY_READJUSTMENT_INFO": {
                    "OP_DATE": "01.02.2022",
                    "BANKRUPTCY_READJUSTMENT_HEAD_NAME": "КОВАЛЬ",
                },
            }
        )
        assert entity.bankruptcy is not None
        assert entity.bankruptcy.head_name == "КОВАЛЬ"

    def test_empty_bankruptcy_is_omitted(self):
        entity = normalize_legal_entity({"RECORD": "1", "BANKRUPTCY_READJUSTMENT_INFO": None})
        assert entity.bankruptcy is None

    def test_executive_power_needs_name_or_code(self):
        assert normalize_legal_entity({"RECORD": "1", "EXECUTIVE_POWER": {}}).executive_power is None
        entity = normalize_legal_entity({"RECORD": "1", "EXECUTIVE_POWER": {"CODE": "00000001"}})
        assert entity.executive_power is not None
        assert entity.executive_power.code == "00000001"


class TestRequiredRecord:
    """RECORD is the only field the normalizer insists on."""

    @pytest.mark.parametrize("raw", [{"NAME": "ТОВ"}, {"RECORD": None}, {"RECORD": "   "}])
    def test_missing_record_raises(self, raw):
        with pytest.raises(TransformationError) as exc_info:
            normalize_legal_entity(raw)
        assert exc_info.value.field == "RECORD"
        assert exc_info.value.source == "UO"

    def test_text_is_stripped(self):
        entity = normalize_legal_entity({"RECORD": " 42 ", "NAME": "  ТОВ  ", "STAN": ""})
        assert entity.record == "42"
        assert entity.name == "ТОВ"
        assert entity.status is None


class TestNormalizeDispatch:
    """normalize() picks the variant for the registry type."""

    def test_legal_entity_fields(self):
        entity = normalize(
            RegistryType.UO,
            {"RECORD": "1", "EDRPOU": "12345678", "OPF": "ТОВ", "AUTHORIZED_CAPITAL": "1000,00"},
        )
        assert isinstance(entity, LegalEntity)
        assert entity.legal_form == "ТОВ"
        assert entity.authorized_capital == "1000,00"

    def test_entrepreneur(self):
        entity = normalize(RegistryType.FOP, {"RECORD": "2", "NAME": "ШЕВЧЕНКО", "FARMER": "так"})
        assert isinstance(entity, Entrepreneur)
        assert entity.farmer == "так"
        assert entity.registry_type is RegistryType.FOP

    def test_public_association(self):
        entity = normalize(
            RegistryType.FSU,
            {
                "RECORD": "3",
                "EDRPOU": "40000000",
                "TYPE_SUBJECT": "громадська організація",
                "FOUNDERS": {"FOUNDER": ["А", "Б"]},
            },
        )
        assert isinstance(entity, PublicAssociation)
        assert entity.type_subject == "громадська організація"
        assert entity.founders == ("А", "Б")

    def test_public_association_direct(self):
        entity = normalize_public_association({"RECORD": "3", "FOUNDING_DOCUMENT": "статут"})
        assert entity.founding_document == "статут"
