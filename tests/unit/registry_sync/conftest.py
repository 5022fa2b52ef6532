"""
Shared fixtures for registry sync tests.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from registry_samples import uo_document
from src.registry_sync.models import Branch, LegalEntity


@pytest.fixture
def uo_xml_path(tmp_path: Path) -> Path:
    path = tmp_path / "UO_FULL_out.xml"
    path.write_text(uo_document(), encoding="utf-8")
    return path


@pytest.fixture
def legal_entity() -> LegalEntity:
    return LegalEntity(
        record="1001",
        name='ТОВ "РОМАШКА"',
        edrpou="12345678",
        status="зареєстровано",
        founders=("ІВАНЕНКО ІВАН",),
        branches=(Branch(code="87654321", name="ФІЛІЯ №1"),),
    )
