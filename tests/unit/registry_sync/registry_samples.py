"""
Sample registry XML and entity builders shared by the sync tests.
"""

from __future__ import annotations

import io
import zipfile

from src.registry_sync.models import Entrepreneur

UO_SUBJECT_FULL = """
  <SUBJECT>
    <NAME>ТОВАРИСТВО З ОБМЕЖЕНОЮ ВІДПОВІДАЛЬНІСТЮ "РОМАШКА"</NAME>
    <SHORT_NAME>ТОВ "РОМАШКА"</SHORT_NAME>
    <EDRPOU>12345678</EDRPOU>
    <RECORD>1001</RECORD>
    <OPF>Товариство з обмеженою відповідальністю</OPF>
    <STAN>зареєстровано</STAN>
    <REGISTRATION>01.03.2005</REGISTRATION>
    <AUTHORIZED_CAPITAL>10000,00</AUTHORIZED_CAPITAL>
    <FOUNDERS>
      <FOUNDER>ІВАНЕНКО ІВАН ІВАНОВИЧ</FOUNDER>
      <FOUNDER>ПЕТРЕНКО ПЕТРО ПЕТРОВИЧ</FOUNDER>
    </FOUNDERS>
    <BRANCHES>
      <BRANCH>
        <CODE>87654321</CODE>
        <NAME>ФІЛІЯ №1</NAME>
      </BRANCH>
      <BRANCH>
        <CODE>87654322</CODE>
        <NAME>ФІЛІЯ №2</NAME>
      </BRANCH>
    </BRANCHES>
  </SUBJECT>
"""

UO_SUBJECT_MINIMAL = """
  <SUBJECT>
    <NAME>ПП "ЛІСОВИК"</NAME>
    <EDRPOU>23456789</EDRPOU>
    <RECORD>1002</RECORD>
    <STAN>зареєстровано</STAN>
    <FOUNDERS>
      <FOUNDER>СИДОРЕНКО ОЛЕНА</FOUNDER>
    </FOUNDERS>
  </SUBJECT>
"""

UO_SUBJECT_BAD_EDRPOU = """
  <SUBJECT>
    <NAME>ТОВ "ПОМИЛКА"</NAME>
    <EDRPOU>12AB</EDRPOU>
    <RECORD>1003</RECORD>
  </SUBJECT>
"""

UO_SUBJECT_NO_RECORD = """
  <SUBJECT>
    <NAME>БЕЗ НОМЕРА</NAME>
    <EDRPOU>34567890</EDRPOU>
  </SUBJECT>
"""


def xml_document(*subjects: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n<DATA FORMAT_VERSION="1.0">'
        + "".join(subjects)
        + "</DATA>\n"
    )


def uo_document() -> str:
    """Three legal entities: two valid, one with a malformed EDRPOU."""
    return xml_document(UO_SUBJECT_FULL, UO_SUBJECT_MINIMAL, UO_SUBJECT_BAD_EDRPOU)


def fop_subject(record: str, name: str = "ШЕВЧЕНКО ТАРАС") -> str:
    return f"""
  <SUBJECT>
    <NAME>{name}</NAME>
    <RECORD>{record}</RECORD>
    <STAN>зареєстровано</STAN>
  </SUBJECT>
"""


def zip_bytes(files: dict[str, str | bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def make_entrepreneurs(count: int, start: int = 1) -> list[Entrepreneur]:
    return [
        Entrepreneur(record=f"FOP-{i}", name=f"ПІДПРИЄМЕЦЬ {i}", status="зареєстровано")
        for i in range(start, start + count)
    ]
