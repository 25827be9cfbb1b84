from pathlib import Path
import textwrap

import pytest

SCENARIO_XML = """\
<?xml version="1.0"?>
<Event runNumber="152166" eventNumber="316199" dateTime="2010-03-30 13:05:06 CEST" lumiBlock="7">
  <Track count="1" storeGateKey="ExtendedTracks">
    <pt> 2.5 </pt>
    <numPolyline> 3 </numPolyline>
    <polylineX> 0 300 300 </polylineX>
    <polylineY> 0 0 400 </polylineY>
    <polylineZ> 0 0 0 </polylineZ>
  </Track>
  <Track count="1" storeGateKey="ConvertedMBoyTracks">
    <pt> 9.0 </pt>
    <numPolyline> 1 </numPolyline>
    <polylineX> 1 </polylineX>
    <polylineY> 1 </polylineY>
    <polylineZ> 1 </polylineZ>
  </Track>
</Event>
"""


@pytest.fixture
def write_xml(tmp_path: Path):
    """Write an XML string to a temp file and return its path."""
    def _write(text: str, name: str = "event.xml") -> Path:
        p = tmp_path / name
        p.write_text(textwrap.dedent(text))
        return p
    return _write


@pytest.fixture
def scenario_xml(write_xml) -> Path:
    return write_xml(SCENARIO_XML)
