"""
Content qualification for ready groups.

Before a stable group is processed, one representative file is inspected.
The default gate dumps the file's HDF5 attributes as XML with h5dump and
keeps granules that contain night-time data, i.e. where any
Ascending/Descending_Indicator attribute is non-zero.

Gates fail open: if the inspection itself fails, the group is processed
rather than silently dropped.
"""

import logging
import subprocess
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from typing import Iterator

logger = logging.getLogger(__name__)

INDICATOR_ATTRIBUTE = "Ascending/Descending_Indicator"


class QualityGate(ABC):
    """Predicate deciding whether a ready group is processed."""

    @abstractmethod
    def qualifies(self, path: str) -> bool:
        """Return True if the group represented by path should be processed."""
        pass


class AlwaysQualifies(QualityGate):
    """Gate used when content checks are disabled."""

    def qualifies(self, path: str) -> bool:
        return True


def _local_name(tag: str) -> str:
    # "{namespace}Attribute" -> "Attribute"
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> Iterator[ET.Element]:
    for child in element:
        if _local_name(child.tag) == name:
            yield child


def indicator_values(xml_text: str) -> Iterator[str]:
    """
    Yield every Attribute/Data/DataFromFile text for indicator attributes.

    Namespace prefixes are ignored.

    Raises:
        ET.ParseError: If xml_text is not well-formed
    """
    root = ET.fromstring(xml_text)
    for element in root.iter():
        if _local_name(element.tag) != "Attribute":
            continue
        if INDICATOR_ATTRIBUTE not in element.get("Name", ""):
            continue
        for data in _children(element, "Data"):
            for value in _children(data, "DataFromFile"):
                yield "".join(value.itertext())


class H5DumpQualityGate(QualityGate):
    """
    Night-data check via `h5dump -x -A`.

    A granule qualifies if any indicator value differs from "0".
    """

    def __init__(self, binary: str = "h5dump"):
        self.binary = binary

    def dump_attributes(self, path: str) -> str:
        """
        Run h5dump and return its XML output.

        Raises:
            OSError: If h5dump cannot be started
            subprocess.CalledProcessError: If h5dump exits non-zero
        """
        proc = subprocess.run(
            [self.binary, "-x", "-A", path],
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            errors="replace",
            check=True,
        )
        return proc.stdout

    def qualifies(self, path: str) -> bool:
        try:
            xml_text = self.dump_attributes(path)
        except (OSError, subprocess.CalledProcessError) as e:
            logger.warning(f"H5Dump failed for {path}: {e}")
            return True

        try:
            values = list(indicator_values(xml_text))
        except ET.ParseError as e:
            logger.warning(f"Failed to parse h5dump output for {path}: {e}")
            return True

        return any(value.strip() != "0" for value in values)
