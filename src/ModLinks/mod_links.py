"""
mod_links.py
Typed catalog records for ModLinks.xml / ApiLinks.xml and their persisted
JSON form.

Remote XML shape (one <Manifest> per mod)::

    <ModLinks>
      <Manifest>
        <Name>QoL</Name>
        <Description>...</Description>
        <Version>1.2.0</Version>
        <Link SHA256="ab12...">https://example/qol.zip</Link>
        <Dependencies><Dependency>Satchel</Dependency></Dependencies>
        <Repository>https://github.com/...</Repository>
        <Tags><Tag>Utility</Tag></Tags>
      </Manifest>
    </ModLinks>

The settings file stores the same records with two extra booleans,
``Enabled`` and ``Installed``.
XML parsing uses only stdlib (xml.etree.ElementTree); namespaces are ignored.
"""

from __future__ import annotations

import platform
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, replace
from typing import Any


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModLink:
    """A download URL plus its published SHA-256 (empty = unknown)."""
    link: str = ""
    sha256: str = ""


@dataclass(frozen=True)
class ModManifestEntry:
    """One mod as published in the remote catalog. Replaced wholesale on refetch."""
    name: str
    description: str = ""
    version: str = ""
    link: ModLink = field(default_factory=ModLink)
    dependencies: tuple[str, ...] = ()
    repository: str = ""
    tags: tuple[str, ...] | None = None

    def to_record(self, installed: bool = False, enabled: bool = False) -> LocalModRecord:
        return LocalModRecord(
            name=self.name,
            description=self.description,
            version=self.version,
            link=self.link,
            dependencies=list(self.dependencies),
            repository=self.repository,
            tags=list(self.tags) if self.tags is not None else None,
            installed=installed,
            enabled=enabled,
        )


@dataclass
class LocalModRecord:
    """Persisted counterpart of ModManifestEntry, annotated with disk state."""
    name: str
    description: str = ""
    version: str = ""
    link: ModLink = field(default_factory=ModLink)
    dependencies: list[str] = field(default_factory=list)
    repository: str = ""
    tags: list[str] | None = None
    enabled: bool = False
    installed: bool = False

    def with_state(self, installed: bool, enabled: bool) -> LocalModRecord:
        return replace(self, installed=installed, enabled=enabled)


@dataclass(frozen=True)
class ApiPlatformLinks:
    linux: ModLink = field(default_factory=ModLink)
    mac: ModLink = field(default_factory=ModLink)
    windows: ModLink = field(default_factory=ModLink)


@dataclass(frozen=True)
class ApiManifest:
    """The Modding API (runtime patch) release: version, per-OS zip, file list."""
    version: str = ""
    links: ApiPlatformLinks = field(default_factory=ApiPlatformLinks)
    files: tuple[str, ...] = ()

    def link_for_platform(self, system: str | None = None) -> ModLink:
        """Return the link for *system* ('Linux', 'Darwin', 'Windows'); defaults to this OS."""
        system = (system or platform.system()).lower()
        if system in ("darwin", "mac", "macos"):
            return self.links.mac
        if system == "windows":
            return self.links.windows
        return self.links.linux


# ---------------------------------------------------------------------------
# XML deserialisation
# ---------------------------------------------------------------------------

def _local(tag: str) -> str:
    """Strip an XML namespace: '{ns}Name' -> 'Name'."""
    return tag.rsplit("}", 1)[-1]


def _child(elem: ET.Element, name: str) -> ET.Element | None:
    for c in elem:
        if _local(c.tag) == name:
            return c
    return None


def _text(elem: ET.Element, name: str) -> str:
    c = _child(elem, name)
    if c is None or c.text is None:
        return ""
    return c.text.strip()


def _list(elem: ET.Element, container: str, item: str) -> list[str]:
    c = _child(elem, container)
    if c is None:
        return []
    return [(i.text or "").strip() for i in c if _local(i.tag) == item and (i.text or "").strip()]


def _link(elem: ET.Element | None) -> ModLink:
    if elem is None:
        return ModLink()
    sha = ""
    for key, value in elem.attrib.items():
        if _local(key) == "SHA256":
            sha = value.strip()
    return ModLink(link=(elem.text or "").strip(), sha256=sha)


def _parse_manifest(elem: ET.Element) -> ModManifestEntry:
    tags_elem = _child(elem, "Tags")
    tags = tuple(_list(elem, "Tags", "Tag")) if tags_elem is not None else None
    return ModManifestEntry(
        name=_text(elem, "Name"),
        description=_text(elem, "Description"),
        version=_text(elem, "Version"),
        link=_link(_child(elem, "Link")),
        dependencies=tuple(_list(elem, "Dependencies", "Dependency")),
        repository=_text(elem, "Repository"),
        tags=tags,
    )


def parse_mod_links(xml_text: str | bytes) -> list[ModManifestEntry]:
    """Parse a ModLinks.xml document into catalog entries (document order).

    Entries without a name are dropped; later duplicates of a name are ignored
    so that names stay unique within one fetch.
    Raises xml.etree.ElementTree.ParseError on malformed XML.
    """
    root = ET.fromstring(xml_text)
    entries: list[ModManifestEntry] = []
    seen: set[str] = set()
    for elem in root.iter():
        if _local(elem.tag) != "Manifest":
            continue
        entry = _parse_manifest(elem)
        if not entry.name or entry.name in seen:
            continue
        seen.add(entry.name)
        entries.append(entry)
    return entries


def parse_api_links(xml_text: str | bytes) -> ApiManifest:
    """Parse an ApiLinks.xml document."""
    root = ET.fromstring(xml_text)
    manifest = root if _local(root.tag) == "Manifest" else _child(root, "Manifest")
    if manifest is None:
        return ApiManifest()
    links = _child(manifest, "Links")
    platform_links = ApiPlatformLinks()
    if links is not None:
        platform_links = ApiPlatformLinks(
            linux=_link(_child(links, "Linux")),
            mac=_link(_child(links, "Mac")),
            windows=_link(_child(links, "Windows")),
        )
    return ApiManifest(
        version=_text(manifest, "Version"),
        links=platform_links,
        files=tuple(_list(manifest, "Files", "File")),
    )


# ---------------------------------------------------------------------------
# JSON (settings file) encoding
# ---------------------------------------------------------------------------

def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


def record_to_json(record: LocalModRecord) -> dict[str, Any]:
    data: dict[str, Any] = {
        "Name": record.name,
        "Description": record.description,
        "Version": record.version,
        "Link": {"SHA256": record.link.sha256, "$value": record.link.link},
        "Dependencies": {"Dependency": list(record.dependencies)},
        "Repository": record.repository,
    }
    if record.tags is not None:
        data["Tags"] = {"Tag": list(record.tags)}
    data["Enabled"] = record.enabled
    data["Installed"] = record.installed
    return data


def record_from_json(data: dict[str, Any]) -> LocalModRecord:
    """Decode one persisted record. Missing or wrongly-typed fields get defaults."""
    link = data.get("Link")
    if not isinstance(link, dict):
        link = {}
    deps = data.get("Dependencies")
    tags = data.get("Tags")
    return LocalModRecord(
        name=str(data.get("Name", "")),
        description=str(data.get("Description", "")),
        version=str(data.get("Version", "")),
        link=ModLink(link=str(link.get("$value", "")), sha256=str(link.get("SHA256", ""))),
        dependencies=_str_list(deps.get("Dependency")) if isinstance(deps, dict) else [],
        repository=str(data.get("Repository", "")),
        tags=_str_list(tags.get("Tag")) if isinstance(tags, dict) else None,
        enabled=bool(data.get("Enabled", False)),
        installed=bool(data.get("Installed", False)),
    )
