"""Parser for per-file declaration records (``.swiftdeps`` YAML).

A record is a YAML mapping from section name to a sequence of entries::

    provides-top-level: [foo, bar]
    provides-member:
      - ["Widget", "render"]
    depends-nominal:
      - Widget
      - !private Helper
    depends-external: ["/usr/lib/swift/Foundation.swiftmodule"]

Entries tagged ``!private`` in a ``depends-*`` section are non-cascading.
Unknown sections are ignored so newer compilers can add sections freely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

import yaml

from flock.deps.models import DependencyItem, DynamicLookup, Member, Nominal, TopLevel
from flock.errors import DeclarationParseError

PRIVATE_TAG = "!private"
_NULL_TAG = "tag:yaml.org,2002:null"

# section -> item constructor
_NAME_SECTIONS: dict[str, Callable[[str], DependencyItem]] = {
    "top-level": TopLevel,
    "nominal": Nominal,
    "dynamic-lookup": DynamicLookup,
}


@dataclass
class DeclarationRecord:
    """Facts read from one record, before they are linked across files."""
    provides: list[DependencyItem] = field(default_factory=list)
    depends: list[tuple[DependencyItem, bool]] = field(default_factory=list)  # (item, is_cascading)
    external: list[str] = field(default_factory=list)


def parse_declaration_record(contents: str) -> DeclarationRecord:
    """Parse the text of one declaration record.

    Raises:
        DeclarationParseError: if the document or any known section is malformed.
    """
    try:
        root = yaml.compose(contents, Loader=yaml.SafeLoader)
    except yaml.YAMLError as e:
        raise DeclarationParseError("could_not_decode", detail=str(e)) from e

    if root is None:
        return DeclarationRecord()
    if not isinstance(root, yaml.MappingNode):
        raise DeclarationParseError("could_not_decode", detail="top level is not a mapping")

    record = DeclarationRecord()
    for key_node, value_node in root.value:
        if not isinstance(key_node, yaml.ScalarNode):
            raise DeclarationParseError("section_name_not_string")
        section = key_node.value

        if section == "depends-external":
            for name, is_private in _decode_names(section, value_node):
                if is_private:
                    raise DeclarationParseError("private_provider", section, detail=name)
                record.external.append(name)
            continue

        kind, _, fact = section.partition("-")
        if kind not in ("provides", "depends"):
            continue

        if fact == "member":
            entries = [
                (Member(owner, member), is_private)
                for owner, member, is_private in _decode_members(section, value_node)
            ]
        elif fact in _NAME_SECTIONS:
            make = _NAME_SECTIONS[fact]
            entries = [(make(name), is_private) for name, is_private in _decode_names(section, value_node)]
        else:
            # interface-hash and sections from newer compilers
            continue

        if kind == "provides":
            for item, is_private in entries:
                if is_private:
                    raise DeclarationParseError("private_provider", section, detail=repr(item))
                record.provides.append(item)
        else:
            for item, is_private in entries:
                record.depends.append((item, not is_private))

    return record


def _sequence_items(section: str, node: yaml.Node) -> list[yaml.Node]:
    if isinstance(node, yaml.SequenceNode):
        return node.value
    if isinstance(node, yaml.ScalarNode) and node.tag == _NULL_TAG:
        return []
    raise DeclarationParseError("section_not_sequence", section)


def _decode_names(section: str, node: yaml.Node) -> list[tuple[str, bool]]:
    names: list[tuple[str, bool]] = []
    for element in _sequence_items(section, node):
        if not isinstance(element, yaml.ScalarNode):
            raise DeclarationParseError("name_entry_not_string", section)
        names.append((element.value, element.tag == PRIVATE_TAG))
    return names


def _decode_members(section: str, node: yaml.Node) -> list[tuple[str, str, bool]]:
    members: list[tuple[str, str, bool]] = []
    for element in _sequence_items(section, node):
        pair = element.value if isinstance(element, yaml.SequenceNode) else None
        if (
            pair is None
            or len(pair) != 2
            or not all(isinstance(n, yaml.ScalarNode) for n in pair)
        ):
            raise DeclarationParseError("member_entry_not_string_pair", section)
        members.append((pair[0].value, pair[1].value, element.tag == PRIVATE_TAG))
    return members
