"""Normalize raw metadata documents into the entity model.

Two source shapes are accepted:

* OData CSDL XML (``$metadata``) with FileMaker annotations.
* Data API layout metadata (``fieldMetaData`` / ``portalMetaData`` /
  ``valueLists``), either bare or wrapped in the ``response`` envelope.

Both end up as ``EntityType`` objects holding an ordered tuple of
``Property`` objects, so nothing downstream needs to know which protocol
produced them.
"""
import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Tuple, Union

from lxml import etree

from typegen.core.errors import MetadataParseError
from typegen.metadata.model import EntityModel, EntitySet, EntityType, NavigationRef, Property

log = logging.getLogger(__name__)

RawProperties = Union[Mapping[str, Mapping[str, Any]], Iterable[Mapping[str, Any]]]

CALCULATED_FIELD_TYPES = {"calculation", "summary"}


def _local(tag: Any) -> str:
    if not isinstance(tag, str):
        # comments and processing instructions
        return ""
    return etree.QName(tag).localname


def _children(element, name: str) -> List[Any]:
    return [child for child in element if _local(child.tag) == name]


def _term(annotation) -> str:
    """Last dotted segment of an annotation term (``...V1.Permissions`` -> ``Permissions``)."""
    return (annotation.get("Term") or "").rsplit(".", 1)[-1]


def _annotation_value(annotation) -> Any:
    for attr in ("String", "Bool", "Int", "EnumMember"):
        value = annotation.get(attr)
        if value is not None:
            if attr == "Bool":
                return value.strip().lower() != "false"
            return value
    members = [(child.text or "").strip() for child in annotation if _local(child.tag) == "EnumMember"]
    if members:
        return " ".join(members)
    strings = [(child.text or "").strip() for child in annotation if _local(child.tag) == "String"]
    if strings:
        return strings[0]
    # a bare boolean term means true
    return True


def _annotations(element) -> Dict[str, Any]:
    return {_term(a): _annotation_value(a) for a in _children(element, "Annotation")}


def _is_permission_readonly(permissions: Any) -> bool:
    if not isinstance(permissions, str):
        return False
    members = {p.rsplit("/", 1)[-1] for p in permissions.replace(",", " ").split()}
    return "Read" in members and not ({"ReadWrite", "Write"} & members)


def _strip_namespace(qualified: str) -> str:
    return qualified.rsplit(".", 1)[-1]


def _parse_odata_property(element, type_name: str) -> Property:
    name = element.get("Name")
    raw_type = element.get("Type")
    if not name or not raw_type:
        raise MetadataParseError(f"Property in entity type '{type_name}' is missing Name or Type")
    notes = _annotations(element)
    return Property(
        name=name,
        raw_type=raw_type,
        nullable=(element.get("Nullable") or "true").lower() != "false",
        calculated=bool(notes.get("Calculation", False)),
        is_global=bool(notes.get("Global", False)),
        permission_readonly=_is_permission_readonly(notes.get("Permissions")),
        default=element.get("DefaultValue"),
        field_id=notes.get("FieldID") if isinstance(notes.get("FieldID"), str) else None,
        comment=notes.get("FMComment") if isinstance(notes.get("FMComment"), str) else None,
        auto_generated=bool(notes.get("AutoGenerated", False)),
    )


def _parse_entity_type(element) -> EntityType:
    name = element.get("Name")
    if not name:
        raise MetadataParseError("EntityType element without a Name attribute")

    key: List[str] = []
    for key_el in _children(element, "Key"):
        for ref in _children(key_el, "PropertyRef"):
            if ref.get("Name"):
                key.append(ref.get("Name"))

    properties = _dedupe([_parse_odata_property(p, name) for p in _children(element, "Property")], name)
    navigation = tuple(
        NavigationRef(name=nav.get("Name") or "", target_type=nav.get("Type") or "")
        for nav in _children(element, "NavigationProperty")
    )
    notes = _annotations(element)
    table_id = notes.get("TableID")
    comment = notes.get("FMComment")
    return EntityType(
        name=name,
        properties=properties,
        key=tuple(key),
        navigation=navigation,
        table_id=table_id if isinstance(table_id, str) else None,
        comment=comment if isinstance(comment, str) else None,
    )


def _dedupe(properties: Iterable[Property], owner: str) -> Tuple[Property, ...]:
    seen = set()
    result = []
    for prop in properties:
        if prop.name in seen:
            log.debug("Dropping repeated field %s on %s", prop.name, owner)
            continue
        seen.add(prop.name)
        result.append(prop)
    return tuple(result)


def parse_odata_metadata(document: Union[str, bytes]) -> EntityModel:
    """Parse an OData CSDL XML document."""
    if isinstance(document, str):
        document = document.encode("utf-8")
    if not document or not document.strip():
        raise MetadataParseError("Metadata document is empty")

    parser = etree.XMLParser(resolve_entities=False, no_network=True, remove_blank_text=True)
    try:
        root = etree.fromstring(document, parser=parser)
    except etree.XMLSyntaxError as e:
        raise MetadataParseError(f"Metadata document is not well-formed XML: {e}") from e

    schemas = [el for el in root.iter() if _local(el.tag) == "Schema"]
    if not schemas:
        raise MetadataParseError("Metadata document has no Schema section")

    model = EntityModel(namespace=schemas[0].get("Namespace") or "")
    for schema in schemas:
        for type_el in _children(schema, "EntityType"):
            entity_type = _parse_entity_type(type_el)
            if entity_type.name in model.entity_types:
                raise MetadataParseError(f"Entity type '{entity_type.name}' is defined more than once")
            model.entity_types[entity_type.name] = entity_type

    for schema in schemas:
        for container in _children(schema, "EntityContainer"):
            for set_el in _children(container, "EntitySet"):
                set_name = set_el.get("Name")
                type_ref = set_el.get("EntityType")
                if not set_name or not type_ref:
                    raise MetadataParseError("EntitySet element is missing Name or EntityType")
                type_name = _strip_namespace(type_ref)
                if type_name not in model.entity_types:
                    raise MetadataParseError(
                        f"EntitySet '{set_name}' references unknown entity type '{type_name}'"
                    )
                model.entity_sets[set_name] = EntitySet(name=set_name, entity_type=type_name)

    log.debug(
        "Parsed OData metadata: %d entity types, %d entity sets",
        len(model.entity_types), len(model.entity_sets),
    )
    return model


def _iter_properties(raw: RawProperties) -> Iterator[Tuple[str, Mapping[str, Any]]]:
    """Yield ``(name, metadata)`` pairs from either a mapping or a list of dicts."""
    if isinstance(raw, Mapping):
        for name, meta in raw.items():
            yield name, (meta or {})
        return
    for meta in raw:
        if not isinstance(meta, Mapping) or not meta.get("name"):
            raise MetadataParseError(f"Field entry without a name: {meta!r}")
        yield meta["name"], meta


def _layout_property(name: str, meta: Mapping[str, Any], attach_value_list: bool) -> Property:
    raw_type = meta.get("result") or "text"
    return Property(
        name=name,
        raw_type=str(raw_type),
        nullable=not meta.get("notEmpty", False),
        calculated=(meta.get("type") or "normal") in CALCULATED_FIELD_TYPES,
        is_global=bool(meta.get("global", False)),
        permission_readonly=bool(meta.get("readOnly", False)),
        auto_generated=bool(meta.get("autoEnter", False)),
        value_list=meta.get("valueList") if attach_value_list else None,
        repetitions=int(meta.get("maxRepeat") or 1),
    )


def build_entity_type(
    name: str,
    properties: RawProperties,
    key: Iterable[str] = (),
    attach_value_lists: bool = False,
) -> EntityType:
    """Build an entity type from field-listing shaped metadata."""
    props = [_layout_property(field_name, meta, attach_value_lists) for field_name, meta in _iter_properties(properties)]
    return EntityType(name=name, properties=_dedupe(props, name), key=tuple(key))


def parse_layout_metadata(
    payload: Mapping[str, Any],
    layout_name: str,
    value_lists: str = "ignore",
) -> EntityModel:
    """Parse a Data API layout metadata payload.

    ``value_lists`` is the layout's policy (``strict``, ``allowEmpty`` or
    ``ignore``); with ``ignore`` fields are not tied to their value list.
    """
    if not isinstance(payload, Mapping):
        raise MetadataParseError("Layout metadata must be an object")
    body = payload.get("response", payload)
    if not isinstance(body, Mapping) or "fieldMetaData" not in body:
        raise MetadataParseError(f"Layout metadata for '{layout_name}' has no fieldMetaData section")

    known_lists: Dict[str, Tuple[str, ...]] = {}
    attach = value_lists != "ignore"
    try:
        for vl in body.get("valueLists") or []:
            vl_name = vl.get("name")
            if not vl_name or vl_name in known_lists:
                continue
            known_lists[vl_name] = tuple(str(v.get("value", "")) for v in vl.get("values") or [])
        main = build_entity_type(layout_name, body.get("fieldMetaData") or [], attach_value_lists=attach)
        portals = {
            portal_name: build_entity_type(portal_name, fields or [], attach_value_lists=attach)
            for portal_name, fields in (body.get("portalMetaData") or {}).items()
        }
    except (TypeError, ValueError, AttributeError) as e:
        raise MetadataParseError(f"Malformed layout metadata for '{layout_name}': {e}") from e

    # drop value list references the layout does not actually publish
    if attach:
        main = _detach_unknown_lists(main, known_lists)
        portals = {k: _detach_unknown_lists(v, known_lists) for k, v in portals.items()}

    return EntityModel(
        namespace=layout_name,
        entity_types={layout_name: main},
        entity_sets={layout_name: EntitySet(name=layout_name, entity_type=layout_name)},
        value_lists=known_lists,
        portals=portals,
    )


def _detach_unknown_lists(entity_type: EntityType, known: Mapping[str, Tuple[str, ...]]) -> EntityType:
    props = tuple(
        replace(prop, value_list=None) if prop.value_list and prop.value_list not in known else prop
        for prop in entity_type.properties
    )
    if props == entity_type.properties:
        return entity_type
    return replace(entity_type, properties=props)
