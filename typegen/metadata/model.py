"""In-memory entity model shared by both metadata protocols."""
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class Property:
    """One field of an entity type."""
    name: str
    raw_type: str
    nullable: bool = True
    calculated: bool = False
    is_global: bool = False
    permission_readonly: bool = False
    default: Optional[str] = None
    field_id: Optional[str] = None
    comment: Optional[str] = None
    auto_generated: bool = False
    value_list: Optional[str] = None
    repetitions: int = 1

    @property
    def read_only(self) -> bool:
        return self.calculated or self.is_global or self.permission_readonly


@dataclass(frozen=True)
class NavigationRef:
    name: str
    target_type: str


@dataclass(frozen=True)
class EntityType:
    name: str
    properties: Tuple[Property, ...]
    key: Tuple[str, ...] = ()
    navigation: Tuple[NavigationRef, ...] = ()
    table_id: Optional[str] = None
    comment: Optional[str] = None

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.properties)

    def property(self, name: str) -> Optional[Property]:
        for prop in self.properties:
            if prop.name == name:
                return prop
        return None

    def is_key(self, name: str) -> bool:
        return name in self.key


@dataclass(frozen=True)
class EntitySet:
    name: str
    entity_type: str


@dataclass
class EntityModel:
    """Result of parsing one metadata document.

    ``entity_types`` and ``entity_sets`` keep document order.
    """
    namespace: str = ""
    entity_types: Dict[str, EntityType] = field(default_factory=dict)
    entity_sets: Dict[str, EntitySet] = field(default_factory=dict)
    value_lists: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    portals: Dict[str, EntityType] = field(default_factory=dict)

    def entity_type_for(self, entity_set_name: str) -> Optional[EntityType]:
        entity_set = self.entity_sets.get(entity_set_name)
        if entity_set is None:
            return None
        return self.entity_types.get(entity_set.entity_type)

    def entity_set_for_type(self, type_name: str) -> Optional[str]:
        """First entity set bound to ``type_name``, used for navigation paths."""
        for name, entity_set in self.entity_sets.items():
            if entity_set.entity_type == type_name:
                return name
        return None
