"""
Group a StatData store by component, instance and bean.

A section key ``eventBuilder-2 / backEnd`` becomes component ``eventBuilder``,
instance 2, bean ``backEnd``.  Front ends use this tree to lay out their
section choices.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from daqmoni.section_key import SectionKey

logger = logging.getLogger(__name__)


@dataclass
class InstanceBean:
    name: str
    item_names: List[str]
    key: SectionKey

    def __iter__(self):
        return iter(self.item_names)

    def __len__(self):
        return len(self.item_names)

    def __str__(self):
        return self.name


@dataclass
class ComponentInstance:
    number: int
    beans: List[InstanceBean] = field(default_factory=list)

    def create(self, name, item_names, key) -> InstanceBean:
        bean = InstanceBean(name, item_names, key)
        self.beans.append(bean)
        return bean

    def get(self, name) -> Optional[InstanceBean]:
        for bean in self.beans:
            if bean.name == name:
                return bean
        return None

    def __iter__(self):
        return iter(self.beans)


@dataclass
class ComponentData:
    name: str
    instances: List[ComponentInstance] = field(default_factory=list)

    def create(self, number) -> ComponentInstance:
        inst = ComponentInstance(number)
        self.instances.append(inst)
        return inst

    def get(self, number) -> Optional[ComponentInstance]:
        for inst in self.instances:
            if inst.number == number:
                return inst
        return None

    def first(self) -> Optional[ComponentInstance]:
        return self.instances[0] if self.instances else None

    def is_single_instance(self):
        return len(self.instances) == 1

    def __iter__(self):
        return iter(self.instances)


def select_sections(stat_data, include=(), exclude=()) -> List[SectionKey]:
    """
    Section keys whose section name is in *include*, or, when no include list
    is given, whose section name is not in *exclude*.  Names that match no
    section are ignored.
    """
    if include and exclude:
        raise ValueError("Cannot specify both included and excluded sections")

    keys = stat_data.sections()
    if include:
        return [k for k in keys if k.section in include]
    return [k for k in keys if k.section not in exclude]


def extract(stat_data, keys=None) -> List[ComponentData]:
    """Components in order of their first section key."""
    found: List[ComponentData] = []
    by_name: Dict[str, ComponentData] = {}

    if keys is None:
        keys = stat_data.sections()

    for key in keys:
        names = stat_data.names(key)
        if not names:
            continue

        comp_name = key.component()
        inst_num = key.instance()
        bean_name = key.section

        comp = by_name.get(comp_name)
        if comp is None:
            comp = ComponentData(comp_name)
            by_name[comp_name] = comp
            found.append(comp)

        inst = comp.get(inst_num)
        if inst is None:
            inst = comp.create(inst_num)

        if inst.get(bean_name) is not None:
            logger.error(f"Found multiple instances of component \"{comp_name}\""
                         f" instance {inst_num} bean \"{bean_name}\"")
            continue

        inst.create(bean_name, names, key)

    return found
