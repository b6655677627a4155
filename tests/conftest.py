"""Shared fixtures: synthetic STEP documents built record by record."""

from __future__ import annotations

from collections.abc import Iterable

import pytest

from ifcextract.config import ParseOptions


def ref(entity_id: int | None) -> str:
    return "$" if entity_id is None else f"#{entity_id}"


def refs(ids: Iterable[int]) -> str:
    return "(" + ",".join(f"#{i}" for i in ids) + ")"


def s(text: str | None) -> str:
    if text is None:
        return "$"
    return "'" + text.replace("'", "''") + "'"


class StepBuilder:
    """Build an ISO 10303-21 document with sequential entity ids."""

    def __init__(self, schema: str = "IFC4", start: int = 1) -> None:
        self.schema = schema
        self.next_id = start
        self.lines: list[str] = []
        self._guid = 0

    def guid(self) -> str:
        self._guid += 1
        return s(f"guid{self._guid:018d}")

    def add(self, type_name: str, *attributes: str) -> int:
        entity_id = self.next_id
        self.next_id += 1
        self.lines.append(f"#{entity_id}={type_name}({','.join(attributes)});")
        return entity_id

    def raw(self, line: str) -> None:
        """Append a line verbatim (used for deliberately broken records)."""
        self.lines.append(line)

    def skip(self, count: int = 1) -> None:
        self.next_id += count

    def text(self) -> str:
        return "\n".join([
            "ISO-10303-21;",
            "HEADER;",
            "FILE_DESCRIPTION(('ViewDefinition [CoordinationView]'),'2;1');",
            "FILE_NAME('model.ifc','2024-01-01T00:00:00',(''),(''),'','','');",
            f"FILE_SCHEMA(('{self.schema}'));",
            "ENDSEC;",
            "DATA;",
            *self.lines,
            "ENDSEC;",
            "END-ISO-10303-21;",
            "",
        ])

    # -- common IFC records --------------------------------------------------

    def length_unit(self, prefix: str | None = "MILLI") -> int:
        prefix_text = f".{prefix}." if prefix else "$"
        return self.add("IFCSIUNIT", "*", ".LENGTHUNIT.", prefix_text, ".METRE.")

    def volume_unit(self, prefix: str | None = None) -> int:
        prefix_text = f".{prefix}." if prefix else "$"
        return self.add("IFCSIUNIT", "*", ".VOLUMEUNIT.", prefix_text, ".CUBIC_METRE.")

    def units(self, *unit_ids: int) -> int:
        return self.add("IFCUNITASSIGNMENT", refs(unit_ids))

    def storey(self, name: str, elevation: float = 0.0) -> int:
        return self.add(
            "IFCBUILDINGSTOREY", self.guid(), "$", s(name), "$", "$", "$", "$", "$", ".ELEMENT.", repr(float(elevation))
        )

    def spatial(self, type_name: str, name: str) -> int:
        return self.add(type_name, self.guid(), "$", s(name), "$", "$", "$", "$", "$", ".ELEMENT.")

    def element(self, type_name: str = "IFCWALL", name: str | None = "Wall", representation: int | None = None) -> int:
        return self.add(type_name, self.guid(), "$", s(name), "$", "$", "$", ref(representation), "$", "$")

    def contain(self, structure: int, *elements: int) -> int:
        return self.add("IFCRELCONTAINEDINSPATIALSTRUCTURE", self.guid(), "$", "$", "$", refs(elements), ref(structure))

    def aggregate(self, parent: int, *children: int) -> int:
        return self.add("IFCRELAGGREGATES", self.guid(), "$", "$", "$", ref(parent), refs(children))

    def associate(self, material: int, *elements: int) -> int:
        return self.add("IFCRELASSOCIATESMATERIAL", self.guid(), "$", "$", "$", refs(elements), ref(material))

    def define(self, definition: int, *objects: int) -> int:
        return self.add("IFCRELDEFINESBYPROPERTIES", self.guid(), "$", "$", "$", refs(objects), ref(definition))

    def define_type(self, type_object: int, *objects: int) -> int:
        return self.add("IFCRELDEFINESBYTYPE", self.guid(), "$", "$", "$", refs(objects), ref(type_object))

    def material(self, name: str) -> int:
        return self.add("IFCMATERIAL", s(name), "$", "$")

    def layer(self, material: int | None, thickness: float, name: str | None = None) -> int:
        return self.add("IFCMATERIALLAYER", ref(material), repr(float(thickness)), "$", s(name), "$", "$", "$")

    def layer_set(self, layers: Iterable[int], name: str | None = "Wall Set") -> int:
        return self.add("IFCMATERIALLAYERSET", refs(layers), s(name), "$")

    def layer_set_usage(self, layer_set: int) -> int:
        return self.add("IFCMATERIALLAYERSETUSAGE", ref(layer_set), ".AXIS2.", ".POSITIVE.", "0.", "$")

    def constituent(self, name: str | None, material: int | None) -> int:
        return self.add("IFCMATERIALCONSTITUENT", s(name), "$", ref(material), "$", "$")

    def constituent_set(self, constituents: Iterable[int], name: str | None = "Window Set") -> int:
        return self.add("IFCMATERIALCONSTITUENTSET", s(name), "$", refs(constituents))

    def single_value(self, name: str, value: str) -> int:
        return self.add("IFCPROPERTYSINGLEVALUE", s(name), "$", value, "$")

    def property_set(self, name: str, properties: Iterable[int]) -> int:
        return self.add("IFCPROPERTYSET", self.guid(), "$", s(name), "$", refs(properties))

    def quantity_length(self, name: str, value: float) -> int:
        return self.add("IFCQUANTITYLENGTH", s(name), "$", "$", repr(float(value)), "$")

    def quantity_volume(self, name: str, value: float) -> int:
        return self.add("IFCQUANTITYVOLUME", s(name), "$", "$", repr(float(value)), "$")

    def quantity_set(self, name: str, quantities: Iterable[int]) -> int:
        return self.add("IFCELEMENTQUANTITY", self.guid(), "$", s(name), "$", "$", refs(quantities))

    def shape(self, identifier: str = "Body", rep_type: str = "SweptSolid", items: Iterable[int] = ()) -> int:
        items = list(items) or [self.add("IFCEXTRUDEDAREASOLID", "$", "$", "$", "1.")]
        context = self.add("IFCGEOMETRICREPRESENTATIONCONTEXT", "$", "'Model'", "3", "1.E-05", "$", "$")
        rep = self.add("IFCSHAPEREPRESENTATION", ref(context), s(identifier), s(rep_type), refs(items))
        return self.add("IFCPRODUCTDEFINITIONSHAPE", "$", "$", refs([rep]))


@pytest.fixture()
def builder() -> StepBuilder:
    return StepBuilder()


def build_sample_model() -> tuple[str, dict[str, int]]:
    """Return a small IFC4 model and the ids of its interesting records.

    - millimetre length unit
    - Site > Building > Storey "Level 1" (elevation 3000 mm)
    - an external load-bearing wall: Brick 100 + Insulation 300, NetVolume 2.0,
      with a body representation
    - a slab in a space aggregated into the storey, single Concrete material
    - a door without materials, geometry or containment
    """
    b = StepBuilder()
    ids: dict[str, int] = {}

    length = b.length_unit("MILLI")
    volume = b.volume_unit()
    b.units(length, volume)

    ids["site"] = b.spatial("IFCSITE", "Site")
    ids["building"] = b.spatial("IFCBUILDING", "Building")
    ids["storey"] = b.storey("Level 1", 3000)
    ids["space"] = b.spatial("IFCSPACE", "Room 1")
    b.aggregate(ids["site"], ids["building"])
    b.aggregate(ids["building"], ids["storey"])
    b.aggregate(ids["storey"], ids["space"])

    shape = b.shape()
    ids["wall"] = b.element("IFCWALL", "Exterior Wall", representation=shape)
    ids["slab"] = b.element("IFCSLAB", "Ground Slab")
    ids["door"] = b.element("IFCDOOR", "Entry Door")
    b.contain(ids["storey"], ids["wall"])
    b.contain(ids["space"], ids["slab"])

    brick = b.material("Brick")
    insulation = b.material("Insulation")
    layers = [b.layer(brick, 100, "Outer Leaf"), b.layer(insulation, 300, "Core")]
    usage = b.layer_set_usage(b.layer_set(layers, "Cavity Wall"))
    b.associate(usage, ids["wall"])
    b.associate(b.material("Concrete"), ids["slab"])

    common = b.property_set("Pset_WallCommon", [
        b.single_value("IsExternal", "IFCBOOLEAN(.T.)"),
        b.single_value("LoadBearing", "IFCBOOLEAN(.T.)"),
        b.single_value("FireRating", "IFCLABEL('2HR')"),
    ])
    b.define(common, ids["wall"])
    qto = b.quantity_set("Qto_WallBaseQuantities", [
        b.quantity_volume("GrossVolume", 2.5),
        b.quantity_volume("NetVolume", 2.0),
    ])
    b.define(qto, ids["wall"])

    return b.text(), ids


@pytest.fixture()
def sample_model() -> tuple[str, dict[str, int]]:
    return build_sample_model()


@pytest.fixture()
def lenient_options() -> ParseOptions:
    return ParseOptions(max_diagnostics=None)
