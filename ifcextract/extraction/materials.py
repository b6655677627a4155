"""Normalise the IFC material representations into ``MaterialFact`` lists.

The relating material of an ``IFCRELASSOCIATESMATERIAL`` is classified into a
:class:`MaterialKind` and handled by the matching branch.  Every branch
produces raw fractions that then go through the same two-stage correction in
:func:`normalize_fractions`.
"""

from __future__ import annotations

import logging
from enum import Enum

from ifcextract.config import (
    FRACTION_EPSILON,
    MATERIAL_LIST,
    SINGLE_MATERIAL,
    UNKNOWN_CONSTITUENT_SET,
    UNKNOWN_LAYER_SET,
    UNKNOWN_MATERIAL,
)
from ifcextract.extraction.relationships import RelationshipIndex
from ifcextract.extraction.thickness import ConstituentContext, resolve_weight
from ifcextract.extraction.units import UnitScales
from ifcextract.models.element import MaterialFact
from ifcextract.models.record import EntityRecord
from ifcextract.parsing.store import EntityStore

logger = logging.getLogger(__name__)

# IfcMaterial(Name, Description, Category)
_MATERIAL_NAME = 0
# IfcMaterialLayerSetUsage(ForLayerSet, ...) / IfcMaterialProfileSetUsage(ForProfileSet, ...)
_USAGE_SET = 0
# IfcMaterialLayerSet(MaterialLayers, LayerSetName, Description)
_LAYER_SET_LAYERS = 0
_LAYER_SET_NAME = 1
# IfcMaterialLayer(Material, LayerThickness, IsVentilated, Name, ...)
_LAYER_MATERIAL = 0
_LAYER_THICKNESS = 1
_LAYER_NAME = 3
# IfcMaterialConstituentSet(Name, Description, MaterialConstituents)
_CONSTITUENT_SET_NAME = 0
_CONSTITUENT_SET_MEMBERS = 2
# IfcMaterialConstituent(Name, Description, Material, Fraction, Category)
_CONSTITUENT_NAME = 0
_CONSTITUENT_MATERIAL = 2
# IfcMaterialList(Materials)
_LIST_MATERIALS = 0
# IfcMaterialProfileSet(Name, Description, MaterialProfiles, CompositeProfile)
_PROFILE_SET_NAME = 0
_PROFILE_SET_PROFILES = 2
# IfcMaterialProfile(Name, Description, Material, Profile, Priority, Category)
_PROFILE_NAME = 0
_PROFILE_MATERIAL = 2


class MaterialKind(str, Enum):
    """Material representations the resolver understands."""

    MATERIAL = "material"
    LAYER_SET_USAGE = "layer_set_usage"
    LAYER_SET = "layer_set"
    CONSTITUENT_SET = "constituent_set"
    MATERIAL_LIST = "material_list"
    PROFILE_SET = "profile_set"
    PROFILE_SET_USAGE = "profile_set_usage"
    UNKNOWN = "unknown"


_KINDS: dict[str, MaterialKind] = {
    "IFCMATERIAL": MaterialKind.MATERIAL,
    "IFCMATERIALLAYERSETUSAGE": MaterialKind.LAYER_SET_USAGE,
    "IFCMATERIALLAYERSET": MaterialKind.LAYER_SET,
    "IFCMATERIALCONSTITUENTSET": MaterialKind.CONSTITUENT_SET,
    "IFCMATERIALLIST": MaterialKind.MATERIAL_LIST,
    "IFCMATERIALPROFILESET": MaterialKind.PROFILE_SET,
    "IFCMATERIALPROFILESETUSAGE": MaterialKind.PROFILE_SET_USAGE,
}


def classify_material(record: EntityRecord | None) -> MaterialKind:
    if record is None:
        return MaterialKind.UNKNOWN
    return _KINDS.get(record.type, MaterialKind.UNKNOWN)


def compute_fractions(weights: list[float]) -> list[float]:
    """Raw fractions ``weight / total``, where only positive weights count.

    A non-positive weight always gets fraction 0.
    """
    total = sum(w for w in weights if w > 0)
    if total <= 0:
        return [0.0] * len(weights)
    return [w / total if w > 0 else 0.0 for w in weights]


def normalize_fractions(fractions: list[float]) -> list[float]:
    """Apply the equal-split / renormalise correction.

    If every fraction is (nearly) zero there was no usable weighting and the
    materials share equally.  Otherwise fractions that do not add up to 1.0
    are divided by their total.
    """
    if not fractions:
        return []
    if all(abs(f) < FRACTION_EPSILON for f in fractions):
        equal = 1.0 / len(fractions)
        return [equal] * len(fractions)
    total = sum(fractions)
    if abs(total - 1.0) > FRACTION_EPSILON and total > 0:
        return [f / total for f in fractions]
    return list(fractions)


def _with_fractions(facts: list[MaterialFact], weights: list[float]) -> list[MaterialFact]:
    fractions = normalize_fractions(compute_fractions(weights))
    return [fact.model_copy(update={"fraction": fraction}) for fact, fraction in zip(facts, fractions)]


class MaterialResolver:
    """Turn relating-material records into normalised ``MaterialFact`` lists.

    Results are cached per material id; several relationships commonly share
    one layer set usage.
    """

    def __init__(self, store: EntityStore, index: RelationshipIndex, units: UnitScales | None = None) -> None:
        self.store = store
        self.index = index
        self.units = units or UnitScales()
        self._cache: dict[int, list[MaterialFact]] = {}
        self._branches = {
            MaterialKind.MATERIAL: self._single,
            MaterialKind.LAYER_SET_USAGE: self._layer_set_usage,
            MaterialKind.LAYER_SET: self._layer_set,
            MaterialKind.CONSTITUENT_SET: self._constituent_set,
            MaterialKind.MATERIAL_LIST: self._material_list,
            MaterialKind.PROFILE_SET: self._profile_set,
            MaterialKind.PROFILE_SET_USAGE: self._profile_set_usage,
        }

    def __call__(self, material_id: int) -> list[MaterialFact]:
        return self.resolve(material_id)

    def resolve(self, material_id: int) -> list[MaterialFact]:
        if material_id in self._cache:
            return self._cache[material_id]
        record = self.store.get(material_id)
        kind = classify_material(record)
        branch = self._branches.get(kind)
        if branch is None:
            if record is not None:
                logger.info("Ignoring unsupported material representation %s (#%d)", record.type, record.id)
            facts: list[MaterialFact] = []
        else:
            facts = branch(record)
        self._cache[material_id] = facts
        return facts

    def _material_name(self, material: EntityRecord | None) -> str | None:
        if material is None or material.type != "IFCMATERIAL":
            return None
        return material.text(_MATERIAL_NAME)

    def _thickness_text(self, weight: float) -> str | None:
        return self.units.length_text(weight) if weight > 0 else None

    def _single(self, material: EntityRecord) -> list[MaterialFact]:
        return [MaterialFact(
            name=self._material_name(material) or UNKNOWN_MATERIAL,
            fraction=1.0,
            layer_set_name=SINGLE_MATERIAL,
        )]

    def _layer_set_usage(self, usage: EntityRecord) -> list[MaterialFact]:
        layer_set = self.store.resolve(usage.attr(_USAGE_SET))
        if layer_set is None or layer_set.type != "IFCMATERIALLAYERSET":
            logger.debug("#%d: layer set usage without a layer set", usage.id)
            return []
        return self._layer_set(layer_set)

    def _layer_set(self, layer_set: EntityRecord) -> list[MaterialFact]:
        set_name = layer_set.text(_LAYER_SET_NAME) or UNKNOWN_LAYER_SET
        facts: list[MaterialFact] = []
        weights: list[float] = []
        for layer in self.store.resolve_all(layer_set.references(_LAYER_SET_LAYERS)):
            if layer.type != "IFCMATERIALLAYER":
                continue
            thickness = float(layer.number(_LAYER_THICKNESS) or 0.0)
            material = self.store.resolve(layer.attr(_LAYER_MATERIAL))
            facts.append(MaterialFact(
                name=self._material_name(material) or UNKNOWN_MATERIAL,
                layer_set_name=set_name,
                thickness=self._thickness_text(thickness),
                layer_name=layer.text(_LAYER_NAME),
            ))
            weights.append(thickness)
        return _with_fractions(facts, weights)

    def _constituent_set(self, constituent_set: EntityRecord) -> list[MaterialFact]:
        set_name = constituent_set.text(_CONSTITUENT_SET_NAME) or UNKNOWN_CONSTITUENT_SET
        facts: list[MaterialFact] = []
        weights: list[float] = []
        for constituent in self.store.resolve_all(constituent_set.references(_CONSTITUENT_SET_MEMBERS)):
            if constituent.type != "IFCMATERIALCONSTITUENT":
                continue
            constituent_name = constituent.text(_CONSTITUENT_NAME)
            material = self.store.resolve(constituent.attr(_CONSTITUENT_MATERIAL))
            material_name = self._material_name(material)
            weight = resolve_weight(ConstituentContext(
                store=self.store,
                index=self.index,
                constituent=constituent,
                name=constituent_name,
                material=material,
                material_name=material_name,
            ))

            if material_name:
                name = material_name
            elif constituent_name:
                name = constituent_name.split(" (")[0]
            else:
                name = UNKNOWN_MATERIAL

            facts.append(MaterialFact(
                name=name,
                layer_set_name=set_name,
                thickness=self._thickness_text(weight),
                layer_name=constituent_name,
            ))
            weights.append(weight)
        return _with_fractions(facts, weights)

    def _material_list(self, material_list: EntityRecord) -> list[MaterialFact]:
        facts = [
            MaterialFact(name=self._material_name(m) or UNKNOWN_MATERIAL, layer_set_name=MATERIAL_LIST)
            for m in self.store.resolve_all(material_list.references(_LIST_MATERIALS))
        ]
        return _with_fractions(facts, [0.0] * len(facts))

    def _profile_set_usage(self, usage: EntityRecord) -> list[MaterialFact]:
        profile_set = self.store.resolve(usage.attr(_USAGE_SET))
        if profile_set is None or profile_set.type != "IFCMATERIALPROFILESET":
            logger.debug("#%d: profile set usage without a profile set", usage.id)
            return []
        return self._profile_set(profile_set)

    def _profile_set(self, profile_set: EntityRecord) -> list[MaterialFact]:
        set_name = profile_set.text(_PROFILE_SET_NAME) or UNKNOWN_LAYER_SET
        facts: list[MaterialFact] = []
        for profile in self.store.resolve_all(profile_set.references(_PROFILE_SET_PROFILES)):
            if profile.type != "IFCMATERIALPROFILE":
                continue
            material = self.store.resolve(profile.attr(_PROFILE_MATERIAL))
            facts.append(MaterialFact(
                name=self._material_name(material) or UNKNOWN_MATERIAL,
                layer_set_name=set_name,
                layer_name=profile.text(_PROFILE_NAME),
            ))
        return _with_fractions(facts, [0.0] * len(facts))
