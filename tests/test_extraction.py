"""Tests for the extraction pipeline.

All tests build a synthetic IFC document record by record, run the pipeline,
and verify the elements, the aggregate maps and the diagnostics.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from ifcextract import ExtractionResult, extract, extract_file
from ifcextract.config import SINGLE_MATERIAL, UNKNOWN_ELEMENT, UNKNOWN_STOREY, ParseOptions
from ifcextract.errors import DiagnosticLimitExceeded, InvalidInputError, RecordSyntaxError

from conftest import StepBuilder, build_sample_model


@pytest.fixture()
def sample_result(sample_model) -> tuple[ExtractionResult, dict[str, int]]:
    text, ids = sample_model
    return extract(text), ids


def _element(result: ExtractionResult, element_id: int):
    return next(e for e in result.elements if e.id == element_id)


# ---------------------------------------------------------------------------
# Element fields
# ---------------------------------------------------------------------------


class TestElements:
    def test_elements_in_file_order(self, sample_result):
        result, ids = sample_result
        assert [e.id for e in result.elements] == [ids["wall"], ids["slab"], ids["door"]]
        assert [e.type for e in result.elements] == ["IFCWALL", "IFCSLAB", "IFCDOOR"]

    def test_wall(self, sample_result):
        result, ids = sample_result
        wall = _element(result, ids["wall"])

        assert wall.name == "Exterior Wall"
        assert wall.building_storey == "Level 1"
        assert wall.volume == "2.000"
        assert wall.is_external is True
        assert wall.is_load_bearing is True
        assert wall.psets["Pset_WallCommon"]["FireRating"] == "2HR"
        assert [m.name for m in wall.materials] == ["Brick", "Insulation"]
        assert [m.fraction for m in wall.materials] == pytest.approx([0.25, 0.75])
        assert [m.volume for m in wall.materials] == pytest.approx([0.5, 1.5])
        assert [m.thickness for m in wall.materials] == ["0.100", "0.300"]
        assert wall.geometric_representation[0].identifier == "Body"

    def test_slab_in_space(self, sample_result):
        result, ids = sample_result
        slab = _element(result, ids["slab"])

        assert slab.building_storey == "Level 1"
        assert slab.volume == "0.000"
        assert slab.is_external is False
        assert len(slab.materials) == 1
        assert slab.materials[0].layer_set_name == SINGLE_MATERIAL
        assert slab.materials[0].volume is None
        assert slab.geometric_representation == []

    def test_door_without_relationships(self, sample_result):
        result, ids = sample_result
        door = _element(result, ids["door"])

        assert door.building_storey == UNKNOWN_STOREY
        assert door.materials == []
        assert door.psets == {}

    def test_unnamed_element(self, builder: StepBuilder):
        builder.element(name=None)
        assert extract(builder.text()).elements[0].name == UNKNOWN_ELEMENT

    def test_storey_falls_back_to_structure_name(self, builder: StepBuilder):
        site = builder.spatial("IFCSITE", "Campus")
        builder.contain(site, builder.element())
        assert extract(builder.text()).elements[0].building_storey == "Campus"

    def test_type_properties_are_inherited(self, builder: StepBuilder):
        pset = builder.property_set("Pset_WallCommon", [builder.single_value("IsExternal", "IFCBOOLEAN(.T.)")])
        wall_type = builder.add(
            "IFCWALLTYPE", builder.guid(), "$", "'Type A'", "$", "$", f"(#{pset})", "$", "$", "$", ".STANDARD."
        )
        wall = builder.element()
        builder.define_type(wall_type, wall)
        override = builder.property_set("Pset_WallCommon", [builder.single_value("IsExternal", "IFCBOOLEAN(.F.)")])
        other = builder.element(name="Other")
        builder.define_type(wall_type, other)
        builder.define(override, other)
        result = extract(builder.text())

        assert _element(result, wall).is_external is True
        assert _element(result, other).is_external is False

    def test_element_types_option(self, sample_model):
        text, ids = sample_model
        result = extract(text, ParseOptions(element_types={"ifcdoor"}))
        assert [e.id for e in result.elements] == [ids["door"]]


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


class TestAggregates:
    def test_counts_by_type(self, sample_result):
        result, _ = sample_result
        assert result.counts_by_type == {"IFCWALL": 1, "IFCSLAB": 1, "IFCDOOR": 1}

    def test_counts_by_storey(self, sample_result):
        result, _ = sample_result
        assert result.counts_by_storey == {
            "Level 1": {"IFCWALL": 1, "IFCSLAB": 1},
            UNKNOWN_STOREY: {"IFCDOOR": 1},
        }

    def test_material_usage(self, sample_result):
        result, _ = sample_result
        assert result.material_usage == {
            "IFCWALL": {
                "Brick (Cavity Wall) 0.100 [Outer Leaf]": 1,
                "Insulation (Cavity Wall) 0.300 [Core]": 1,
            },
            "IFCSLAB": {"Concrete (Single Material)": 1},
        }

    def test_storey_summaries(self, sample_result):
        result, ids = sample_result
        assert len(result.storeys) == 1
        storey = result.storeys[0]
        assert storey.id == ids["storey"]
        assert storey.name == "Level 1"
        assert storey.elevation == "3.000"
        assert storey.element_ids == [ids["wall"], ids["slab"]]

    def test_document_metadata(self, sample_result):
        result, _ = sample_result
        assert result.schema_identifiers == ["IFC4"]
        assert result.length_scale == pytest.approx(0.001)
        assert result.entity_count > 0
        assert result.diagnostics == []
        assert result.has_errors is False

    def test_elements_by_type(self, sample_result):
        result, ids = sample_result
        grouped = result.elements_by_type()
        assert [e.id for e in grouped["IFCWALL"]] == [ids["wall"]]


# ---------------------------------------------------------------------------
# Geometry views
# ---------------------------------------------------------------------------


class TestGeometryViews:
    def test_both_views_from_one_run(self, sample_result):
        result, ids = sample_result
        assert result.geometry_element_ids == [ids["wall"]]
        assert [e.id for e in result.geometry_elements()] == [ids["wall"]]
        assert len(result.elements) == 3

    def test_geometry_only(self, sample_model):
        text, ids = sample_model
        result = extract(text, ParseOptions(geometry_only=True))
        assert [e.id for e in result.elements] == [ids["wall"]]
        assert result.counts_by_type == {"IFCWALL": 1}

    def test_geometry_disabled(self, sample_model):
        text, _ = sample_model
        result = extract(text, ParseOptions(include_geometry=False))
        assert len(result.elements) == 3
        assert result.geometry_element_ids == []
        assert all(e.geometric_representation is None for e in result.elements)


# ---------------------------------------------------------------------------
# Robustness
# ---------------------------------------------------------------------------


class TestRobustness:
    def test_idempotent(self, sample_model):
        text, _ = sample_model
        first = extract(text)
        second = extract(text)

        assert first.elements == second.elements
        assert first.counts_by_type == second.counts_by_type
        assert first.counts_by_storey == second.counts_by_storey
        assert first.material_usage == second.material_usage

    def test_fraction_invariant(self, builder: StepBuilder):
        walls = [builder.element(name=f"W{i}") for i in range(4)]
        builder.associate(builder.material("Concrete"), walls[0])
        layers = [builder.layer(builder.material("A"), 10), builder.layer(builder.material("B"), 20)]
        builder.associate(builder.layer_set_usage(builder.layer_set(layers)), walls[1])
        builder.skip(10)
        constituents = [builder.constituent(n, builder.material(n)) for n in ("X", "Y", "Z")]
        builder.associate(builder.constituent_set(constituents), walls[2])
        result = extract(builder.text())

        for element in result.elements:
            if not element.materials:
                continue
            fractions = [m.fraction for m in element.materials]
            equal = all(f == pytest.approx(1 / len(fractions)) for f in fractions)
            assert abs(sum(fractions) - 1.0) <= 1e-4 or equal

    def test_dangling_references(self, builder: StepBuilder):
        wall = builder.element(representation=900)
        builder.associate(901, wall)
        builder.contain(902, wall)
        builder.define(903, wall)
        builder.associate(builder.material("Brick"), 904)
        result = extract(builder.text())

        element = result.elements[0]
        assert element.materials == []
        assert element.building_storey == UNKNOWN_STOREY
        assert element.psets == {}
        assert result.geometry_element_ids == []

    def test_malformed_line_then_ten_walls(self, builder: StepBuilder):
        builder.raw("#1=IFCWALL('broken',$,'Broken',$,$,$,($,$,$;")
        builder.skip()
        for i in range(10):
            builder.element(name=f"Wall {i}")
        result = extract(builder.text())

        assert len(result.elements) == 10
        assert len(result.diagnostics) >= 1
        assert result.has_errors is True

    def test_records_sharing_lines_with_comments(self, builder: StepBuilder):
        builder.raw("#1=IFCWALL('g1',$,'A',$,$,$,$,$,$); /* exported by X */")
        builder.raw("#2=IFCWALL('g2',$,'B',$,$,$,$,$,$);#3=IFCWALL('g3',$,'C;")
        builder.raw("D',$,$,$,$,$,$);")
        builder.skip(3)
        result = extract(builder.text())

        assert [e.name for e in result.elements] == ["A", "B", "C;\nD"]
        assert result.diagnostics == []

    def test_strict_mode(self, builder: StepBuilder):
        builder.raw("#1=IFCWALL('broken',$,'Broken',$,$,$,($,$,$;")
        with pytest.raises(RecordSyntaxError):
            extract(builder.text(), ParseOptions(strict=True))

    def test_diagnostic_ceiling(self, builder: StepBuilder):
        for i in range(1, 6):
            builder.raw(f"#{i}=IFCWALL(($;")
        with pytest.raises(DiagnosticLimitExceeded):
            extract(builder.text(), ParseOptions(max_diagnostics=2))

    @pytest.mark.parametrize("document", [None, 42, ["#1=IFCWALL();"], b"\xff\xfe\x00", "DATA;\x00"])
    def test_invalid_input(self, document):
        with pytest.raises(InvalidInputError):
            extract(document)

    def test_bytes_input(self, sample_model):
        text, _ = sample_model
        assert len(extract(text.encode("utf-8")).elements) == 3

    def test_empty_document(self):
        result = extract("")
        assert result.elements == []
        assert result.diagnostics == []


# ---------------------------------------------------------------------------
# Options and files
# ---------------------------------------------------------------------------


class TestOptions:
    def test_defaults(self):
        options = ParseOptions()
        assert options.max_diagnostics == 100
        assert options.strict is False
        assert options.include_geometry is True

    def test_from_env(self):
        options = ParseOptions.from_env(
            {"IFCEXTRACT_MAX_DIAGNOSTICS": "none", "IFCEXTRACT_STRICT": "yes", "IFCEXTRACT_INCLUDE_GEOMETRY": "0"},
        )
        assert options.max_diagnostics is None
        assert options.strict is True
        assert options.include_geometry is False

    def test_numeric_ceiling_from_env(self):
        assert ParseOptions.from_env({"IFCEXTRACT_MAX_DIAGNOSTICS": " 12 "}).max_diagnostics == 12

    def test_non_numeric_ceiling_from_env(self):
        with pytest.raises(ValidationError) as info:
            ParseOptions.from_env({"IFCEXTRACT_MAX_DIAGNOSTICS": "lots"})
        assert "max_diagnostics" in str(info.value)

    def test_overrides_beat_env(self):
        options = ParseOptions.from_env({"IFCEXTRACT_MAX_DIAGNOSTICS": "5"}, max_diagnostics=7)
        assert options.max_diagnostics == 7

    def test_geometry_only_requires_geometry(self):
        with pytest.raises(ValueError):
            ParseOptions(geometry_only=True, include_geometry=False)

    def test_negative_ceiling_rejected(self):
        with pytest.raises(ValueError):
            ParseOptions(max_diagnostics=-1)


class TestExtractFile:
    def test_utf8_file(self, tmp_path: Path):
        text, ids = build_sample_model()
        path = tmp_path / "model.ifc"
        path.write_text(text, encoding="utf-8")

        result = extract_file(path)
        assert [e.id for e in result.elements] == [ids["wall"], ids["slab"], ids["door"]]

    def test_latin1_file(self, tmp_path: Path, builder: StepBuilder):
        builder.element(name="Wand Süd")
        path = tmp_path / "legacy.ifc"
        path.write_bytes(builder.text().encode("latin-1"))

        assert extract_file(str(path)).elements[0].name == "Wand Süd"

    def test_result_serialises(self, sample_result):
        result, _ = sample_result
        data = result.model_dump(mode="json")
        assert data["counts_by_type"]["IFCWALL"] == 1
        assert data["elements"][0]["materials"][0]["name"] == "Brick"
