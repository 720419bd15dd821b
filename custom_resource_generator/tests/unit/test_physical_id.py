import dataclasses

import pytest

from custom_resource_generator.codec import ResponseFieldNotFoundError
from custom_resource_generator.helpers import ConfigurationError
from custom_resource_generator.physical_id import PhysicalResourceId, PhysicalResourceIdKind


class TestPhysicalResourceId:
    def test_literal(self):
        physical_id = PhysicalResourceId.from_literal("loggroup")

        assert physical_id.kind is PhysicalResourceIdKind.LITERAL
        assert not physical_id.is_response_derived
        assert physical_id.to_dict() == {"id": "loggroup"}

    def test_from_response_path(self):
        physical_id = PhysicalResourceId.from_response_path("ETag")

        assert physical_id.is_response_derived
        assert physical_id.to_dict() == {"responsePath": "ETag"}

    def test_is_immutable(self):
        physical_id = PhysicalResourceId.from_literal("id")

        with pytest.raises(dataclasses.FrozenInstanceError):
            physical_id.value = "other"

    @pytest.mark.parametrize(
        "factory", [PhysicalResourceId.from_literal, PhysicalResourceId.from_response_path]
    )
    def test_empty_input_is_rejected(self, factory):
        with pytest.raises(ConfigurationError):
            factory("")

    def test_from_dict_wire_forms(self):
        assert PhysicalResourceId.from_dict({"id": "x"}) == PhysicalResourceId.from_literal("x")
        assert PhysicalResourceId.from_dict(
            {"responsePath": "A.B"}
        ) == PhysicalResourceId.from_response_path("A.B")

    @pytest.mark.parametrize(
        "data", [{}, {"id": "x", "responsePath": "y"}, {"path": "y"}, "x"]
    )
    def test_from_dict_requires_exactly_one_known_key(self, data):
        with pytest.raises(ConfigurationError, match="`id` or `responsePath`"):
            PhysicalResourceId.from_dict(data)

    def test_resolve_literal_ignores_response(self):
        assert PhysicalResourceId.from_literal("id").resolve({}) == "id"

    def test_resolve_reads_response_path(self):
        physical_id = PhysicalResourceId.from_response_path("Object.ETag")

        assert physical_id.resolve({"Object": {"ETag": "abc"}}) == "abc"

    def test_resolve_missing_path(self):
        physical_id = PhysicalResourceId.from_response_path("ETag")

        with pytest.raises(ResponseFieldNotFoundError):
            physical_id.resolve({})
