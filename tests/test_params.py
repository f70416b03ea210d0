import pydantic
import pytest

from dircli.models import Issue
from dircli.params import (
    ParamMapping,
    ParamsDefinition,
    ValidationFailure,
    ValidationSuccess,
    build_model,
    extract_data,
    validate_params,
)
from dircli.validation import Field, FieldSet

HELLO = ParamsDefinition.from_value(
    {"mappings": [{"field": "name", "type": "string", "argIndex": 0, "option": "name", "defaultValue": "World"}]}
)

AGE = ParamsDefinition(mappings=(ParamMapping("age", "number", arg_index=0, default=18),))


class TestHello:
    """The hello command: one optional name with a default."""

    def test_default(self):
        assert validate_params([], {}, HELLO) == ValidationSuccess({"name": "World"})

    def test_positional(self):
        assert validate_params(["Alice"], {}, HELLO) == ValidationSuccess({"name": "Alice"})

    def test_option_overrides_positional(self):
        assert validate_params(["Alice"], {"name": "Bob"}, HELLO) == ValidationSuccess({"name": "Bob"})


class TestNumbers:
    """Number coercion of synthesized models."""

    def test_default(self):
        assert validate_params([], {}, AGE) == ValidationSuccess({"age": 18})

    def test_integral_string(self):
        result = validate_params(["42"], {}, AGE)
        assert result.data == {"age": 42}
        assert isinstance(result.data["age"], int)

    def test_float(self):
        assert validate_params(["1.5"], {}, AGE).data == {"age": 1.5}

    def test_not_a_number(self):
        result = validate_params(["abc"], {}, AGE)
        assert isinstance(result, ValidationFailure)
        assert not result.success
        assert [issue.path for issue in result.error.issues] == [("age",)]
        assert "Invalid number" in result.error.issues[0].message

    @pytest.mark.parametrize("value", ["nan", "NaN", "inf", "-Infinity"])
    def test_non_finite(self, value):
        result = validate_params([value], {}, AGE)
        assert isinstance(result, ValidationFailure)
        assert [issue.path for issue in result.error.issues] == [("age",)]
        assert "Invalid number" in result.error.issues[0].message


def test_mapping_types():
    definition = ParamsDefinition.from_value(
        [
            {"field": "force", "type": "boolean", "option": "force"},
            {"field": "tags", "type": "array", "option": "tags"},
            {"field": "extra", "type": "object", "option": "extra"},
        ]
    )
    result = validate_params([], {"force": "yes", "tags": "a, b", "extra": '{"k": 1}'}, definition)
    assert result == ValidationSuccess({"force": True, "tags": ["a", "b"], "extra": {"k": 1}})

    # flags given without a value are already booleans
    assert validate_params([], {"force": True}, definition).data == {"force": True}

    result = validate_params([], {"force": "maybe", "extra": "{nope"}, definition)
    assert isinstance(result, ValidationFailure)
    assert {issue.path for issue in result.error.issues} == {("force",), ("extra",)}


def test_required_mapping():
    definition = ParamsDefinition(mappings=(ParamMapping("email", arg_index=0, required=True),))
    result = validate_params([], {}, definition)
    assert isinstance(result, ValidationFailure)
    assert result.error.issues == (Issue(("email",), "email is required"),)


def test_absent_optional_values_are_omitted():
    definition = ParamsDefinition(mappings=(ParamMapping("name", arg_index=0), ParamMapping("verbose", "boolean", option="verbose")))
    assert validate_params(["x"], {}, definition).data == {"name": "x"}


def test_mappings_with_manual_schema():
    definition = ParamsDefinition.from_value(
        {
            "mappings": [
                {"field": "name", "arg_index": 0},
                {"field": "age", "arg_index": 1, "option": "age"},
            ],
            "schema": {
                "name": {"type": "string", "required": True, "minLength": 2},
                "age": {"type": "integer", "min": 0, "max": 150},
            },
        }
    )
    assert isinstance(definition.schema, FieldSet)
    assert validate_params(["Al", "30"], {}, definition).data == {"name": "Al", "age": 30}

    result = validate_params(["A"], {"age": "200"}, definition)
    assert result.error.issues == (
        Issue(("name",), "name must be at least 2 long"),
        Issue(("age",), "age cannot exceed 150"),
    )


def test_mappings_with_pydantic_schema():
    class User(pydantic.BaseModel):
        name: str
        age: int = 0

    definition = ParamsDefinition.from_value(
        {"mappings": [{"field": "name", "arg_index": 0}, {"field": "age", "option": "age"}], "schema": User}
    )
    assert validate_params(["Ann"], {"age": "41"}, definition).data == {"name": "Ann", "age": 41}

    result = validate_params([], {}, definition)
    assert isinstance(result, ValidationFailure)
    assert result.error.issues[0].path == ("name",)


def test_schema_only_uses_positional_names():
    class Copy(pydantic.BaseModel):
        arg0: str
        arg1: str
        force: bool = False

    definition = ParamsDefinition.from_value(Copy)
    assert definition.mappings == ()
    assert validate_params(["a.txt", "b.txt"], {"force": True}, definition).data == {"arg0": "a.txt", "arg1": "b.txt", "force": True}


def test_manual_schema_only():
    definition = ParamsDefinition.from_value(FieldSet(Field("arg0", int, required=True)))
    assert validate_params(["5"], {}, definition).data == {"arg0": 5}


def test_no_definition():
    assert validate_params(["x"], {"y": 1}, None) == ValidationSuccess({})
    assert validate_params(["x"], {"y": True}, ParamsDefinition()) == ValidationSuccess({"arg0": "x", "y": True})


def test_never_raises(mocker):
    mocker.patch("dircli.params.extract_data", side_effect=RuntimeError("boom"))
    result = validate_params([], {}, HELLO)
    assert isinstance(result, ValidationFailure)
    assert result.error.message == "boom"
    assert result.error.issues == ()


def test_extract_data_precedence():
    mappings = (ParamMapping("n", arg_index=1, option="n", default="d"),)
    assert extract_data(["a", "b"], {"n": "o"}, mappings) == {"n": "o"}
    assert extract_data(["a", "b"], {}, mappings) == {"n": "b"}
    assert extract_data(["a"], {}, mappings) == {"n": "d"}


def test_mapping_rejects_unknown_type():
    with pytest.raises(ValueError, match="Unsupported type 'date'"):
        ParamMapping("when", "date")


def test_definition_rejects_garbage():
    with pytest.raises(TypeError):
        ParamsDefinition.from_value(42)


def test_build_model():
    model = build_model((ParamMapping("id", "number", required=True), ParamMapping("tags", "array")))
    instance = model.model_validate({"id": "3", "tags": "x,y"})
    assert instance.id == 3
    assert instance.tags == ["x", "y"]
    with pytest.raises(pydantic.ValidationError):
        model.model_validate({})
