# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Tests for parameter accessor synthesis."""

import pytest

from cdevparser.catalog import ParameterDescriptor, ParamType, extract_catalog
from cdevparser.device import EntryPoint
from sp2cslib.accessors import (
    AccessorClassifier,
    ArbitraryGet,
    ArbitrarySet,
    DefaultGet,
    DefaultSet,
    DefaultSetWithGiven,
    ParameterSet,
    Unrecognized,
)
from sp2cslib.diagnostics import (
    COULD_NOT_PROCESS_ID,
    Diagnostics,
    FALLTHROUGH_CASE,
    UNRESOLVED_PARAMETER_ID,
)
from sp2cslib.exc import InvalidDeclarationStateError


def _descriptor(pid, name, ptype=ParamType.REAL, description="Description"):
    return ParameterDescriptor(id=pid, access="IOP", names=[name], type=ptype, description=description)


class TestClassifier:
    """Tests for case body shapes."""

    classifier = AccessorClassifier()

    def test_default_set_with_given(self):
        """A field assignment with its given flag is a flagged setter."""
        shape = self.classifier.classify_set("here->val = value->rValue; here->valGiven = TRUE; return(OK);")
        assert shape == DefaultSetWithGiven("val", "valGiven")

    def test_default_set(self):
        """A lone field assignment is a plain setter."""
        shape = self.classifier.classify_set("here->off = value->iValue;\n    break;")
        assert shape == DefaultSet("off")

    def test_default_get(self):
        """Returning a lone field is a plain getter."""
        assert self.classifier.classify_get("value->rValue = here->val; break;") == DefaultGet("val")

    def test_arbitrary_set(self):
        """Flag pairs are rewritten into Set calls."""
        shape = self.classifier.classify_set(
            "here->a = value->rValue * 2; here->aGiven = TRUE; here->b = 1; break;"
        )
        assert isinstance(shape, ArbitrarySet)
        assert shape.fields == ["a", "b"]
        assert shape.given == {"aGiven": "a"}
        assert "a.Set(value->rValue * 2);" in shape.body

    def test_arbitrary_get(self):
        """A getter computing from fields lists the fields it reads."""
        shape = self.classifier.classify_get("value->rValue = here->a * 2; break;")
        assert shape == ArbitraryGet(["a"])

    def test_unrecognized(self):
        """Bodies that only return an error have no shape."""
        assert self.classifier.classify_set("return(E_BADPARM);") == Unrecognized()
        assert self.classifier.classify_get("return(E_BADPARM);") == Unrecognized()

    def test_custom_names(self):
        """Loop and value pointer names are configurable."""
        classifier = AccessorClassifier(set_here="inst", set_value="v")
        assert classifier.classify_set("inst->x = v->rValue; break;") == DefaultSet("x")

    def test_format_getter(self):
        """A getter body becomes a return statement."""
        assert self.classifier.format_getter("value->rValue = here->a + 1;\nreturn(OK);") == "return a + 1;"

    def test_format_setter(self):
        """A setter body assigns the incoming value."""
        assert self.classifier.format_setter("here->a = value->rValue; break;") == "a = value;"


class TestParameterSet:
    """Tests for combining setters and getters into declarations."""

    def test_flagged_field(self):
        """A given flag pair with a plain getter becomes a Parameter."""
        params = ParameterSet(
            {"X_VAL": _descriptor("X_VAL", "val", description="Value")},
            {"X_VAL": "here->val = value->rValue; here->valGiven = TRUE; return(OK);"},
            {"X_VAL": "value->rValue = here->val; break;"},
        )
        assert params.declarations == {
            "val": '[SpiceName("val"), SpiceInfo("Value")]\npublic Parameter val { get; } = new Parameter();'
        }
        assert params.given_variables == {"valGiven": "val"}
        assert params.variables == {"val"}

    def test_generic_flagged_field(self):
        """Non-real flagged fields use the generic Parameter."""
        params = ParameterSet(
            {"X_S": _descriptor("X_S", "s", ParamType.STRING)},
            {"X_S": "here->s = value->sValue; here->sGiven = TRUE; break;"},
        )
        assert "public Parameter<string> s { get; } = new Parameter<string>();" in params.declarations["s"]

    def test_plain_field(self):
        """A field without a given flag becomes an auto-property."""
        params = ParameterSet(
            {"X_W": _descriptor("X_W", "w")},
            {"X_W": "here->w = value->rValue; break;"},
            {"X_W": "value->rValue = here->w; break;"},
        )
        assert params.declarations["w"].endswith("public double w { get; set; }")
        assert params.given_variables == {}

    def test_aliases(self):
        """Every alias gets its own SpiceName attribute."""
        info = ParameterDescriptor(id="X_A", access="IOP", names=["area", "a"], description="Area")
        params = ParameterSet({"X_A": info}, {"X_A": "here->ar = value->rValue; break;"})
        assert params.declarations["ar"].startswith('[SpiceName("area"), SpiceName("a"), SpiceInfo("Area")]')

    def test_custom_property(self):
        """Bodies sharing a field become a property named by the ID."""
        params = ParameterSet(
            {"X_SUM": _descriptor("X_SUM", "sum")},
            {"X_SUM": "here->a = value->rValue; here->b = 2 * value->rValue; break;"},
            {"X_SUM": "value->rValue = here->b / 2; break;"},
        )
        text = params.declarations["b"]
        assert "public double X_SUM" in text
        assert "return b / 2;" in text
        assert "b = 2 * value;" in text
        assert text.endswith("private double b;")

    def test_custom_property_flagged_backing(self):
        """A custom property keeps a flagged backing field."""
        params = ParameterSet(
            {"X_T": _descriptor("X_T", "t")},
            {"X_T": "here->t = value->rValue + CONSTCtoK; here->tGiven = TRUE; break;"},
            {"X_T": "value->rValue = here->t - CONSTCtoK; break;"},
        )
        text = params.declarations["t"]
        assert "t.Set(value + CONSTCtoK);" in text
        assert text.endswith("public Parameter t { get; } = new Parameter();")
        assert params.given_variables == {"tGiven": "t"}

    def test_setter_method(self):
        """A setter that touches no field becomes a free method."""
        params = ParameterSet(
            {"X_IC": _descriptor("X_IC", "ic")},
            {"X_IC": "switch (value->v.numValue) { case 1: f(); }\nbreak;"},
        )
        assert params.declarations == {}
        assert params.methods[0].split("\n")[1] == "public void SetX_IC(double value)"

    def test_getter_method(self):
        """A getter that reads circuit state becomes a method."""
        params = ParameterSet(
            {"X_VD": _descriptor("X_VD", "vd")},
            get_cases={"X_VD": "value->rValue = *(ckt->CKTstate0 + here->Xvoltage);\nreturn(OK);"},
        )
        assert "public double GetX_VD(Circuit ckt)" in params.methods[0]

    def test_read_only_field(self):
        """A field with only a getter has a private setter."""
        params = ParameterSet({"X_R": _descriptor("X_R", "r")}, get_cases={"X_R": "value->rValue = here->r; break;"})
        assert params.declarations["r"].endswith("public double r { get; private set; }")

    def test_unresolved_id(self):
        """A case for an ID missing from the catalog is reported."""
        diagnostics = Diagnostics()
        ParameterSet({}, {"X_NONE": "here->n = value->rValue; break;"}, diagnostics=diagnostics)
        assert [d.kind for d in diagnostics] == [UNRESOLVED_PARAMETER_ID]

    def test_fallthrough(self):
        """An ID whose bodies are all empty is skipped."""
        diagnostics = Diagnostics()
        params = ParameterSet(
            {"X_A": _descriptor("X_A", "a"), "X_B": _descriptor("X_B", "b")},
            {"X_A": "", "X_B": "here->b = value->rValue; break;"},
            diagnostics=diagnostics,
        )
        assert list(params.declarations) == ["b"]
        assert [d.kind for d in diagnostics] == [FALLTHROUGH_CASE]

    def test_irreconcilable(self):
        """Setter and getter on different fields are reported and dropped."""
        diagnostics = Diagnostics()
        params = ParameterSet(
            {"X_Q": _descriptor("X_Q", "q")},
            {"X_Q": "here->a = value->rValue * 2; break;"},
            {"X_Q": "value->rValue = here->c * 2; break;"},
            diagnostics=diagnostics,
        )
        assert params.declarations == {}
        assert params.methods == []
        assert [d.kind for d in diagnostics] == [COULD_NOT_PROCESS_ID]

    def test_duplicate_field(self):
        """Two IDs writing the same field keep only the first."""
        diagnostics = Diagnostics()
        params = ParameterSet(
            {"X_A": _descriptor("X_A", "a"), "X_B": _descriptor("X_B", "b")},
            {"X_A": "here->a = value->rValue; break;", "X_B": "here->a = value->rValue; break;"},
            diagnostics=diagnostics,
        )
        assert list(params.declarations) == ["a"]
        assert [d.kind for d in diagnostics] == [COULD_NOT_PROCESS_ID]

    def test_invalid_state(self):
        """A declaration with neither setter nor getter is rejected."""
        params = ParameterSet({})
        with pytest.raises(InvalidDeclarationStateError):
            params.add_declaration(_descriptor("X_A", "a"), None, None)


class TestPostPass:
    """Tests for defaults and the rewrite of custom bodies."""

    def test_apply_defaults(self):
        """Defaults go into the Parameter constructor, unknown names are ignored."""
        params = ParameterSet(
            {"X_IS": _descriptor("X_IS", "is")},
            {"X_IS": "here->is = value->rValue; here->isGiven = TRUE; break;"},
        )
        params.apply_defaults({"is": "1e-14", "unknown": "2"})
        assert params.declarations["is"].endswith("= new Parameter(1e-14);")

    def test_apply_string_default(self):
        """Backslashes in a default are written as they are."""
        params = ParameterSet(
            {"X_S": _descriptor("X_S", "s", ParamType.STRING)},
            {"X_S": "here->s = value->sValue; here->sGiven = TRUE; break;"},
        )
        params.apply_defaults({"s": '"a\\b"'})
        assert params.declarations["s"].endswith('= new Parameter<string>("a\\b");')

    def test_apply_defaults_only_constructor(self):
        """Calls in a custom accessor body are not taken for the constructor."""
        params = ParameterSet({})
        params.declarations["t"] = (
            "public double X_T\n{\n    set { f(); t.Set(value); }\n}\n"
            "public Parameter t { get; } = new Parameter();"
        )
        params.apply_defaults({"t": "300.15"})
        assert "set { f(); t.Set(value); }" in params.declarations["t"]
        assert params.declarations["t"].endswith("= new Parameter(300.15);")

    def test_update_methods(self):
        """State reads are indexed, the prefix is stripped and single statements collapse."""
        params = ParameterSet(
            {"DIO_VD": _descriptor("DIO_VD", "vd")},
            get_cases={"DIO_VD": "value->rValue = *(ckt->CKTstate0 + here->DIOvoltage);\nreturn(OK);"},
        )
        params.update_methods("DIOstate", "DIO")
        assert params.methods[0].split("\n")[1] == (
            "public double GetVD(Circuit ckt) => ckt.State.States[0][DIOstate + DIOvoltage];"
        )

    def test_update_solution(self):
        """Old solution reads index the solution vector."""
        params = ParameterSet(
            {"DIO_V": _descriptor("DIO_V", "v")},
            get_cases={"DIO_V": "value->rValue = *(ckt->CKTrhsOld + here->DIOposNode) * 2;\nreturn(OK);"},
        )
        params.update_methods(None, "DIO")
        assert "ckt.State.Real.Solution[DIOposNode] * 2" in params.methods[0]

    def test_short_accessors(self):
        """Single statement accessors use expression bodies."""
        params = ParameterSet(
            {"X_T": _descriptor("X_T", "t")},
            {"X_T": "here->t = value->rValue + 1; here->u = 0; break;"},
            {"X_T": "value->rValue = here->t - 1; break;"},
        )
        params.update_methods(None, "")
        text = params.declarations["t"]
        assert "get => t - 1;" in text


class TestFromSource:
    """Tests for reading accessors from a device folder."""

    def test_device_scope(self, device_source):
        """Device parameters come from the instance accessors."""
        catalog = extract_catalog(device_source)
        params = ParameterSet.from_source(device_source, catalog.device, EntryPoint.PARAM, EntryPoint.ASK)
        assert list(params.declarations) == ["TSTarea", "TSToff"]
        assert params.declarations["TSTarea"] == (
            '[SpiceName("area"), SpiceInfo("Area factor")]\n'
            "public Parameter TSTarea { get; } = new Parameter();"
        )
        assert params.declarations["TSToff"].endswith("public bool TSToff { get; set; }")
        assert params.given_variables == {"TSTareaGiven": "TSTarea"}

    def test_model_scope(self, device_source):
        """Model parameters come from the model accessors."""
        catalog = extract_catalog(device_source)
        params = ParameterSet.from_source(
            device_source, catalog.model, EntryPoint.MODEL_PARAM, EntryPoint.MODEL_ASK,
        )
        assert list(params.declarations) == ["TSTsatCur"]

    def test_missing_entry_point(self, device_source):
        """An absent entry point contributes no cases."""
        catalog = extract_catalog(device_source)
        params = ParameterSet.from_source(device_source, catalog.device, EntryPoint.PARAM, EntryPoint.PZ_LOAD)
        assert "Parameter TSTarea" in params.declarations["TSTarea"]
