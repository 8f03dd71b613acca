# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Tests for loop splitting and variable classification."""

from types import SimpleNamespace

import pytest

from sp2cslib.diagnostics import Diagnostics, UNRESOLVED_TYPE
from sp2cslib.exc import MissingInstanceIteratorError, MissingModelIteratorError
from sp2cslib.iterator import IterationSplit, apply_general, apply_parameters, member_access_to_dots


class Split(IterationSplit):
    """A split exporting the translated loop bodies as is."""

    def export_model(self, model_params):
        return self.export_model_code(model_params)

    def export_device(self, model_params, device_params):
        return self.export_device_code(model_params, device_params)


def _method(model_body, device_body, definition=""):
    return (
        "int f(GENmodel *inModel, CKTcircuit *ckt)\n{\n" + definition
        + "for( ; model != NULL; model = model->nextModel ) {\n" + model_body
        + "\nfor (here = model->instances; here != NULL; here = here->nextInstance) {\n"
        + device_body + "\n}\n}\nreturn(OK);\n}\n"
    )


class TestSplitLoops:
    """Tests for cutting a body at its loops."""

    def test_synthetic(self):
        """Model code around the instance loop is concatenated."""
        split = Split("for(;m!=NULL;m=m->next){ A(); for(i=m->first;i!=NULL;i=i->next){ B(); } C(); }")
        assert split.definition == ""
        assert split.model_code == "A(); C();"
        assert split.device_code == "B();"
        assert split.model_parameter == "m"
        assert split.device_parameter == "i"

    def test_definition(self, model_loop):
        """Everything before the model loop is the definition."""
        split = Split(model_loop)
        assert "XYZmodel *model = (XYZmodel *)inModel;" in split.definition
        assert "for" not in split.definition
        assert split.model_parameter == "model"
        assert split.device_parameter == "here"

    def test_missing_model_loop(self):
        """A body without a model loop is rejected."""
        with pytest.raises(MissingModelIteratorError):
            Split("int f() { return(OK); }")

    def test_missing_instance_loop(self):
        """A model loop without an instance loop is rejected."""
        with pytest.raises(MissingInstanceIteratorError):
            Split("int f() { for( ; model != NULL; model = model->next ) { a = 1; } }")

    def test_abstract(self):
        """The base class cannot export, so it cannot be built on its own."""
        with pytest.raises(TypeError):
            IterationSplit("for(;m!=NULL;m=m->next){ for(i=m->first;i!=NULL;i=i->next){ } }")

    def test_exports(self, model_loop):
        """A subclass implementing both exports can be built."""
        split = Split(model_loop)
        assert split.export_model(None) == split.export_model_code(None)

    def test_phase_in_message(self):
        """Errors name the phase that raised them."""
        class Named(Split):
            phase = "load"

        with pytest.raises(MissingModelIteratorError, match="^load: "):
            Named("int f() { }")


class TestClassifyVariables:
    """Tests for sorting locals into model, device and shared."""

    def test_shared(self, model_loop):
        """Read by devices before being assigned there."""
        split = Split(model_loop)
        assert split.shared_variables == {"vt": "double"}

    def test_model_only(self, model_loop):
        """Assigned first by devices, so devices own their copy."""
        split = Split(model_loop)
        assert split.model_variables == {"count": "int"}

    def test_device(self, model_loop):
        """Locals assigned in device code keep their declared types."""
        split = Split(model_loop)
        assert split.device_variables == {"g": "double", "count": "int"}

    def test_assignment_then_read(self):
        """A device assignment reading the model's value still counts as an assignment."""
        split = Split(_method("a = 1;", "a = a + 1;", "double a;\n"))
        assert "a" in split.model_variables
        assert "a" not in split.shared_variables

    def test_member_assignment_ignored(self):
        """Assignments through the loop pointers are not locals."""
        split = Split(_method("model->x = 1;", "here->y = 2;"))
        assert split.model_variables == {}
        assert split.device_variables == {}

    def test_comparison_is_not_assignment(self):
        """An equality test does not make a local."""
        split = Split(_method("", "if (a == 1) b = 2;", "int b;\n"))
        assert split.device_variables == {"b": "int"}

    def test_unresolved_type(self):
        """Undeclared locals default to double with a diagnostic."""
        diagnostics = Diagnostics()
        split = Split(_method("", "x = 1;"), diagnostics=diagnostics)
        assert split.device_variables == {"x": "double"}
        assert len(diagnostics.of_kind(UNRESOLVED_TYPE)) == 1

    def test_declared_types(self):
        """Integer and floating declarations map to int and double."""
        split = Split(_method("", "a = 1; b = 2; c = 3;", "long a;\nfloat b, c;\n"))
        assert split.device_variables == {"a": "int", "b": "double", "c": "double"}


class TestApplyParameters:
    """Tests for rewriting loop variable fields."""

    PARAMS = SimpleNamespace(variables={"F", "H"}, given_variables={"FGiven": "F"})

    def test_given_and_value(self):
        """Given flags and assigned flagged fields get their suffixes."""
        leftover = set()
        code = apply_parameters("here->FGiven = 1; here->F = 2; x = here->F;", "here", self.PARAMS, leftover)
        assert code == "F.Given = 1; F.Value = 2; x = F;"
        assert leftover == set()

    def test_plain_field(self):
        """Fields without a given flag are assigned directly."""
        assert apply_parameters("here->H = 1;", "here", self.PARAMS, set()) == "H = 1;"

    def test_comparison_reads(self):
        """Reading a flagged field uses the parameter itself."""
        assert apply_parameters("if (here->F == 1)", "here", self.PARAMS, set()) == "if (F == 1)"

    def test_leftover(self):
        """Unknown fields pass through and are recorded."""
        leftover = set()
        assert apply_parameters("here->G = 3;", "here", self.PARAMS, leftover) == "G = 3;"
        assert leftover == {"G"}

    def test_prefix(self):
        """Model fields read from devices get the model prefix."""
        code = apply_parameters("x = model->F * model->K;", "model", self.PARAMS, set(), "Model.")
        assert code == "x = Model.F * Model.K;"

    def test_other_pointer_untouched(self):
        """Only the named loop variable is rewritten."""
        assert apply_parameters("x = there->F;", "here", self.PARAMS, set()) == "x = there->F;"

    def test_no_parameters(self):
        """Without a catalog every field is left over."""
        leftover = set()
        apply_parameters("x = here->A;", "here", None, leftover)
        assert leftover == {"A"}


class TestApplyGeneral:
    """Tests for math, constants and circuit accessors."""

    def test_math(self):
        """Math functions map to Math, unrelated names stay."""
        assert apply_general("x = exp(a) + FABS(b) + myexp(c);") == "x = Math.Exp(a) + Math.Abs(b) + myexp(c);"

    def test_constants(self):
        """Physical constants map to the Circuit class."""
        assert apply_general("q = CHARGE / CONSTboltz;") == "q = Circuit.CHARGE / Circuit.CONSTBoltz;"

    def test_circuit(self):
        """Temperatures and gmin map to the simulation state."""
        code = apply_general("t = ckt->CKTtemp - ckt->CKTnomTemp; g = ckt->CKTgmin;")
        assert code == "t = ckt.State.Temperature - ckt.State.NominalTemperature; g = state.Gmin;"

    def test_string_untouched(self):
        """String literals are never rewritten."""
        assert apply_general('s = "exp(1)";') == 's = "exp(1)";'


class TestExport:
    """Tests for the exported model and device code."""

    def test_model_code(self, model_loop):
        """Model code loses its loop variable prefix."""
        split = Split(model_loop)
        code = split.export_model_code(None)
        assert "vt = XYZtnom * 2;" in code
        assert split.model_variables_extra == {"XYZtnom"}

    def test_device_code_uses_shared(self, model_loop):
        """Device code reads shared locals from the model."""
        split = Split(model_loop)
        code = split.export_device_code(None, None)
        assert "g = XYZarea / Model.vt;" in code
        assert split.device_variables_extra == {"XYZarea"}

    def test_member_access(self):
        """Arrows of any spacing become dots."""
        assert member_access_to_dots("a -> b->c") == "a.b.c"
