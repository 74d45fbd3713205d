import pytest

from somatch import language as lang
from somatch import tree
from somatch.api import get_api
from somatch.errors import ArityMismatch, IllegalCapture, InvalidArgument, UnboundVariable
from notation import ef, efa, quick


def test_make_expression_function():
    f1 = lang.make_expression_function([quick("v1"), quick("v2"), quick("v3")], quick("f.f(v1,v2,v3)"))
    f2 = lang.make_expression_function([quick("v1")], quick("f.f(v1,v2,v3)"))
    f3 = lang.make_expression_function(quick("v1"), quick("z.z(a)"))
    assert lang.is_expression_function(f1)
    assert lang.is_expression_function(f2)
    assert lang.is_expression_function(f3)
    assert get_api().free_variable_names(f1) == set()
    assert get_api().free_variable_names(f2) == {"v2", "v3"}


def test_expression_function_binds_only_variables():
    with pytest.raises(InvalidArgument):
        lang.make_expression_function([quick("v1"), quick("z.z(a)")], quick("v1"))
    with pytest.raises(InvalidArgument):
        lang.make_expression_function([], quick("v1"))


def test_ordinary_binding_is_not_an_expression_function():
    assert not lang.is_expression_function(quick("for.all[x,x]"))
    assert not lang.is_expression_function(quick("x"))


def test_make_expression_function_application():
    app = lang.make_expression_function_application(ef("v1", "v1"), quick("sq.uare(v1)"))
    assert lang.is_expression_function_application(app)

    meta = efa("_P", "sq.uare(v1)")
    assert lang.is_expression_function_application(meta)

    with pytest.raises(InvalidArgument):
        lang.make_expression_function_application(quick("P"), quick("sq.uare(v1)"))
    with pytest.raises(InvalidArgument):
        lang.make_expression_function_application(quick("_P"), [])


def test_can_apply():
    app = efa(ef("v1", "v1"), "sq.uare(v1)")
    assert lang.can_apply_expression_function_application(app)
    assert not lang.can_apply_expression_function_application(quick("_P_of_1"))
    assert not lang.can_apply_expression_function_application(quick("f(1)"))


def test_application_accessors():
    app = quick("_P_of_1")
    assert lang.get_expression_function_from_application(app) == quick("_P")
    assert lang.get_expression_arguments_from_application(app) == [quick("1")]
    assert lang.get_expression_function_from_application(quick("f(1)")) is None
    assert lang.get_expression_arguments_from_application(quick("f(1)")) is None


def test_apply_expression_function_application():
    app = efa(ef("v1", "pl.us(v1,10)"), "1")
    before = app
    assert lang.apply_expression_function_application(app) == quick("pl.us(1,10)")
    assert app == before

    app = efa(ef(["v1", "v2", "v3"], "pl.us(v1,v2,v3)"), ["10", "20", "30"])
    assert lang.apply_expression_function_application(app) == quick("pl.us(10,20,30)")

    assert lang.apply_expression_function_application(quick("_P_of_1")) is None


def test_get_new_variable_relative_to():
    e1 = quick("f(x,y,z)")
    e2 = quick("f.a[v1,x0,x1,x2]")
    e3 = quick("F(x0,x1,x2,x3,x4)")
    e4 = ef(["x1", "a"], "plus(x1,a)")
    e5 = quick("x")

    assert lang.get_new_variable_relative_to(e1) == quick("x0")
    assert lang.get_new_variable_relative_to(e2) == quick("x3")
    assert lang.get_new_variable_relative_to(e3) == quick("x5")
    assert lang.get_new_variable_relative_to(e4) == quick("x2")
    assert lang.get_new_variable_relative_to(e5) == quick("x0")

    assert lang.get_new_variable_relative_to(e1, e2) == quick("x3")
    assert lang.get_new_variable_relative_to(e1, e2, e3, e4, e5) == quick("x5")
    assert lang.get_new_variable_relative_to(e2, e1) == quick("x3")


def test_check_variable():
    assert lang.check_variable(quick("v3"), 0) == 4
    assert lang.check_variable(quick("v3"), 7) == 7
    assert lang.check_variable(quick("_v5"), 0) == 6
    assert lang.check_variable(quick("x3"), 0) == 0
    assert lang.check_variable(quick("v"), 2) == 2


def test_alpha_convert_without_capture():
    f1 = ef(["v1", "v2"], "F(v1,v2)")
    before = f1
    ac1 = lang.alpha_convert(f1, quick("v1"), quick("r1"))
    assert ac1 == ef(["r1", "v2"], "F(r1,v2)")
    ac2 = lang.alpha_convert(ac1, quick("v2"), quick("r2"))
    assert ac2 == ef(["r1", "r2"], "F(r1,r2)")
    assert f1 == before

    with pytest.raises(UnboundVariable):
        lang.alpha_convert(ef(["v1", "v2"], "F(v1,v2,c)"), quick("c"), quick("v1"))


def test_alpha_convert_with_capture():
    result = lang.alpha_convert(quick("lamb.da[z,for.all[y,plus(y,z)]]"), quick("z"), quick("y"))
    assert result == quick("lamb.da[y,for.all[x0,plus(x0,y)]]")

    f1 = ef(["v1", "v2"], "for.all[x,pl.us(x,v1,v2)]")
    result = lang.alpha_convert(f1, quick("v1"), quick("x"))
    assert result == ef(["x", "v2"], "for.all[x0,pl.us(x0,x,v2)]")


def test_replace_without_capture_simple():
    assert lang.replace_without_capture(quick("F(a,b,c,d)"), quick("a"), quick("R")) == quick("F(R,b,c,d)")
    assert lang.replace_without_capture(
        quick("for.all[z,plus(z,a)]"), quick("a"), quick("z")
    ) == quick("for.all[x0,plus(x0,z)]")


def test_replace_without_capture_nested():
    e = quick("for.all[x,for.all[y,for.all[z,pl.us(x,y,z,a)]]]")
    r1 = lang.replace_without_capture(e, quick("a"), quick("x"))
    assert r1 == quick("for.all[x0,for.all[y,for.all[z,pl.us(x0,y,z,x)]]]")
    assert lang.replace_without_capture(e, quick("a"), quick("y")) == quick(
        "for.all[x,for.all[x0,for.all[z,pl.us(x,x0,z,y)]]]"
    )
    assert lang.replace_without_capture(e, quick("a"), quick("z")) == quick(
        "for.all[x,for.all[y,for.all[x0,pl.us(x,y,x0,z)]]]"
    )

    r2 = lang.replace_without_capture(r1, quick("x"), quick("y"))
    r3 = lang.replace_without_capture(r2, quick("y"), quick("z"))
    assert r3 == quick("for.all[x0,for.all[x1,for.all[x2,pl.us(x0,x1,x2,z)]]]")


def test_replace_without_capture_in_expression_function():
    f = ef(["v1", "v2"], "for.all[v3,pl.us(v1,v2,v3,a)]")
    f = lang.replace_without_capture(f, quick("a"), quick("v1"))
    assert f == ef(["x0", "v2"], "for.all[v3,pl.us(x0,v2,v3,v1)]")
    f = lang.replace_without_capture(f, quick("v1"), quick("v2"))
    assert f == ef(["x0", "x1"], "for.all[v3,pl.us(x0,x1,v3,v2)]")
    f = lang.replace_without_capture(f, quick("v2"), quick("v3"))
    assert f == ef(["x0", "x1"], "for.all[x2,pl.us(x0,x1,x2,v3)]")
    f = lang.replace_without_capture(f, quick("v3"), quick("x0"))
    assert f == ef(["x3", "x1"], "for.all[x2,pl.us(x3,x1,x2,x0)]")


def test_replace_bound_variable_by_variable():
    assert lang.replace_without_capture(
        quick("for.all[x,P(x,y)]"), quick("x"), quick("z")
    ) == quick("for.all[z,P(z,y)]")
    assert lang.replace_without_capture(
        quick("for.all[a,b,c,R(f(a),g(b),h(c))]"), quick("b"), quick("B")
    ) == quick("for.all[a,B,c,R(f(a),g(B),h(c))]")


def test_replace_renames_against_the_replacement():
    assert lang.replace_without_capture(
        quick("for.all[x,P(x,y)]"), quick("y"), quick("Q(x,y,x0)")
    ) == quick("for.all[x1,P(x1,Q(x,y,x0))]")


def test_replace_bound_variable_by_non_variable():
    with pytest.raises(IllegalCapture):
        lang.replace_without_capture(quick("for.all[x,P(x)]"), quick("x"), quick("f(1)"))


def test_metavariable_under_namesake_binder():
    assert lang.replace_without_capture(
        quick("for.all[x,f(x,_x)]"), quick("_x"), quick("2")
    ) == quick("for.all[x,f(x,2)]")
    with pytest.raises(UnboundVariable):
        lang.alpha_convert(quick("for.all[x,f(x)]"), quick("_x"), quick("y"))


def test_alpha_equivalence_of_atoms_is_undefined():
    assert not lang.alpha_equivalent(quick("v1"), quick("v2"))
    assert not lang.alpha_equivalent(quick("v1"), quick("v1"))


def test_alpha_equivalence():
    f1 = ef("v1", "v1")
    f2 = ef("v2", "v2")
    f3 = ef("v1", "randomvar")
    assert lang.alpha_equivalent(f1, f1)
    assert lang.alpha_equivalent(f1, f2)
    assert lang.alpha_equivalent(f2, f1)
    assert not lang.alpha_equivalent(f1, f3)
    assert not lang.alpha_equivalent(f3, f2)
    assert lang.alpha_equivalent(f3, f3)
    assert not lang.alpha_equivalent(f1, quick("v1"))
    assert not lang.alpha_equivalent(quick("v1"), f1)

    f4 = ef(["v1", "v2", "v3"], "pl.us(v1,v2,v3)")
    f5 = ef(["v3", "v2", "v1"], "pl.us(v3,v2,v1)")
    f6 = ef(["a", "b", "c"], "pl.us(a,b,c)")
    assert not lang.alpha_equivalent(f4, f1)
    assert lang.alpha_equivalent(f4, f5)
    assert lang.alpha_equivalent(f5, f6)
    assert lang.alpha_equivalent(f6, f4)

    f7 = ef("v1", "for.all[x,pl.us(x,v1)]")
    f8 = ef("v2", "for.all[x,pl.us(x,v2)]")
    f9 = ef("v3", "for.all[x,pl.us(x,randomvar)]")
    assert not lang.alpha_equivalent(f7, f4)
    assert lang.alpha_equivalent(f7, f8)
    assert not lang.alpha_equivalent(f7, f9)
    assert not lang.alpha_equivalent(f9, f8)


def test_alpha_equivalence_inside_applications():
    assert lang.alpha_equivalent(quick("g(for.all[x,P(x)],1)"), quick("g(for.all[y,P(y)],1)"))
    assert not lang.alpha_equivalent(quick("g(for.all[x,P(x)],1)"), quick("g(for.all[y,P(y)],2)"))
    assert not lang.alpha_equivalent(quick("g(a,b)"), quick("g(a)"))


def test_beta_reduce():
    f = ef(["v1", "v2"], "F(v1,v2)")
    with pytest.raises(InvalidArgument):
        lang.beta_reduce(quick("F(v1,v2)"), [quick("G(X)")])
    with pytest.raises(InvalidArgument):
        lang.beta_reduce(f, quick("G(X)"))
    with pytest.raises(ArityMismatch):
        lang.beta_reduce(f, [quick("G(X)")])

    assert lang.beta_reduce(f, [quick("G(X)"), quick("Y")]) == quick("F(G(X),Y)")
    assert lang.beta_reduce(f, [quick("Y"), quick("G(X)")]) == quick("F(Y,G(X))")


def test_beta_reduce_avoids_capture():
    f = ef(["v1", "v2"], "for.all[x,pl.us(v1,v2,x)]")
    before = f
    assert lang.beta_reduce(f, [quick("x"), quick("y")]) == quick("for.all[x0,pl.us(x,y,x0)]")
    assert f == before

    f = ef(["v1", "v2", "v3"], "for.all[x,for.all[y,for.all[z,pl.us(x,y,z,v1,v2,v3)]]]")
    assert lang.beta_reduce(f, [quick("x"), quick("y"), quick("z")]) == quick(
        "for.all[x0,for.all[x1,for.all[x2,pl.us(x0,x1,x2,x,y,z)]]]"
    )


def test_constant_expression():
    c = lang.make_constant_expression(quick("v0"), quick("f(1)"))
    assert c == ef("v0", "f(1)")
    c = lang.make_constant_expression([quick("v0"), quick("v1")], quick("2"))
    assert lang.beta_reduce(c, [quick("a"), quick("b")]) == quick("2")


def test_projection_expression():
    p = lang.make_projection_expression([quick("v0"), quick("v1")], quick("v1"))
    assert p == ef(["v0", "v1"], "v1")
    with pytest.raises(InvalidArgument):
        lang.make_projection_expression([quick("v0")], quick("v1"))


def test_imitation_of_application():
    temps = [quick("_H0"), quick("_H1"), quick("_H2")]
    imitation = lang.make_imitation_expression([quick("v0")], quick("f(1,2)"), temps)
    assert imitation == ef("v0", "_H0_of_v0(_H1_of_v0,_H2_of_v0)")


def test_imitation_of_binding():
    imitation = lang.make_imitation_expression(
        [quick("v0"), quick("v1")], quick("for.all[x,P(x)]"), [quick("_H")]
    )
    body = tree.Binding(quick("for.all"), (quick("x"),), efa("_H", ["v0", "v1"]))
    assert imitation == ef(["v0", "v1"], body)


def test_imitation_needs_compound_expression():
    with pytest.raises(InvalidArgument):
        lang.make_imitation_expression([quick("v0")], quick("c"), [quick("_H")])
    with pytest.raises(InvalidArgument):
        lang.make_imitation_expression([quick("v0")], quick("f(1)"), [quick("_H")])
