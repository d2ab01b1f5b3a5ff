import math

import pytest

from scalargrad.value import (
    Value,
    backward,
    build_topo,
    gradient_of,
    graph_summary,
    new_scalar,
    reset_gradient,
    trace,
    value_of,
)

H = 1e-4
TOL = 1e-3


def numeric_grads(f, xs):
    """Central differences of f (floats -> Value) at xs."""
    grads = []
    for i in range(len(xs)):
        up = list(xs)
        down = list(xs)
        up[i] += H
        down[i] -= H
        plus = f(*[Value(v) for v in up]).data
        minus = f(*[Value(v) for v in down]).data
        grads.append((plus - minus) / (2 * H))
    return grads


def check_grads(f, xs):
    leaves = [Value(v) for v in xs]
    out = f(*leaves)
    out.backward()
    for leaf, expected in zip(leaves, numeric_grads(f, xs)):
        assert abs(leaf.grad - expected) < TOL


@pytest.mark.parametrize(
    "f, xs",
    [
        (lambda a, b: a + b, [1.5, -2.0]),
        (lambda a, b: a - b, [1.5, -2.0]),
        (lambda a, b: a * b, [1.5, -2.0]),
        (lambda a, b: a / b, [1.5, -2.5]),
        (lambda a: a ** 3, [1.5]),
        (lambda a: a ** 0.5, [2.0]),
        (lambda a: a ** -1, [0.7]),
        (lambda a: a.exp(), [0.3]),
        (lambda a: a.tanh(), [0.4]),
        (lambda a: a.relu(), [1.3]),
        (lambda a: a.relu(), [-0.7]),
        (lambda a: a.sigmoid(), [0.2]),
    ],
)
def test_single_op_matches_finite_differences(f, xs):
    check_grads(f, xs)


def test_composite_expression():
    a = Value(2.0)
    b = Value(-3.0)
    c = Value(10.0)
    f = Value(-2.0)
    L = (a * b + c) * f
    L.backward()

    assert L.data == -8.0
    assert a.grad == f.data * b.data
    assert b.grad == f.data * a.data
    assert c.grad == f.data
    assert f.grad == a.data * b.data + c.data


def test_mixed_expression_matches_finite_differences():
    def f(x, y, z):
        q = (x * y + z.exp()) / (y ** 2 + 1)
        return (q.tanh() - x.sigmoid()) * z + (x - y).relu()

    check_grads(f, [0.6, -1.2, 0.4])


def test_shared_node_accumulates():
    x = Value(3.0)
    y = x * x
    y.backward()
    assert x.grad == 6.0


def test_diamond_graph():
    x = Value(1.5)
    a = x * 2
    b = x + 3
    y = a * b
    y.backward()
    assert x.grad == pytest.approx(4 * 1.5 + 6)
    check_grads(lambda v: (v * 2) * (v + 3), [1.5])


def test_relu_gradient_at_zero_is_zero():
    x = Value(0.0)
    y = x.relu()
    y.backward()
    assert y.data == 0.0
    assert x.grad == 0.0


def test_constants_on_either_side():
    x = Value(2.0)
    y = 3 * x + 1 - x / 4 + 2 / x - (5 - x)
    y.backward()
    assert y.data == pytest.approx(3 * 2 + 1 - 0.5 + 1 - 3)
    assert x.grad == pytest.approx(3 - 0.25 - 2 / 4 + 1)


def test_negation():
    x = Value(2.0)
    y = -x
    y.backward()
    assert y.data == -2.0
    assert x.grad == -1.0


def test_operands_keep_their_order():
    a = Value(1.0)
    b = Value(1.0)
    out = a - b
    assert out._prev == (a, b)
    assert out._op == '-'
    assert a._prev == ()


def test_backward_on_leaf_seeds_itself():
    v = Value(4.0)
    v.backward()
    assert v.grad == 1.0


def test_unreachable_node_untouched():
    a = Value(2.0)
    b = Value(3.0)
    z = Value(5.0)
    z.grad = 0.25
    (a * b).backward()
    assert z.grad == 0.25


def test_gradients_accumulate_across_backward_calls():
    a = Value(2.0)
    b = Value(3.0)
    (a * b).backward()
    (a * b).backward()
    assert a.grad == 6.0


def test_power_requires_numeric_exponent():
    with pytest.raises(AssertionError):
        Value(2.0) ** Value(2.0)


def test_division_by_zero_propagates_infinity():
    a = Value(1.0)
    b = Value(0.0)
    out = a / b
    out.backward()
    assert out.data == math.inf
    assert a.grad == math.inf
    assert b.grad == -math.inf
    assert math.isnan((Value(0.0) / 0).data)


def test_degenerate_powers_and_overflow():
    assert (Value(0.0) ** -1).data == math.inf
    assert math.isnan((Value(-8.0) ** 0.5).data)
    assert (Value(1000.0).exp()).data == math.inf
    assert Value(-1000.0).sigmoid().data == 0.0
    assert Value(1000.0).sigmoid().data == 1.0


def test_relu_passes_nan_through():
    x = Value(0.0) / 0
    out = x.relu()
    out.backward()
    assert math.isnan(out.data)
    assert x.grad == 0.0
    assert math.isnan(Value(float("nan")).relu().data)


def test_deep_graph_does_not_recurse():
    x = Value(1.0)
    y = x
    for _ in range(5000):
        y = y + x
    y.backward()
    assert x.grad == 5001.0


def test_topological_order_puts_operands_first():
    a = Value(1.0)
    b = a * 2
    c = b + a
    d = c * b
    topo = build_topo(d)
    position = {id(n): i for i, n in enumerate(topo)}
    assert len(topo) == len(set(position))
    for node in topo:
        for child in node._prev:
            assert position[id(child)] < position[id(node)]
    assert topo[-1] is d


def test_trace_and_summary():
    a = Value(2.0)
    b = Value(-1.0)
    out = (a * b + a).tanh()
    nodes, edges = trace(out)
    assert len(nodes) == 5
    assert (a, out._prev[0]) in edges

    summary = graph_summary(out)
    assert summary == {
        "nodes": 5,
        "edges": 5,
        "ops": {"*": 1, "+": 1, "leaf": 2, "tanh": 1},
    }


def test_functional_api():
    x = new_scalar(3.0)
    y = x ** 2
    backward(y)
    assert value_of(y) == 9.0
    assert gradient_of(x) == 6.0
    reset_gradient(x)
    assert gradient_of(x) == 0.0
