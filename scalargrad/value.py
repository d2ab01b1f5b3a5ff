import numpy as np


def _div(x, y):
    with np.errstate(all="ignore"):
        return float(np.float64(x) / np.float64(y))


def _pow(x, p):
    with np.errstate(all="ignore"):
        return float(np.power(np.float64(x), np.float64(p)))


def _exp(x):
    with np.errstate(all="ignore"):
        return float(np.exp(np.float64(x)))


class Value:
    def __init__(self, data, _children=(), _op=''):
        self.data = float(data)
        self.grad = 0.0
        self._prev = tuple(_children)
        self._op = _op

        self._backward = lambda: None

    def __repr__(self):
        return f"Value(data={self.data}, grad={self.grad})"

    def __add__(self, other):
        other = other if isinstance(other, Value) else Value(other)
        out = Value(self.data + other.data, (self, other), '+')

        def _backward():
            self.grad += out.grad
            other.grad += out.grad
        out._backward = _backward

        return out

    def __sub__(self, other):
        other = other if isinstance(other, Value) else Value(other)
        out = Value(self.data - other.data, (self, other), '-')

        def _backward():
            self.grad += out.grad
            other.grad -= out.grad
        out._backward = _backward

        return out

    def __mul__(self, other):
        other = other if isinstance(other, Value) else Value(other)
        out = Value(self.data * other.data, (self, other), '*')

        def _backward():
            self.grad += other.data * out.grad
            other.grad += self.data * out.grad
        out._backward = _backward

        return out

    def __truediv__(self, other):
        other = other if isinstance(other, Value) else Value(other)
        out = Value(_div(self.data, other.data), (self, other), '/')

        def _backward():
            self.grad += _div(out.grad, other.data)
            other.grad -= _div(self.data, other.data * other.data) * out.grad
        out._backward = _backward

        return out

    def __pow__(self, other):
        assert isinstance(other, (int, float)), "only supporting int/float powers for now"
        out = Value(_pow(self.data, other), (self,), f'**{other}')

        def _backward():
            self.grad += (other * _pow(self.data, other - 1)) * out.grad
        out._backward = _backward

        return out

    def __neg__(self):
        return self * -1

    def __radd__(self, other):
        return self + other

    def __rsub__(self, other):
        return Value(other) - self

    def __rmul__(self, other):
        return self * other

    def __rtruediv__(self, other):
        return Value(other) / self

    def exp(self):
        e = _exp(self.data)
        out = Value(e, (self,), 'exp')

        def _backward():
            self.grad += e * out.grad
        out._backward = _backward

        return out

    def tanh(self):
        t = float(np.tanh(self.data))
        out = Value(t, (self,), 'tanh')

        def _backward():
            self.grad += (1.0 - t**2) * out.grad
        out._backward = _backward

        return out

    def relu(self):
        out = Value(float(np.maximum(0.0, self.data)), (self,), 'relu')

        def _backward():
            # subgradient at exactly 0 is 0
            if self.data > 0:
                self.grad += out.grad
        out._backward = _backward

        return out

    def sigmoid(self):
        s = _div(1.0, 1.0 + _exp(-self.data))
        out = Value(s, (self,), 'sigmoid')

        def _backward():
            self.grad += s * (1.0 - s) * out.grad
        out._backward = _backward

        return out

    def backward(self):
        topo = build_topo(self)

        self.grad = 1.0

        for node in reversed(topo):
            node._backward()


def build_topo(root):
    """Return the nodes reachable from root, every node after its operands.

    Post-order depth-first walk with an explicit stack, so long chains of
    operations do not hit the interpreter's recursion limit. Nodes are
    tracked by identity; two nodes holding equal data are still distinct.
    """
    topo = []
    visited = set()
    stack = [(root, False)]

    while stack:
        v, expanded = stack.pop()
        if expanded:
            topo.append(v)
            continue
        if v in visited:
            continue
        visited.add(v)
        stack.append((v, True))
        for child in reversed(v._prev):
            if child not in visited:
                stack.append((child, False))

    return topo


def trace(root):
    nodes, edges = set(), set()
    for v in build_topo(root):
        nodes.add(v)
        for child in v._prev:
            edges.add((child, v))
    return nodes, edges


def graph_summary(root):
    """Count the nodes, edges and operator tags of the graph behind root."""
    nodes, edges = trace(root)
    ops = {}
    for n in nodes:
        tag = n._op or 'leaf'
        ops[tag] = ops.get(tag, 0) + 1

    return {
        "nodes": len(nodes),
        "edges": len(edges),
        "ops": dict(sorted(ops.items())),
    }


def new_scalar(value):
    return Value(value)


def backward(root):
    root.backward()


def value_of(node):
    return node.data


def gradient_of(node):
    return node.grad


def reset_gradient(node):
    node.grad = 0.0
