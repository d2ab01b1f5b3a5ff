import logging
import random

from scalargrad.value import Value

logger = logging.getLogger(__name__)


class ShapeMismatchError(ValueError):
    """Raised when inputs, weights or targets disagree in length."""


class Module:
    """Anything that owns trainable Values; subclasses list them in parameters()."""

    def zero_grad(self):
        for p in self.parameters():
            p.grad = 0.0

    def parameters(self):
        return []


class Neuron(Module):
    """Affine combination of its inputs plus a bias, optionally through ReLU."""

    def __init__(self, nin, nonlin=True, rng=None):
        rng = rng or random
        self.w = [Value(rng.uniform(-1, 1)) for _ in range(nin)]
        self.b = Value(0.0)
        self.nonlin = nonlin

    def __call__(self, x):
        if len(x) != len(self.w):
            raise ShapeMismatchError(
                f"neuron expects {len(self.w)} inputs, got {len(x)}"
            )
        act = self.b
        for wi, xi in zip(self.w, x):
            act = act + wi * xi
        return act.relu() if self.nonlin else act

    def parameters(self):
        return self.w + [self.b]

    def __repr__(self):
        return f"{'ReLU' if self.nonlin else 'Linear'}Neuron({len(self.w)})"


class Layer(Module):
    """nout neurons applied side by side to the same input row."""

    def __init__(self, nin, nout, **kwargs):
        self.neurons = [Neuron(nin, **kwargs) for _ in range(nout)]

    def __call__(self, x):
        return [n(x) for n in self.neurons]

    def parameters(self):
        return [p for n in self.neurons for p in n.parameters()]

    def __repr__(self):
        kind = "ReLU" if self.neurons[0].nonlin else "Linear"
        return f"{kind}Layer({len(self.neurons[0].w)} -> {len(self.neurons)})"


class MLP(Module):
    """Multi-layer perceptron: ReLU hidden layers and a linear output layer.

    MLP(2, [4, 1]) has a 2 -> 4 hidden layer and a 4 -> 1 output layer.
    Pass ``rng`` (a ``random.Random``) to make weight initialisation
    reproducible.
    """

    def __init__(self, nin, nouts, rng=None):
        nouts = list(nouts)
        if not nouts:
            raise ShapeMismatchError("an MLP needs at least one layer")
        if nin <= 0 or any(n <= 0 for n in nouts):
            raise ShapeMismatchError(
                f"layer widths must be positive, got {nin} -> {nouts}"
            )
        sz = [nin] + nouts
        self.layers = [
            Layer(sz[i], sz[i + 1], nonlin=i != len(nouts) - 1, rng=rng)
            for i in range(len(nouts))
        ]

    @property
    def nin(self):
        return len(self.layers[0].neurons[0].w)

    @property
    def nout(self):
        return len(self.layers[-1].neurons)

    def __call__(self, x):
        for layer in self.layers:
            x = layer(x)
        return x

    def forward(self, x):
        return self(x)

    def loss(self, x, y):
        """Mean squared error between the network's prediction for x and y."""
        if len(y) != self.nout:
            raise ShapeMismatchError(
                f"expected {self.nout} targets, got {len(y)}"
            )
        ypred = self(x)
        total = Value(0.0)
        for yout, ygt in zip(ypred, y):
            total = total + (yout - ygt) ** 2
        return total / len(y)

    def optimize(self, learning_rate):
        for p in self.parameters():
            p.data -= learning_rate * p.grad

    def train(self, xs, ys, epochs, learning_rate):
        """Stochastic gradient descent over (xs, ys), one update per example.

        Returns the mean loss of every epoch.
        """
        if len(xs) != len(ys):
            raise ShapeMismatchError(
                f"{len(xs)} input rows but {len(ys)} target rows"
            )
        history = []
        for epoch in range(epochs):
            total_loss = 0.0
            for x, y in zip(xs, ys):
                loss = self.loss(x, y)
                total_loss += loss.data

                self.zero_grad()
                loss.backward()
                self.optimize(learning_rate)

            avg_loss = total_loss / max(1, len(xs))
            history.append(avg_loss)
            logger.debug("epoch %d | avg loss %.6f", epoch, avg_loss)
        return history

    def parameters(self):
        return [p for layer in self.layers for p in layer.parameters()]

    def __repr__(self):
        return f"MLP({', '.join(repr(layer) for layer in self.layers)})"


def new_network(input_width, layer_widths, rng=None):
    return MLP(input_width, layer_widths, rng=rng)
