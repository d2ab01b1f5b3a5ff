from scalargrad.value import Value, backward, new_scalar
from scalargrad.nn import MLP, Layer, Neuron, ShapeMismatchError, new_network
