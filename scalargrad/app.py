import logging
import math
import os
import threading

from flask import Flask, jsonify, request
from flask_cors import CORS

from scalargrad.pipeline import (
    DEFAULT_EPOCHS,
    DEFAULT_HIDDEN,
    DEFAULT_LEARNING_RATE,
    DEFAULT_SEED,
    build_model,
    compute_accuracy,
    predict,
    train_model,
    xor_dataset,
)
from scalargrad.value import graph_summary

app = Flask(__name__)
CORS(app)

# one in-memory model per process; never written to disk
STATE = {"model": None, "history": [], "architecture": None}
STATE_LOCK = threading.Lock()


def finite_or_none(values):
    """Replace inf/nan, which JSON cannot carry, with None."""
    if isinstance(values, list):
        return [finite_or_none(v) for v in values]
    return values if math.isfinite(values) else None


def error_response(message, code):
    return jsonify({"status": "error", "message": message}), code


def parse_rows(payload, key):
    rows = payload.get(key)
    if not isinstance(rows, list) or not rows:
        raise ValueError(f"'{key}' must be a non-empty list of rows")
    parsed = []
    for row in rows:
        if not isinstance(row, list):
            row = [row]
        parsed.append([float(v) for v in row])
    return parsed


def parse_dataset(payload):
    if "inputs" not in payload and "targets" not in payload:
        return xor_dataset()
    return parse_rows(payload, "inputs"), parse_rows(payload, "targets")


@app.route("/api/status", methods=["GET"])
def status():
    """Return current model status."""
    model = STATE["model"]
    return jsonify(
        {
            "model_loaded": model is not None,
            "architecture": STATE["architecture"],
            "parameter_count": len(model.parameters()) if model else 0,
            "history": finite_or_none(STATE["history"]),
        }
    )


@app.route("/api/train", methods=["POST"])
def train():
    """Train a new model, on XOR unless inputs and targets are given."""
    try:
        payload = request.get_json(silent=True) or {}
        epochs = int(payload.get("epochs", DEFAULT_EPOCHS))
        learning_rate = float(payload.get("learning_rate", DEFAULT_LEARNING_RATE))
        hidden = int(payload.get("hidden", DEFAULT_HIDDEN))
        seed = int(payload.get("seed", DEFAULT_SEED))
        xs, ys = parse_dataset(payload)

        model = build_model(len(xs[0]), hidden, len(ys[0]), seed=seed)
        history = train_model(model, xs, ys, epochs=epochs, learning_rate=learning_rate, verbose=False)
        predictions = predict(model, xs)

        with STATE_LOCK:
            STATE["model"] = model
            STATE["history"] = history
            STATE["architecture"] = [len(xs[0]), hidden, len(ys[0])]

        return jsonify(
            {
                "status": "success",
                "final_loss": finite_or_none(history[-1]) if history else None,
                "accuracy": compute_accuracy(predictions, ys),
                "history": finite_or_none(history),
                "predictions": finite_or_none(predictions),
            }
        )

    except (ValueError, TypeError) as e:
        return error_response(str(e), 400)
    except Exception:
        logging.exception("Error while training model")
        return error_response("An internal error occurred while training the model.", 500)


@app.route("/api/infer", methods=["POST"])
def infer():
    """Run the current model on one input row."""
    try:
        payload = request.get_json(silent=True) or {}
        model = STATE["model"]
        if model is None:
            return error_response("No model loaded", 400)

        inputs = parse_rows({"inputs": [payload.get("inputs")]}, "inputs")[0]
        with STATE_LOCK:
            outputs = [out.data for out in model(inputs)]

        return jsonify({"status": "success", "outputs": finite_or_none(outputs)})

    except (ValueError, TypeError) as e:
        return error_response(str(e), 400)
    except Exception:
        logging.exception("Error while running inference")
        return error_response("An internal error occurred while running inference.", 500)


@app.route("/api/gradients", methods=["POST"])
def gradients():
    """Loss, graph summary and parameter gradients for one example, no update."""
    try:
        payload = request.get_json(silent=True) or {}
        model = STATE["model"]
        if model is None:
            return error_response("No model loaded", 400)

        inputs = parse_rows({"inputs": [payload.get("inputs")]}, "inputs")[0]
        targets = parse_rows({"targets": [payload.get("targets")]}, "targets")[0]

        with STATE_LOCK:
            loss = model.loss(inputs, targets)
            model.zero_grad()
            loss.backward()
            grads = [p.grad for p in model.parameters()]
            model.zero_grad()

        return jsonify(
            {
                "status": "success",
                "loss": finite_or_none(loss.data),
                "graph": graph_summary(loss),
                "gradients": finite_or_none(grads),
            }
        )

    except (ValueError, TypeError) as e:
        return error_response(str(e), 400)
    except Exception:
        logging.exception("Error while computing gradients")
        return error_response("An internal error occurred while computing gradients.", 500)


if __name__ == "__main__":
    debug = os.environ.get("FLASK_DEBUG", "0") == "1"
    app.run(debug=debug, port=5000, host="127.0.0.1")
