import argparse
import os
import random
from datetime import datetime, timezone
from pathlib import Path

from scalargrad.nn import MLP


DEFAULT_EPOCHS = 300
DEFAULT_LEARNING_RATE = 0.05
DEFAULT_HIDDEN = 4
DEFAULT_SEED = 7

REPORT_DIR = Path(
    os.getenv(
        "SCALARGRAD_REPORT_DIR",
        Path(__file__).resolve().parent / "reports",
    )
)


def xor_dataset():
    """The four XOR examples with inputs and targets encoded as -1/+1."""
    xs = [
        [-1.0, -1.0],
        [-1.0, 1.0],
        [1.0, -1.0],
        [1.0, 1.0],
    ]
    ys = [[-1.0], [1.0], [1.0], [-1.0]]
    return xs, ys


def build_model(nin, hidden, nout, seed=DEFAULT_SEED):
    return MLP(nin, [hidden, nout], rng=random.Random(seed))


def train_model(model, xs, ys, epochs=DEFAULT_EPOCHS, learning_rate=DEFAULT_LEARNING_RATE, verbose=True):
    log_interval = max(1, epochs // 5)
    history = model.train(xs, ys, epochs=epochs, learning_rate=learning_rate)
    if verbose:
        for epoch in range(0, epochs, log_interval):
            print(f"Epoch {epoch:03d} | avg loss {history[epoch]:.4f}")
    return history


def predict(model, xs):
    return [[out.data for out in model(x)] for x in xs]


def compute_accuracy(predictions, targets):
    """Fraction of outputs whose sign matches the sign of the target."""
    pairs = [
        (p, t)
        for pred_row, target_row in zip(predictions, targets)
        for p, t in zip(pred_row, target_row)
    ]
    correct = sum(1 for p, t in pairs if (p >= 0) == (t >= 0))
    return correct / max(1, len(pairs))


def export_reports(history, predictions, targets, config, report_dir=None):
    report_dir = Path(report_dir) if report_dir is not None else REPORT_DIR
    report_dir.mkdir(parents=True, exist_ok=True)

    loss_csv = ["epoch,loss"]
    loss_csv.extend(f"{epoch},{loss:.6f}" for epoch, loss in enumerate(history))
    (report_dir / "loss.csv").write_text("\n".join(loss_csv))

    accuracy = compute_accuracy(predictions, targets)
    report_lines = [
        "# Training Summary",
        "",
        f"Run timestamp (UTC): {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')}",
        "",
        "## Config",
        f"- Architecture: MLP ({config['nin']}x{config['hidden']}x{config['nout']})",
        f"- Epochs: {config['epochs']}",
        f"- Learning rate: {config['learning_rate']}",
        f"- Seed: {config['seed']}",
        "",
        "## Result",
        f"- First epoch loss: {history[0]:.4f}" if history else "- First epoch loss: n/a",
        f"- Final epoch loss: {history[-1]:.4f}" if history else "- Final epoch loss: n/a",
        f"- Sign accuracy: {accuracy:.3f}",
        "",
        "## Predictions",
    ]
    for pred_row, target_row in zip(predictions, targets):
        preds = ", ".join(f"{p:+.4f}" for p in pred_row)
        wanted = ", ".join(f"{t:+.1f}" for t in target_row)
        report_lines.append(f"- [{preds}] (target [{wanted}])")
    (report_dir / "summary.md").write_text("\n".join(report_lines))

    return report_dir


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Train a small MLP on XOR with the scalargrad autograd engine."
    )
    parser.add_argument(
        "--epochs",
        type=int,
        default=DEFAULT_EPOCHS,
        help=f"Number of training epochs (default: {DEFAULT_EPOCHS})",
    )
    parser.add_argument(
        "--learning-rate",
        type=float,
        default=DEFAULT_LEARNING_RATE,
        help=f"Learning rate for gradient descent (default: {DEFAULT_LEARNING_RATE})",
    )
    parser.add_argument(
        "--hidden",
        type=int,
        default=DEFAULT_HIDDEN,
        help=f"Width of the hidden layer (default: {DEFAULT_HIDDEN})",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=DEFAULT_SEED,
        help=f"Random seed for weight initialisation (default: {DEFAULT_SEED})",
    )
    parser.add_argument(
        "--report-dir",
        type=Path,
        default=REPORT_DIR,
        help=f"Directory for loss.csv and summary.md (default: {REPORT_DIR})",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress training progress output",
    )
    args = parser.parse_args(argv)

    xs, ys = xor_dataset()
    model = build_model(len(xs[0]), args.hidden, len(ys[0]), seed=args.seed)
    history = train_model(
        model, xs, ys, epochs=args.epochs, learning_rate=args.learning_rate, verbose=not args.quiet
    )

    predictions = predict(model, xs)
    config = {
        "nin": len(xs[0]),
        "hidden": args.hidden,
        "nout": len(ys[0]),
        "epochs": args.epochs,
        "learning_rate": args.learning_rate,
        "seed": args.seed,
    }
    report_dir = export_reports(history, predictions, ys, config, report_dir=args.report_dir)

    print("\nFinal Predictions:")
    for x, pred in zip(xs, predictions):
        print(f"{x} -> {pred[0]:+.4f}")
    if history:
        print(f"\nFinal loss: {history[-1]:.4f} | accuracy: {compute_accuracy(predictions, ys):.3f}")
    print(f"Reports exported to {report_dir}")
    return 0


if __name__ == "__main__":
    main()
