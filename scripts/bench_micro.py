from __future__ import annotations

import argparse
import csv
import json
import sys
from pathlib import Path
from statistics import mean, pstdev

ACTIVATIONS = ["tanh", "relu", "sigmoid"]


def _fmt_mu_sigma(vals):
    mu = mean(vals)
    sd = pstdev(vals) if len(vals) > 1 else 0.0
    return f"{mu:.4f} ± {sd:.4f}"


def train_one(activation: str, seed: int, batches: int, lr: float, batch: int, hidden: int):
    import numpy as np

    from lossless import ManualClock, Network
    from lossless.data import spiral_examples, train_test_split

    examples = spiral_examples(rng=np.random.default_rng(seed))
    training, testing = train_test_split(examples, 120)
    net = Network(batch_size=batch, learning_rate=lr)
    net.initialize(
        2,
        {"type": "linear", "outputs": hidden},
        activation,
        {"type": "linear", "outputs": 3},
        "softmax",
        seed=seed,
    )
    # One simulated second per batch: the budget becomes a batch count.
    result = net.train(
        training,
        testing,
        float(batches),
        clock=ManualClock(tick=1.0),
        rng=np.random.default_rng(seed + 1),
    )
    return {"final_loss": result.test_loss, "final_acc": result.test_accuracy}


def main():
    root = Path(__file__).resolve().parents[1]
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))

    ap = argparse.ArgumentParser()
    ap.add_argument("--seeds", nargs="+", type=int, default=[123, 124, 125])
    ap.add_argument("--batches", type=int, default=400)
    ap.add_argument("--lr", type=float, default=1.0)
    ap.add_argument("--batch", type=int, default=32)
    ap.add_argument("--hidden", type=int, default=7)
    ap.add_argument("--out", type=str, default=".artifacts/bench")
    args = ap.parse_args()

    out = Path(args.out)
    out.mkdir(parents=True, exist_ok=True)
    runs = []
    for act in ACTIVATIONS:
        for s in args.seeds:
            r = train_one(act, seed=s, batches=args.batches, lr=args.lr, batch=args.batch, hidden=args.hidden)
            runs.append({"activation": act, "seed": s, **r})
    (out / "results.jsonl").write_text(
        "\n".join(json.dumps(x) for x in runs), encoding="utf-8"
    )

    agg = {}
    for act in ACTIVATIONS:
        accs = [r["final_acc"] for r in runs if r["activation"] == act]
        losses = [r["final_loss"] for r in runs if r["activation"] == act]
        agg[act] = {
            "n": len(accs),
            "final_acc_mu": mean(accs),
            "final_acc_sd": pstdev(accs) if len(accs) > 1 else 0.0,
            "final_loss_mu": mean(losses),
            "final_loss_sd": pstdev(losses) if len(losses) > 1 else 0.0,
        }
    tanh_acc = agg["tanh"]["final_acc_mu"]
    for act in ACTIVATIONS:
        agg[act]["delta_acc_vs_tanh"] = agg[act]["final_acc_mu"] - tanh_acc

    csv_path = out / "bench_micro.csv"
    with csv_path.open("w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(
            [
                "activation",
                "seeds",
                "batches",
                "final_loss_mu",
                "final_loss_sd",
                "final_acc_mu",
                "final_acc_sd",
                "delta_acc_vs_tanh",
            ]
        )
        for act in ACTIVATIONS:
            a = agg[act]
            w.writerow(
                [
                    act,
                    a["n"],
                    args.batches,
                    f"{a['final_loss_mu']:.4f}",
                    f"{a['final_loss_sd']:.4f}",
                    f"{a['final_acc_mu']:.4f}",
                    f"{a['final_acc_sd']:.4f}",
                    f"{a['delta_acc_vs_tanh']:.4f}",
                ]
            )

    md_path = out / "bench_micro.md"
    lines = []
    lines.append("### Micro-Benchmark: hidden activations on the spiral set")
    lines.append("")
    lines.append(
        f"- Seeds: `{args.seeds}`; Batches: `{args.batches}`; "
        f"LR: `{args.lr}`; Batch: `{args.batch}`; Hidden: `{args.hidden}`"
    )
    lines.append("")
    lines.append("| Activation | Test Loss (μ±σ) | Test Acc (μ±σ) | ΔAcc vs Tanh | Seeds | Batches |")
    lines.append("|---|---:|---:|---:|---:|---:|")
    for act in ACTIVATIONS:
        fl = [r["final_loss"] for r in runs if r["activation"] == act]
        fa = [r["final_acc"] for r in runs if r["activation"] == act]
        lines.append(
            f"| {act.upper()} | {_fmt_mu_sigma(fl)} | {_fmt_mu_sigma(fa)} | "
            f"{agg[act]['delta_acc_vs_tanh']:+.4f} | {agg[act]['n']} | {args.batches} |"
        )
    md_path.write_text("\n".join(lines), encoding="utf-8")
    print("Wrote:", csv_path, md_path)


if __name__ == "__main__":
    main()
