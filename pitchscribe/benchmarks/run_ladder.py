import argparse
import datetime
import json
import logging
import os

from pitchscribe.benchmarks.ladder import run_ladder
from pitchscribe.pipeline.config import load_config


def main():
    parser = argparse.ArgumentParser(description="Run the synthetic benchmark ladder (L0-L3)")
    parser.add_argument("--config", help="JSON file with config overrides")
    parser.add_argument("--level", type=str, help="Run specific level (e.g., L2_MONO)")
    parser.add_argument("--output-dir", default=None, help="Where to write results.json and SUMMARY.md")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    config = load_config(args.config)
    results = run_ladder(config, level=args.level)

    print("\n=== Ladder Benchmark Summary ===")
    print(f"| {'Level':<12} | {'Example':<26} | {'Prec':<5} | {'Rec':<5} | {'F1':<5} |")
    print("|" + "-" * 14 + "|" + "-" * 28 + "|" + "-" * 7 + "|" + "-" * 7 + "|" + "-" * 7 + "|")
    for level_id, examples in results.items():
        for ex in examples:
            m = ex["metrics"]
            if ex["errors"]:
                print(f"| {level_id:<12} | {ex['id']:<26} | ERROR: {'; '.join(ex['errors'])}")
                continue
            print(f"| {level_id:<12} | {ex['id']:<26} | {m['precision']:.2f}  | {m['recall']:.2f}  | {m['F1']:.2f}  |")

    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = args.output_dir or f"results/ladder_{timestamp}"
    os.makedirs(output_dir, exist_ok=True)
    with open(os.path.join(output_dir, "results.json"), "w", encoding="utf-8") as f:
        json.dump(results, f, indent=2)

    with open(os.path.join(output_dir, "SUMMARY.md"), "w", encoding="utf-8") as f:
        f.write("# Ladder Benchmark Summary\n\n")
        f.write(f"Date: {datetime.datetime.now()}\n\n")
        f.write("| Level | Example | Precision | Recall | F1 | Errors |\n")
        f.write("|---|---|---|---|---|---|\n")
        for level_id, examples in results.items():
            for ex in examples:
                m = ex["metrics"]
                errs = "; ".join(ex["errors"]) if ex["errors"] else "None"
                cells = [f"{m[k]:.2f}" if k in m else "-" for k in ("precision", "recall", "F1")]
                f.write(f"| {level_id} | {ex['id']} | {' | '.join(cells)} | {errs} |\n")

    print(f"\nResults saved to {output_dir}")


if __name__ == "__main__":
    main()
