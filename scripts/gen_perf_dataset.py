#!/usr/bin/env python3
"""Dataset generation script for lead import performance testing.

Generates a synthetic lead CSV (French headers, as exported by most CRMs and
spreadsheets) with a controllable share of duplicate identities:

- ``--dup-ratio`` of the rows reuse the email or phone of an earlier row
  (mixed case / reformatted so normalization is exercised)
- ``--blank-ratio`` of the rows carry no name, email or phone and are rejected

The file can be fed straight to ``lead-import`` or to the perf tests.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

HEADERS = [
    "Prénom",
    "Nom",
    "Email",
    "Téléphone",
    "Entreprise",
    "Poste",
    "Ville",
    "Formation",
    "Priorité",
    "Statut",
]

FIRST_NAMES = ["Jean", "Marie", "Lucie", "Paul", "Sophie", "Karim", "Nadia", "Hugo", "Emma", "Louis"]
LAST_NAMES = ["Martin", "Bernard", "Dubois", "Thomas", "Robert", "Petit", "Durand", "Leroy", "Moreau"]
CITIES = ["Paris", "Lyon", "Marseille", "Lille", "Nantes", "Bordeaux", "Toulouse"]
FORMATIONS = ["Excel avancé", "Python", "Management", "Anglais", "Comptabilité", ""]
PRIORITIES = ["cold", "warm", "hot", "urgent", ""]
STATUSES = ["Opt-in", "Contacté", "Qualifié", ""]


def _phone(n: int) -> str:
    digits = f"{600000000 + n:09d}"
    return "0" + " ".join([digits[0], digits[1:3], digits[3:5], digits[5:7], digits[7:9]])


def generate_leads(rows: int, dup_ratio: float = 0.1, blank_ratio: float = 0.01, seed: int = 42) -> pd.DataFrame:
    """Build a lead DataFrame with the requested duplicate / blank shares.

    Args:
        rows: number of data rows
        dup_ratio: share of rows repeating an earlier row's email or phone
        blank_ratio: share of rows without any identifying value
        seed: random seed for reproducible data

    Returns:
        DataFrame with the HEADERS columns, all values as strings
    """
    rng = np.random.default_rng(seed)

    first = rng.choice(FIRST_NAMES, rows)
    last = rng.choice(LAST_NAMES, rows)
    data = pd.DataFrame(
        {
            "Prénom": first,
            "Nom": last,
            "Email": [f"{f.lower()}.{l.lower()}.{i}@example.com" for i, (f, l) in enumerate(zip(first, last))],
            "Téléphone": [_phone(i) for i in range(rows)],
            "Entreprise": [f"Société {i % 997}" for i in range(rows)],
            "Poste": rng.choice(["Directeur", "Assistant", "Responsable RH", "Gérant", ""], rows),
            "Ville": rng.choice(CITIES, rows),
            "Formation": rng.choice(FORMATIONS, rows),
            "Priorité": rng.choice(PRIORITIES, rows),
            "Statut": rng.choice(STATUSES, rows),
        },
        columns=HEADERS,
    )

    if rows > 1 and dup_ratio > 0:
        dup_rows = rng.choice(np.arange(1, rows), size=min(rows - 1, int(rows * dup_ratio)), replace=False)
        for pos in dup_rows:
            source = int(rng.integers(0, pos))
            if rng.random() < 0.5:
                data.at[pos, "Email"] = data.at[source, "Email"].upper()
            else:
                data.at[pos, "Téléphone"] = data.at[source, "Téléphone"].replace(" ", ".")

    if blank_ratio > 0:
        blanks = rng.choice(np.arange(rows), size=int(rows * blank_ratio), replace=False)
        data.loc[blanks, ["Prénom", "Nom", "Email", "Téléphone"]] = ""

    return data


def write_csv(output_path: Path, data: pd.DataFrame) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    data.to_csv(output_path, index=False, encoding="utf-8")
    print(f"Created CSV file: {output_path}")
    print(f"  Rows: {len(data):,}")
    print(f"  Columns: {len(data.columns)}")


def main() -> int:
    """Main CLI interface for dataset generation."""
    parser = argparse.ArgumentParser(
        description="Generate synthetic lead CSV files for performance testing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # 50k leads, 10% duplicates
  %(prog)s data/leads_50k.csv

  # 200k leads, 30% duplicates, no blank rows
  %(prog)s data/leads_200k.csv --rows 200000 --dup-ratio 0.3 --blank-ratio 0
        """,
    )
    parser.add_argument("output", type=Path, help="Output CSV file path")
    parser.add_argument("--rows", type=int, default=50_000, help="Number of data rows (default: 50,000)")
    parser.add_argument("--dup-ratio", type=float, default=0.1, help="Share of duplicate rows (default: 0.1)")
    parser.add_argument("--blank-ratio", type=float, default=0.01, help="Share of unidentifiable rows (default: 0.01)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed for reproducible data (default: 42)")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be generated without creating files")

    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    for name in ("dup_ratio", "blank_ratio"):
        if not 0 <= getattr(args, name) < 1:
            print(f"Error: --{name.replace('_', '-')} must be in [0, 1)", file=sys.stderr)
            return 1

    print("Dataset generation plan:")
    print(f"  Output file: {args.output}")
    print(f"  Rows: {args.rows:,}")
    print(f"  Duplicate ratio: {args.dup_ratio}")
    print(f"  Blank ratio: {args.blank_ratio}")
    print(f"  Random seed: {args.seed}")

    if args.dry_run:
        print("\n[DRY RUN] Would generate the file but not creating it.")
        return 0

    try:
        write_csv(args.output, generate_leads(args.rows, args.dup_ratio, args.blank_ratio, args.seed))
    except OSError as e:
        print(f"\nError writing dataset: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
