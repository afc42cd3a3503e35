#!/usr/bin/env python3
"""Sample workbook generator for the maintenance / contacts import.

Writes synthetic rows under the grid header labels ("Flotte", "Engin",
"Entrée", ...), so the file can be fed straight to
``fleetgrid --import-xlsx``. With ``--title`` a title row is written first
and the header moves to row 2 (import with ``--header-row 2``).
"""
from __future__ import annotations

import argparse
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from fleetgrid.models.record import KINDS, RecordKind, ValidationStatus

FLEETS = ["TGV", "TER", "RER", "FRET"]
SITES = ["Lyon", "Paris", "Marseille", "Lille", "Rennes"]
OPERATIONS = ["VL", "VG", "ATS", "EF", "RVG"]
FUNCTIONS = ["Chef d'équipe", "Planificateur", "Technicien", "Responsable site"]


def generate_maintenance(rows: int, rng: np.random.Generator) -> pd.DataFrame:
    base = pd.Timestamp("2025-01-06 07:00")
    offsets = rng.integers(0, 120, rows)
    durations = rng.integers(2, 72, rows)
    entree = [base + timedelta(days=int(d)) for d in offsets]
    sortie = [e + timedelta(hours=int(h)) for e, h in zip(entree, durations)]
    statuses = list(ValidationStatus.values()) + [""]
    data: dict[str, list[Any]] = {
        "Flotte": rng.choice(FLEETS, rows).tolist(),
        "Engin": [f"{rng.integers(100, 999)}" for _ in range(rows)],
        "Site": rng.choice(SITES, rows).tolist(),
        "Semaine": [f"{e.isocalendar()[1]:02d}" for e in entree],
        "Entrée": entree,
        "Sortie": sortie,
        "Code opération": rng.choice(OPERATIONS, rows).tolist(),
        "Libellé": [f"Intervention {i + 1}" for i in range(rows)],
        "N° DI": [f"DI{rng.integers(10000, 99999)}" for _ in range(rows)],
        "Butée": [(e + timedelta(days=30)).strftime("%d/%m/%Y") for e in entree],
        "Validation RDV": rng.choice(statuses, rows).tolist(),
        "Commentaires": [""] * rows,
    }
    return pd.DataFrame(data)


def generate_contacts(rows: int, rng: np.random.Generator) -> pd.DataFrame:
    data: dict[str, list[Any]] = {
        "Site": rng.choice(SITES, rows).tolist(),
        "Nom": [f"Contact {i + 1}" for i in range(rows)],
        "Fonction": rng.choice(FUNCTIONS, rows).tolist(),
        "Ligne Interne": [f"{rng.integers(1000, 9999)}" for _ in range(rows)],
        "Ligne Portable": [f"06{rng.integers(10_000_000, 99_999_999)}" for _ in range(rows)],
        "Observations": [""] * rows,
    }
    return pd.DataFrame(data)


def create_workbook(
    output_path: Path,
    kind: RecordKind,
    rows: int,
    sheets: list[str],
    title: str | None = None,
    seed: int = 42,
) -> None:
    rng = np.random.default_rng(seed)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    generate = generate_contacts if kind.has_field("ordre") else generate_maintenance
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        for sheet_name in sheets:
            df = generate(rows, rng)
            startrow = 0
            if title:
                pd.DataFrame([[title]]).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
                startrow = 1
            df.to_excel(writer, sheet_name=sheet_name, index=False, startrow=startrow)

    print(f"Created workbook: {output_path}")
    print(f"  Kind: {kind.name} ({kind.table})")
    print(f"  Sheets: {len(sheets)} ({', '.join(sheets)})")
    print(f"  Rows per sheet: {rows}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate a sample workbook for fleetgrid --import-xlsx")
    parser.add_argument("output", type=Path, help="Output .xlsx path")
    parser.add_argument("--kind", choices=sorted(KINDS), default="maintenance")
    parser.add_argument("--rows", type=int, default=200, help="Data rows per sheet (default: 200)")
    parser.add_argument("--sheets", nargs="+", default=["Sheet1"], help="Sheet names (default: Sheet1)")
    parser.add_argument("--title", default=None, help="Optional title row above the header")
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    create_workbook(args.output, KINDS[args.kind], args.rows, args.sheets, args.title, args.seed)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
