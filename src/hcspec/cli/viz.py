from __future__ import annotations

import typer
from typing import Optional

from hcspec.vis.hdf import save_golden_png

app = typer.Typer(help="Golden-track visualization tools")

@app.command("h5-to-png")
def h5_to_png(
    h5_path: str = typer.Argument(..., help="Path to HDF5 file written by hcspec"),
    quantity: str = typer.Option("delta", "--quantity", "-q", help="Track column under /tracks"),
    bins: int = typer.Option(100, "--bins", help="Number of histogram bins"),
    out: Optional[str] = typer.Option(None, "--out", "-o", help="Output PNG path (defaults to file.<quantity>.png)"),
):
    """Histogram a golden-track quantity from an hcspec HDF5 file."""
    out_png = save_golden_png(h5_path, out_png=out, quantity=quantity, bins=bins)
    typer.echo(f"Wrote {out_png}")

if __name__ == "__main__":
    app()
