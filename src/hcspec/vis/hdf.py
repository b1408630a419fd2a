import h5py
import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from pathlib import Path

def save_golden_png(h5_path: str, out_png: str | None = None, quantity: str = "delta", bins: int = 100):
    """Histogram a golden-track column (e.g. delta, xp_tar, y_tar) to PNG."""
    h5_path = str(h5_path)
    with h5py.File(h5_path, "r") as f:
        if "tracks/golden" not in f:
            raise KeyError(f"/tracks/golden not found in {h5_path}")
        if f"tracks/{quantity}" not in f:
            raise KeyError(f"/tracks/{quantity} not found in {h5_path}")
        mask = np.array(f["tracks/golden"], dtype=bool)
        vals = np.array(f[f"tracks/{quantity}"], dtype=np.float64)[mask]

    if out_png is None:
        out_png = str(Path(h5_path).with_suffix(f".{quantity}.png"))

    vals = vals[np.isfinite(vals)]
    plt.figure()
    plt.hist(vals, bins=bins, histtype="step")
    plt.xlabel(quantity)
    plt.ylabel("golden tracks")
    plt.title(Path(h5_path).name + " : " + quantity + f" (N={vals.size})")
    plt.tight_layout()
    plt.savefig(out_png, dpi=150)
    plt.close()
    return out_png
