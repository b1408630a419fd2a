from __future__ import annotations
from .schemas import Config
from pathlib import Path

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # py<=310

def load_config(path: str | Path) -> Config:
    """
    Load and validate a TOML config.

    recon.matrix_path and relative io paths are resolved against the
    config file's directory.
    """
    p = Path(path)
    data = tomllib.loads(p.read_text())
    cfg = Config(**data)
    base = p.resolve().parent
    cfg.recon.matrix_path = str(_resolve(base, cfg.recon.matrix_path))
    cfg.io.input_path = str(_resolve(base, cfg.io.input_path))
    cfg.io.output_path = str(_resolve(base, cfg.io.output_path))
    if cfg.io.hits_path:
        cfg.io.hits_path = str(_resolve(base, cfg.io.hits_path))
    return cfg

def _resolve(base: Path, raw: str) -> Path:
    q = Path(raw)
    return q if q.is_absolute() else (base / q)

def snapshot_config_toml(path: str | Path) -> str:
    """Return the raw TOML text for embedding in HDF5 metadata."""
    return Path(path).read_text()

