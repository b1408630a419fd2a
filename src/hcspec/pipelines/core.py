from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional
import typer
from tqdm import tqdm

from hcspec.config.load import load_config
from hcspec.config.schemas import Config
from hcspec.errors import InitError, Status
from hcspec.io.adapters import make_adapter
from hcspec.io.store import write_init, write_results, write_diagnostics
from hcspec.physics.events import SpectrometerEvent
from hcspec.pipelines.spectrometer import EventResult, HallCSpectrometer
from hcspec.vis.hdf import save_golden_png


def _iter_source_events(cfg: Config) -> Iterable[SpectrometerEvent]:
    """
    Event source for real data: the configured adapter reads
    cfg.io.input_path (tracks) and, when given, cfg.io.hits_path (hodoscope).
    """
    adapter = make_adapter(cfg.io.adapter)
    return adapter.iter_events(str(cfg.io.input_path), cfg.io.hits_path)


def process_events(
    hms: HallCSpectrometer,
    events: Iterable[SpectrometerEvent],
    max_events: Optional[int] = None,
) -> tuple[List[SpectrometerEvent], List[EventResult]]:
    """Run the spectrometer stage over events; per-event errors do not stop the run."""
    done: List[SpectrometerEvent] = []
    results: List[EventResult] = []
    if hms.cfg.run.progress:
        events = tqdm(events, desc="events", unit="ev", total=max_events)
    for ev in events:
        if max_events is not None and len(done) >= max_events:
            if hms.cfg.run.diagnostics_level >= 1:
                print(f"[pipeline] Reached max_events={max_events}, stopping.")
            break
        results.append(hms.process_event(ev))
        done.append(ev)
    return done, results


def run_pipeline(
    cfg_path: str,
    *,
    strategy: Optional[str] = None,
    sort_tracks: Optional[bool] = None,
    max_events: Optional[int] = None,
) -> Path:
    """
    Orchestrate target reconstruction + golden-track selection from a TOML config.

    CLI flags (--strategy/--no-sort/--max-events) override the
    corresponding config fields when not None.

    Returns
    -------
    Path to written HDF5 file.

    Raises
    ------
    InitError if the spectrometer stage cannot be set up.
    """
    cfg = load_config(cfg_path)

    # ---- apply CLI overrides on top of TOML ----
    if strategy is not None:
        cfg.selection.strategy = strategy
        cfg.selection.sel_using_scin = 0
        cfg.selection.sel_using_prune = 0
    if sort_tracks is not None:
        cfg.selection.sort_tracks = sort_tracks
    if max_events is not None:
        cfg.run.max_events = max_events

    diag_level = cfg.run.diagnostics_level

    # Basic logging
    if diag_level >= 1:
        print(f"[run] config = {cfg_path}")
        print(f"[run] strategy={cfg.selection.resolved_strategy()} sort_tracks={cfg.selection.sort_tracks}")
        print(f"[run] input={cfg.io.input_path} -> output={cfg.io.output_path}")

    hms = HallCSpectrometer(cfg)
    status = hms.setup()
    if status != Status.OK:
        raise InitError(f"Spectrometer setup failed (status={int(status)}); run not started")

    events, results = process_events(hms, _iter_source_events(cfg), cfg.run.max_events)

    out_path = Path(cfg.io.output_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    f = write_init(str(out_path), cfg_path, cfg, hms.central, len(hms.tmap))
    write_results(f, events, results)
    counters = hms.diagnostics.as_dict()
    write_diagnostics(f, counters)
    f.close()

    if diag_level >= 1:
        print(f"[pipeline] Processed {counters['events']} events, {counters['tracks']} tracks")
        print(f"[pipeline] golden={counters['selected']} no_tracks={counters['no_tracks']} "
              f"fallback={counters['fallback']} data_errors={counters['data_errors']}")

    # Optional PNG export
    if cfg.vis.export_png_on_write:
        try:
            out_png = save_golden_png(str(out_path), quantity=cfg.vis.quantity)
            if diag_level >= 1:
                print(f"[pipeline] Wrote PNG {out_png} ({cfg.vis.quantity})")
        except (KeyError, ValueError) as e:
            if diag_level >= 1:
                print(f"[pipeline] PNG export failed: {e!r}")

    return out_path


# ---------------------------------------------------------------------------
# Unified CLI entry point
# ---------------------------------------------------------------------------

app = typer.Typer(help="Spectrometer target reconstruction and golden-track selection (hcspec.pipelines.core)")


@app.command()
def main(
    cfg_path: str = typer.Argument(
        ...,
        help="Path to TOML config file",
    ),
    strategy: Optional[str] = typer.Option(
        None,
        "--strategy",
        help="Override [selection] strategy: chi2 | scin | prune",
    ),
    no_sort: bool = typer.Option(
        False,
        "--no-sort",
        help="Override [selection].sort_tracks = false (chi2 strategy keeps upstream order)",
    ),
    max_events: Optional[int] = typer.Option(
        None,
        "--max-events",
        help="Stop after this many events; overrides [run].max_events",
    ),
):
    """
    Run reconstruction and golden-track selection for a single config.
    """
    if strategy is not None and strategy not in ("chi2", "scin", "prune"):
        raise typer.BadParameter(f"unknown strategy {strategy!r}", param_hint="--strategy")
    try:
        out_path = run_pipeline(
            cfg_path,
            strategy=strategy,
            sort_tracks=False if no_sort else None,
            max_events=max_events,
        )
    except InitError as exc:
        typer.echo(f"[run] {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(str(out_path))


if __name__ == "__main__":
    app()
